"""Voting portal API: sessions, credentials, candidates and vote casting."""
