"""Voting portal services."""
