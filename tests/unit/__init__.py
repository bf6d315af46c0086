"""Unit tests for the voting portal.

These tests run against an in-memory data-access client and need no
external services.
"""
