"""Integration tests for the voting portal.

This package contains integration tests that run the portal's data-access
client and vote recorder against a real PostgreSQL database:

- Generic collection operations (find, insert, update, increment, count)
- Transaction commit and rollback
- The one-vote-per-user constraint
- Concurrent voting against a single tally

All tests require a reachable PostgreSQL instance and are skipped otherwise.
"""

__version__ = "1.0.0"
