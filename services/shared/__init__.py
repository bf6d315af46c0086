"""
Shared utilities and models for the voting portal.

This package contains common code used by the portal service and scripts:
- Data models (Identity, Candidate, result types, enums)
- Password hashing helpers
"""

from .models import (
    Identity,
    Candidate,
    Role,
    VoteStatus,
    LoginResult,
    CandidateResult,
    VoteResult,
    ElectionStats,
    compute_turnout,
)
from .security import hash_password, verify_password, is_hashed

__all__ = [
    'Identity',
    'Candidate',
    'Role',
    'VoteStatus',
    'LoginResult',
    'CandidateResult',
    'VoteResult',
    'ElectionStats',
    'compute_turnout',
    'hash_password',
    'verify_password',
    'is_hashed',
]

__version__ = '1.0.0'
