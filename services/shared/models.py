"""
Shared data models for the voting portal.

This module contains:
- Identity: the sanitized user snapshot held by a session
- Candidate: a candidate row as read from the backend
- Result types returned by the login, candidate and vote operations
"""

import json
from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Optional, Dict, Any


class Role(str, Enum):
    """Role tag carried by every user record."""
    ADMIN = "admin"
    VOTER = "voter"


class VoteStatus(str, Enum):
    """Outcome of a vote-cast attempt."""
    SUCCESS = "success"
    ALREADY_VOTED = "already_voted"
    CANDIDATE_NOT_FOUND = "candidate_not_found"
    IN_PROGRESS = "in_progress"
    FAILED = "failed"


# User-facing messages
MSG_LOGIN_OK = "Login successful"
MSG_LOGIN_MISSING = "Please enter both Voter ID and Password"
MSG_LOGIN_INVALID = "Invalid Voter ID or Password"
MSG_LOGIN_FAILED = "Login failed. Please try again."
MSG_VOTE_OK = "Vote cast successfully!"
MSG_ALREADY_VOTED = "You have already voted!"
MSG_VOTE_FAILED = "Error casting vote. Please try again."
MSG_VOTE_IN_PROGRESS = "A vote is already being submitted"
MSG_VOTE_NO_SESSION = "Please log in to vote"
MSG_VOTE_VOTERS_ONLY = "Only voters can cast votes"
MSG_CANDIDATE_MISSING = "Candidate is no longer available"
MSG_CANDIDATE_REQUIRED = "Please fill in all required fields"
MSG_CANDIDATE_FAILED = "Error adding candidate"
MSG_CANDIDATE_OK = "Candidate added"


@dataclass
class Identity:
    """
    Sanitized user identity.

    This is what a session holds and what durable storage persists.
    It never carries the stored secret.

    Attributes:
        id: Internal user record id
        voter_id: Login handle
        full_name: Display name
        role: 'admin' or 'voter'
        has_voted: Whether the user has already cast a vote
    """
    id: str
    voter_id: str
    full_name: str
    role: str
    has_voted: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    def to_json(self) -> str:
        """Convert to JSON string for durable storage."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Identity':
        """Create Identity from dictionary."""
        return cls(
            id=str(data["id"]),
            voter_id=data["voter_id"],
            full_name=data.get("full_name") or "",
            role=str(data["role"]),
            has_voted=bool(data.get("has_voted", False)),
        )

    @classmethod
    def from_json(cls, json_str: str) -> 'Identity':
        """Create Identity from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def from_user_row(cls, row: Dict[str, Any]) -> 'Identity':
        """Build an identity from a full users row, dropping the secret."""
        return cls.from_dict({k: v for k, v in row.items() if k != "password"})


@dataclass
class Candidate:
    """Candidate as read from the backend."""
    id: str
    name: str
    party: str
    description: str = ""
    vote_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Candidate':
        return cls(
            id=str(row["id"]),
            name=row["name"],
            party=row["party"],
            description=row.get("description") or "",
            vote_count=int(row.get("vote_count") or 0),
        )


@dataclass
class LoginResult:
    success: bool
    message: str
    identity: Optional[Identity] = None


@dataclass
class CandidateResult:
    success: bool
    message: str
    candidate: Optional[Candidate] = None


@dataclass
class VoteResult:
    status: VoteStatus
    message: str

    @property
    def success(self) -> bool:
        return self.status == VoteStatus.SUCCESS


@dataclass
class ElectionStats:
    """Turnout and tally statistics for the admin view."""
    total_candidates: int = 0
    total_votes: int = 0
    total_voters: int = 0
    voted_count: int = 0
    turnout_percent: float = field(default=0.0)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def compute_turnout(voted_count: int, total_voters: int) -> float:
    """
    Percentage of voters who have voted.

    Args:
        voted_count: Voters with has_voted set
        total_voters: All users with the voter role

    Returns:
        float: Percentage rounded to two decimals, 0.0 with no voters
    """
    if total_voters <= 0:
        return 0.0
    return round(voted_count / total_voters * 100, 2)
