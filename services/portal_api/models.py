"""Pydantic models for request/response validation."""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

# Longest secret the password hasher accepts
MAX_PASSWORD_LENGTH = 4096


class LoginRequest(BaseModel):
    """Login request model."""

    voter_id: str = Field(default="", description="Voter identifier (login handle)")
    password: str = Field(default="", max_length=MAX_PASSWORD_LENGTH, description="Account password")

    class Config:
        json_schema_extra = {
            "example": {
                "voter_id": "V001",
                "password": "voter123"
            }
        }


class IdentityResponse(BaseModel):
    """Sanitized user identity."""

    id: str
    voter_id: str
    full_name: str
    role: Literal["admin", "voter"]
    has_voted: bool


class LoginResponse(BaseModel):
    """Login response model."""

    success: bool
    message: str
    user: Optional[IdentityResponse] = None


class SessionResponse(BaseModel):
    """Current view and identity."""

    view: Literal["login", "admin", "voter"] = Field(..., description="View to render")
    user: Optional[IdentityResponse] = None

    class Config:
        json_schema_extra = {
            "example": {
                "view": "voter",
                "user": {
                    "id": "0b7e1c9a-4f0e-4d7e-9a55-1f2d3c4b5a69",
                    "voter_id": "V001",
                    "full_name": "Alice Martin",
                    "role": "voter",
                    "has_voted": False
                }
            }
        }


class CandidateCreateRequest(BaseModel):
    """New candidate request model. Required fields are checked by the portal."""

    name: str = Field(default="", description="Candidate name")
    party: str = Field(default="", description="Party or affiliation")
    description: Optional[str] = Field(default="", description="Free-text description")

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Jordan Lee",
                "party": "Student Union",
                "description": "Third-year engineering student"
            }
        }


class CandidateResponse(BaseModel):
    """Candidate information model."""

    id: str
    name: str
    party: str
    description: str = ""
    vote_count: int = 0


class VoteRequest(BaseModel):
    """Vote submission request model."""

    candidate_id: str = Field(..., min_length=1, description="Chosen candidate id")


class VoteResponse(BaseModel):
    """Vote submission response model."""

    status: Literal["success", "already_voted"] = Field(..., description="Outcome of the vote")
    message: str = Field(..., description="Response message")
    has_voted: bool = Field(..., description="Session has-voted flag after the attempt")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "success",
                "message": "Vote cast successfully!",
                "has_voted": True
            }
        }


class StatsResponse(BaseModel):
    """Turnout statistics for the admin view."""

    total_candidates: int
    total_votes: int
    total_voters: int
    voted_count: int
    turnout_percent: float


class HealthResponse(BaseModel):
    """Health check response model."""

    status: Literal["healthy", "unhealthy"] = Field(..., description="Overall health status")
    services: dict = Field(..., description="Status of individual services")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Health check timestamp")


class ErrorResponse(BaseModel):
    """Error response model."""

    detail: str = Field(..., description="Error message")
