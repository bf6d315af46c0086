"""Candidate listing, creation and election statistics."""
import logging
from typing import List

from prometheus_client import Counter

from services.shared.models import (
    Candidate,
    CandidateResult,
    ElectionStats,
    Role,
    compute_turnout,
    MSG_CANDIDATE_OK,
    MSG_CANDIDATE_REQUIRED,
    MSG_CANDIDATE_FAILED,
)

from .database import DatabaseError

logger = logging.getLogger(__name__)

backend_errors = Counter(
    "portal_backend_errors_total",
    "Backend calls that failed and were degraded at the call site",
    ["operation"]
)

# order name -> (column, descending)
ORDERINGS = {
    "name": ("name", False),
    "votes": ("vote_count", True),
}


async def list_candidates(store, order: str = "name") -> List[Candidate]:
    """
    Fetch all candidates.

    Args:
        store: Data-access client
        order: 'name' (ascending, voter view) or 'votes' (tally descending, admin view)

    Returns:
        List of candidates; empty if the backend call fails
    """
    if order not in ORDERINGS:
        raise ValueError(f"Unknown candidate ordering: {order}")
    column, descending = ORDERINGS[order]

    try:
        rows = await store.find("candidates", order_by=column, descending=descending)
    except DatabaseError as e:
        backend_errors.labels(operation="list_candidates").inc()
        logger.error(f"Error listing candidates: {e}")
        return []

    return [Candidate.from_row(row) for row in rows]


async def add_candidate(store, name: str, party: str, description: str = "") -> CandidateResult:
    """Insert a new candidate with a zero tally after checking required fields."""
    name = (name or "").strip()
    party = (party or "").strip()
    if not name or not party:
        return CandidateResult(success=False, message=MSG_CANDIDATE_REQUIRED)

    row = {
        "name": name,
        "party": party,
        "description": (description or "").strip(),
        "vote_count": 0,
    }
    try:
        inserted = await store.insert("candidates", [row])
    except DatabaseError as e:
        backend_errors.labels(operation="add_candidate").inc()
        logger.error(f"Error adding candidate {name}: {e}")
        return CandidateResult(success=False, message=MSG_CANDIDATE_FAILED)

    candidate = Candidate.from_row(inserted[0])
    logger.info(f"Candidate added: id={candidate.id}, name={candidate.name}, party={candidate.party}")
    return CandidateResult(success=True, message=MSG_CANDIDATE_OK, candidate=candidate)


async def election_stats(store) -> ElectionStats:
    """Turnout statistics from live counts. Backend errors propagate."""
    total_candidates = await store.count("candidates")
    total_votes = await store.count("votes")
    total_voters = await store.count("users", {"role": Role.VOTER.value})
    voted_count = await store.count("users", {"role": Role.VOTER.value, "has_voted": True})

    return ElectionStats(
        total_candidates=total_candidates,
        total_votes=total_votes,
        total_voters=total_voters,
        voted_count=voted_count,
        turnout_percent=compute_turnout(voted_count, total_voters),
    )
