"""
Vote recorder.

Casting a vote touches three collections: a new votes row, the chosen
candidate's tally and the voter's has_voted flag. All three writes run in
one backend transaction, the tally is bumped with a single atomic
increment, and votes.user_id carries a unique constraint, so a vote is
either fully recorded or not recorded at all and concurrent voters never
lose an increment.
"""
import logging

from prometheus_client import Counter

from services.shared.models import (
    Role,
    VoteResult,
    VoteStatus,
    MSG_VOTE_OK,
    MSG_ALREADY_VOTED,
    MSG_VOTE_FAILED,
    MSG_VOTE_IN_PROGRESS,
    MSG_VOTE_NO_SESSION,
    MSG_VOTE_VOTERS_ONLY,
    MSG_CANDIDATE_MISSING,
)

from .database import DatabaseError, DuplicateRecordError
from .session import SessionHolder

logger = logging.getLogger(__name__)

votes_cast = Counter(
    "portal_votes_total",
    "Vote-cast attempts by outcome",
    ["status"]
)


class CandidateNotFoundError(Exception):
    """The chosen candidate no longer exists."""
    pass


class VoteRecorder:
    """Casts the current session's vote."""

    def __init__(self, store, session: SessionHolder):
        self.store = store
        self.session = session
        self._in_flight = False

    async def cast_vote(self, candidate_id: str) -> VoteResult:
        """
        Cast a vote for candidate_id on behalf of the session's user.

        Returns:
            VoteResult; never raises for backend failures
        """
        result = await self._cast(candidate_id)
        votes_cast.labels(status=result.status.value).inc()
        return result

    async def _cast(self, candidate_id: str) -> VoteResult:
        identity = self.session.identity
        if identity is None:
            return VoteResult(VoteStatus.FAILED, MSG_VOTE_NO_SESSION)
        if identity.role != Role.VOTER:
            return VoteResult(VoteStatus.FAILED, MSG_VOTE_VOTERS_ONLY)
        if identity.has_voted:
            return VoteResult(VoteStatus.ALREADY_VOTED, MSG_ALREADY_VOTED)
        if self._in_flight:
            return VoteResult(VoteStatus.IN_PROGRESS, MSG_VOTE_IN_PROGRESS)

        self._in_flight = True
        try:
            await self._record(identity.id, candidate_id)
        except CandidateNotFoundError:
            logger.warning(f"Vote by {identity.voter_id} rejected: candidate {candidate_id} not found")
            return VoteResult(VoteStatus.CANDIDATE_NOT_FOUND, MSG_CANDIDATE_MISSING)
        except DuplicateRecordError:
            logger.info(f"Vote by {identity.voter_id} rejected: already recorded")
            self.session.mark_voted()
            return VoteResult(VoteStatus.ALREADY_VOTED, MSG_ALREADY_VOTED)
        except DatabaseError as e:
            logger.error(f"Error casting vote for {identity.voter_id}: {e}")
            return VoteResult(VoteStatus.FAILED, MSG_VOTE_FAILED)
        finally:
            self._in_flight = False

        self.session.mark_voted()
        logger.info(f"Vote recorded: user={identity.voter_id}, candidate={candidate_id}")
        return VoteResult(VoteStatus.SUCCESS, MSG_VOTE_OK)

    async def _record(self, user_id: str, candidate_id: str):
        async with self.store.transaction():
            found = await self.store.find("candidates", {"id": candidate_id})
            if not found:
                raise CandidateNotFoundError(candidate_id)

            await self.store.insert("votes", [{"user_id": user_id, "candidate_id": candidate_id}])

            updated = await self.store.increment("candidates", "vote_count", {"id": candidate_id})
            if updated != 1:
                raise CandidateNotFoundError(candidate_id)

            await self.store.update("users", {"has_voted": True}, {"id": user_id})
