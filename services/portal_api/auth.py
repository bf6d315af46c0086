"""Credential checker: voter id + secret -> authenticated identity."""
import logging

from services.shared.models import (
    Identity,
    LoginResult,
    MSG_LOGIN_OK,
    MSG_LOGIN_MISSING,
    MSG_LOGIN_INVALID,
    MSG_LOGIN_FAILED,
)
from services.shared.security import verify_password, dummy_verify

from .database import DatabaseError
from .session import SessionHolder

logger = logging.getLogger(__name__)


class CredentialChecker:
    """Verifies credentials against the users collection and manages login state."""

    def __init__(self, store, session: SessionHolder):
        self.store = store
        self.session = session

    async def login(self, voter_id: str, password: str) -> LoginResult:
        """
        Check credentials and, on success, start a session.

        Args:
            voter_id: Login handle
            password: Plain secret as typed by the user

        Returns:
            LoginResult with the sanitized identity on success
        """
        voter_id = (voter_id or "").strip()
        if not voter_id or not password:
            return LoginResult(success=False, message=MSG_LOGIN_MISSING)

        try:
            rows = await self.store.find("users", {"voter_id": voter_id})
        except DatabaseError as e:
            logger.error(f"Login lookup failed for {voter_id}: {e}")
            return LoginResult(success=False, message=MSG_LOGIN_FAILED)

        if len(rows) != 1:
            if len(rows) > 1:
                logger.warning(f"Ambiguous login: {len(rows)} users share voter_id {voter_id}")
            dummy_verify()
            return LoginResult(success=False, message=MSG_LOGIN_INVALID)

        row = rows[0]
        if not verify_password(password, row.get("password") or ""):
            logger.info(f"Rejected login for {voter_id}")
            return LoginResult(success=False, message=MSG_LOGIN_INVALID)

        identity = Identity.from_user_row(row)
        self.session.set(identity)
        logger.info(f"User {identity.voter_id} logged in as {identity.role}")
        return LoginResult(success=True, message=MSG_LOGIN_OK, identity=identity)

    def logout(self):
        self.session.clear()
