"""The running portal: one session and the components acting on it."""
from services.shared.models import Role

from .auth import CredentialChecker
from .ballot import VoteRecorder
from .session import SessionHolder

VIEW_LOGIN = "login"
VIEW_ADMIN = "admin"
VIEW_VOTER = "voter"


class Portal:
    """Composes the data-access client, the session and the operations on it."""

    def __init__(self, store, session: SessionHolder):
        self.store = store
        self.session = session
        self.credentials = CredentialChecker(store, session)
        self.recorder = VoteRecorder(store, session)

    @property
    def view(self) -> str:
        """Which screen to show, chosen purely by session state."""
        identity = self.session.identity
        if identity is None:
            return VIEW_LOGIN
        if identity.role == Role.ADMIN:
            return VIEW_ADMIN
        return VIEW_VOTER
