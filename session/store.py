"""
Authoritative record of who is logged in and with what credential
"""

from typing import Optional

from core.exceptions import SessionPersistenceError
from core.logging_config import get_logger, log_error_with_context
from events import EventBus, EventTypes
from .models import EMPTY_SESSION, Identity, Session
from .persistence import SessionPersistence


class SessionStore:
    """
    Holds the current Session and keeps durable storage in step with it.

    The stored Session is only ever replaced as a whole, so no reader can
    observe a credential without a user or the reverse.
    """

    def __init__(self,
                 persistence: Optional[SessionPersistence] = None,
                 event_bus: Optional[EventBus] = None):
        """
        Args:
            persistence: Durable storage; None keeps the session in memory only
            event_bus: Receives session.login / session.logout events
        """
        self.logger = get_logger(__name__)
        self.persistence = persistence
        self.event_bus = event_bus

        self._session = persistence.load() if persistence else EMPTY_SESSION

    @property
    def session(self) -> Session:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def user(self) -> Optional[Identity]:
        return self._session.user

    def get_credential(self) -> Optional[str]:
        """Current bearer credential, or None when unauthenticated"""
        return self._session.credential if self._session.is_authenticated else None

    def login(self, credential: str, identity: Identity) -> None:
        """
        Replace the session with an authenticated one.

        The record is written before the in-memory swap, so a storage failure
        leaves the previous session untouched.

        Raises:
            ValueError: If the credential is empty or the identity is missing
            SessionPersistenceError: If the record could not be written
        """
        if not credential:
            raise ValueError("login requires a credential")
        if identity is None:
            raise ValueError("login requires an identity")

        new_session = Session(user=identity, credential=credential)
        if self.persistence:
            self.persistence.save(new_session)
        self._session = new_session

        self.logger.info(f"Signed in as {identity.email}")
        self._emit(EventTypes.SESSION_LOGIN, {"user_id": identity.id, "email": identity.email})

    def logout(self) -> None:
        """
        Reset to the empty session. Idempotent.

        Memory is cleared first: a logout must succeed even when storage
        cannot be written.
        """
        if self._session == EMPTY_SESSION:
            return

        previous = self._session
        self._session = EMPTY_SESSION

        if self.persistence:
            try:
                self.persistence.save(EMPTY_SESSION)
            except SessionPersistenceError as e:
                log_error_with_context(self.logger, e, "logout", path=str(self.persistence.path))

        self.logger.info("Signed out")
        self._emit(EventTypes.SESSION_LOGOUT, {"user_id": previous.user.id if previous.user else None})

    def update_identity(self, identity: Identity) -> None:
        """Replace the identity of an authenticated session; no-op otherwise"""
        if not self._session.is_authenticated:
            self.logger.debug("Ignoring identity update without an authenticated session")
            return

        new_session = self._session.with_identity(identity)
        if self.persistence:
            self.persistence.save(new_session)
        self._session = new_session

        self._emit(EventTypes.SESSION_IDENTITY_UPDATED, {"user_id": identity.id})

    def _emit(self, event_type: str, data: dict):
        if self.event_bus:
            self.event_bus.emit(event_type, data, source="session_store")
