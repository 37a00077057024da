"""
Sign-in, registration and token checks against /auth
"""

from typing import Optional

from api import ApiClient, NotFound, SessionExpired
from config import API_CONFIG
from core.exceptions import IdentityUnavailableError
from core.logging_config import get_logger
from session import Identity, SessionStore
from .models import TokenGrant


class AuthService:
    """
    Turns credentials into an authenticated session.

    The identity always comes from the server: either embedded in the token
    response or read from the identity endpoint with the new token. The
    session is only touched once both token and identity are in hand.
    """

    def __init__(self, api: ApiClient, session_store: SessionStore, identity_path: Optional[str] = None):
        self.logger = get_logger(__name__)
        self.api = api
        self.session_store = session_store
        self.identity_path = identity_path or API_CONFIG["identity_path"]

    async def login(self, email: str, password: str) -> Identity:
        """
        Raises:
            ApiError: The server rejected the credentials or could not be reached
            IdentityUnavailableError: The token carries no user and the identity
                endpoint does not exist
            InvalidPayloadError: The token or identity response was malformed
        """
        result = await self.api.post("/auth/login", json={"correoElectronico": email, "contrasena": password})
        return await self._establish(TokenGrant.from_wire(result.unwrap()))

    async def register(self, name: str, email: str, password: str) -> Identity:
        result = await self.api.post(
            "/auth/register",
            json={"nombre": name, "correoElectronico": email, "contrasena": password}
        )
        return await self._establish(TokenGrant.from_wire(result.unwrap()))

    async def _establish(self, grant: TokenGrant) -> Identity:
        identity = grant.identity
        if identity is None:
            identity = await self._fetch_identity(grant.token)

        self.session_store.login(grant.token, identity)
        if grant.expires_at:
            self.logger.debug(f"Token expires at {grant.expires_at.isoformat()}")
        return identity

    async def _fetch_identity(self, credential: Optional[str] = None) -> Identity:
        result = await self.api.get(self.identity_path, credential=credential)
        if isinstance(result.error, NotFound):
            raise IdentityUnavailableError(self.identity_path) from result.error
        return Identity.from_wire(result.unwrap())

    async def validate_token(self) -> bool:
        """
        Ask the server whether the stored credential is still accepted.

        A rejected credential clears the session (through the API client)
        and returns False; any other failure is raised.
        """
        if not self.session_store.is_authenticated:
            return False

        result = await self.api.post("/auth/validate")
        if result.ok:
            return True
        if isinstance(result.error, SessionExpired):
            return False
        raise result.error

    async def refresh_identity(self) -> Optional[Identity]:
        """Reload the profile of the signed-in user; None when signed out"""
        if not self.session_store.is_authenticated:
            return None
        identity = await self._fetch_identity()
        self.session_store.update_identity(identity)
        return identity

    def logout(self) -> None:
        self.session_store.logout()
