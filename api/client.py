"""
HTTP gateway for the ForoHub REST API.

Every request goes through ApiClient.request(): it injects the bearer
credential, applies the timeout, classifies failures and performs the side
effects that go with them (session invalidation, user notices).
"""

import asyncio
import json
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from config import API_CONFIG
from core.logging_config import get_logger, log_api_call
from events import EventBus, EventTypes
from session import SessionStore
from .errors import ApiError, NetworkTimeout, SessionExpired, UnknownError, classify_response


@dataclass(frozen=True)
class ApiResult:
    """Outcome of one request: decoded body or classified error"""
    status: Optional[int]
    data: Any = None
    error: Optional[ApiError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the body or raise the classified error"""
        if self.error is not None:
            raise self.error
        return self.data


class ApiClient:
    """Single configured HTTP gateway shared by every forum service"""

    def __init__(self,
                 session_store: SessionStore,
                 base_url: Optional[str] = None,
                 timeout: Optional[float] = None,
                 event_bus: Optional[EventBus] = None,
                 login_path: Optional[str] = None):
        """
        Args:
            session_store: Source of the bearer credential; cleared on 401
            base_url: API root, e.g. http://localhost:8080
            timeout: Default per-request timeout in seconds
            event_bus: Receives notices and the login redirect signal
            login_path: Where the UI should go after the session expires
        """
        self.logger = get_logger(__name__)
        self.session_store = session_store
        self.base_url = (base_url or API_CONFIG["base_url"]).rstrip("/")
        self.timeout = timeout if timeout is not None else API_CONFIG["timeout"]
        self.event_bus = event_bus
        self.login_path = login_path or API_CONFIG["login_path"]

        self._http: Optional[aiohttp.ClientSession] = None

        # Stats
        self.request_count = 0
        self.error_counts: Dict[str, int] = defaultdict(int)

    async def __aenter__(self) -> 'ApiClient':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        """Release the underlying HTTP session"""
        if self._http is not None and not self._http.closed:
            await self._http.close()
        self._http = None

    def _get_http(self) -> aiohttp.ClientSession:
        # Created lazily so it binds to the running event loop
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession()
        return self._http

    async def request(self,
                      method: str,
                      path: str,
                      *,
                      json: Any = None,
                      params: Optional[Dict[str, Any]] = None,
                      timeout: Optional[float] = None,
                      credential: Optional[str] = None) -> ApiResult:
        """
        Perform one request.

        Args:
            method: HTTP method
            path: Path relative to the API root, e.g. /topicos/7
            json: Request body, sent as JSON
            params: Query parameters; None values are dropped
            timeout: Override of the default timeout (seconds)
            credential: Bearer token to use instead of the stored one

        Returns:
            ApiResult with the decoded body or the classified error
        """
        method = method.upper()
        headers = {"Content-Type": "application/json", "Accept": "application/json"}

        token = credential if credential is not None else self.session_store.get_credential()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        effective_timeout = self.timeout if timeout is None else timeout
        query = {k: v for k, v in (params or {}).items() if v is not None}

        self.request_count += 1
        start_time = time.monotonic()

        try:
            http = self._get_http()
            async with http.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                params=query or None,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=effective_timeout)
            ) as response:
                status = response.status
                charset = response.charset
                body = await response.read()

        except asyncio.TimeoutError:
            error = NetworkTimeout(effective_timeout, details={"method": method, "path": path})
            return self._fail(method, path, error, start_time)

        except aiohttp.ClientError as e:
            error = UnknownError(details={"method": method, "path": path, "reason": str(e)})
            return self._fail(method, path, error, start_time)

        duration_ms = (time.monotonic() - start_time) * 1000
        log_api_call(self.logger, "forohub", f"{method} {path}", status, duration_ms)

        payload = self._decode(body, charset)
        error = classify_response(status, payload)
        if error is not None:
            return self._fail(method, path, error, start_time)

        return ApiResult(status=status, data=payload)

    async def get(self, path: str, **kwargs) -> ApiResult:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> ApiResult:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> ApiResult:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs) -> ApiResult:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> ApiResult:
        return await self.request("DELETE", path, **kwargs)

    @staticmethod
    def _decode(body: bytes, charset: Optional[str] = None) -> Any:
        # Proxies answer with pages in any encoding; undecodable bytes are replaced
        try:
            text = body.decode(charset or "utf-8", errors="replace")
        except LookupError:
            text = body.decode("utf-8", errors="replace")
        if not text.strip():
            return None
        try:
            return json.loads(text)
        except (ValueError, RecursionError):
            return text

    def _fail(self, method: str, path: str, error: ApiError, start_time: float) -> ApiResult:
        """Apply the side effects of a classified error and wrap it"""
        self.error_counts[error.kind.value] += 1

        if isinstance(error, SessionExpired):
            error.redirect_to = self.login_path
            was_authenticated = self.session_store.is_authenticated
            self.session_store.logout()
            self._emit(EventTypes.SESSION_EXPIRED, {"was_authenticated": was_authenticated})
            self._emit(EventTypes.NAVIGATE_LOGIN, {"path": self.login_path})

        self.logger.warning(
            f"{method} {path} failed: {error.kind.value} ({error.status})",
            extra={"extra_data": {
                "method": method,
                "path": path,
                "kind": error.kind.value,
                "status": error.status,
                "duration_ms": round((time.monotonic() - start_time) * 1000, 1),
            }}
        )

        # Exactly one passive notice per classified error
        self._emit(EventTypes.NOTICE_ERROR, {
            "kind": error.kind.value,
            "status": error.status,
            "message": error.notice,
            "method": method,
            "path": path,
        })

        return ApiResult(status=error.status, error=error)

    def _emit(self, event_type: str, data: Dict[str, Any]):
        if self.event_bus:
            self.event_bus.emit(event_type, data, source="api_client")

    def get_stats(self) -> Dict[str, Any]:
        return {
            "base_url": self.base_url,
            "request_count": self.request_count,
            "error_counts": dict(self.error_counts),
        }
