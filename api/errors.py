"""
Classified API errors.

Every failed request is classified exactly once, here, by HTTP status; callers
branch on the error class (or its ``kind``) and never re-classify.
"""

from enum import Enum
from typing import Any, Dict, Optional

from config import NOTICE_MESSAGES
from core.exceptions import ForumClientError


class ErrorKind(Enum):
    SESSION_EXPIRED = "session_expired"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    SERVER_ERROR = "server_error"
    NETWORK_TIMEOUT = "network_timeout"
    APPLICATION_ERROR = "application_error"
    UNKNOWN = "unknown"


class ApiError(ForumClientError):
    """Base class for classified request failures"""
    kind = ErrorKind.UNKNOWN

    def __init__(self, notice: Optional[str] = None, status: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.notice = notice or NOTICE_MESSAGES[self.kind.value]
        self.status = status
        super().__init__(self.notice, details)


class SessionExpired(ApiError):
    """401: the credential is missing, invalid or expired"""
    kind = ErrorKind.SESSION_EXPIRED

    def __init__(self, status: Optional[int] = 401, details: Optional[Dict[str, Any]] = None,
                 redirect_to: str = "/login"):
        self.redirect_to = redirect_to
        super().__init__(status=status, details=details)


class Forbidden(ApiError):
    kind = ErrorKind.FORBIDDEN


class NotFound(ApiError):
    kind = ErrorKind.NOT_FOUND


class ServerError(ApiError):
    kind = ErrorKind.SERVER_ERROR


class NetworkTimeout(ServerError):
    """The request did not finish within its timeout"""
    kind = ErrorKind.NETWORK_TIMEOUT

    def __init__(self, timeout: float, details: Optional[Dict[str, Any]] = None):
        self.timeout = timeout
        super().__init__(details=details)


class ApplicationError(ApiError):
    """Rejected by the server with a message meant for the user"""
    kind = ErrorKind.APPLICATION_ERROR

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.code = code
        super().__init__(notice=message, status=status, details=details)


class UnknownError(ApiError):
    kind = ErrorKind.UNKNOWN


def _structured_message(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    message = payload.get("mensaje") or payload.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return None


def classify_response(status: int, payload: Any = None) -> Optional[ApiError]:
    """
    Map an HTTP response to its error class.

    Args:
        status: HTTP status code
        payload: Decoded response body, if any

    Returns:
        None for successful responses, otherwise the first matching error
    """
    if status < 400:
        return None
    if status == 401:
        return SessionExpired(status=status)
    if status == 403:
        return Forbidden(status=status)
    if status == 404:
        return NotFound(status=status)
    if status >= 500:
        return ServerError(status=status)

    message = _structured_message(payload)
    if message:
        details = payload.get("detalles")
        return ApplicationError(
            message,
            status=status,
            code=payload.get("codigo"),
            details=details if isinstance(details, dict) else {},
        )

    return UnknownError(status=status)
