"""
REST gateway and error taxonomy
"""

from .client import ApiClient, ApiResult
from .errors import (
    ApiError,
    ApplicationError,
    ErrorKind,
    Forbidden,
    NetworkTimeout,
    NotFound,
    ServerError,
    SessionExpired,
    UnknownError,
    classify_response,
)

__all__ = [
    "ApiClient",
    "ApiResult",
    "ApiError",
    "ApplicationError",
    "ErrorKind",
    "Forbidden",
    "NetworkTimeout",
    "NotFound",
    "ServerError",
    "SessionExpired",
    "UnknownError",
    "classify_response",
]
