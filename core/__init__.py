"""
Core infrastructure: logging, configuration validation and shared exceptions
"""

from .exceptions import (
    ForumClientError,
    IdentityUnavailableError,
    InvalidPayloadError,
    MutationInProgressError,
    SessionPersistenceError,
    TopicClosedError,
)
from .logging_config import get_logger, setup_logging

__all__ = [
    "ForumClientError",
    "IdentityUnavailableError",
    "InvalidPayloadError",
    "MutationInProgressError",
    "SessionPersistenceError",
    "TopicClosedError",
    "get_logger",
    "setup_logging",
]
