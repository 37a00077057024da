"""
Session state, identity models and their persistence
"""

from .models import EMPTY_SESSION, Identity, Role, RoleKind, Session
from .persistence import SessionPersistence
from .store import SessionStore

__all__ = [
    "EMPTY_SESSION",
    "Identity",
    "Role",
    "RoleKind",
    "Session",
    "SessionPersistence",
    "SessionStore",
]
