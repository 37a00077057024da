"""
Durable storage for the session record
"""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from core.exceptions import SessionPersistenceError
from core.logging_config import get_logger
from .models import EMPTY_SESSION, Identity, Session

logger = get_logger(__name__)

DEFAULT_STORAGE_KEY = "forohub-auth"
SCHEMA_VERSION = 1


class SessionPersistence:
    """Reads and writes the single session record under a fixed key"""

    def __init__(self, storage_dir: str, storage_key: str = DEFAULT_STORAGE_KEY):
        """
        Args:
            storage_dir: Directory holding the record (created on first save)
            storage_key: Fixed record name; the file is <storage_key>.json
        """
        self.storage_dir = Path(storage_dir).expanduser()
        self.storage_key = storage_key
        self.path = self.storage_dir / f"{storage_key}.json"

        self.save_count = 0
        self.last_save_time: Optional[datetime] = None

    def load(self) -> Session:
        """
        Load the persisted session.

        Never raises: a missing, unreadable or malformed record yields the
        empty session.
        """
        if not self.path.exists():
            return EMPTY_SESSION

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                record = json.load(f)
            session = self._parse_record(record)
        except (OSError, ValueError, KeyError, TypeError, RecursionError) as e:
            logger.warning(f"Ignoring unusable session record {self.path}: {e}")
            return EMPTY_SESSION

        logger.debug(f"Session restored from {self.path} (authenticated={session.is_authenticated})")
        return session

    def save(self, session: Session) -> None:
        """
        Write the session atomically.

        Raises:
            SessionPersistenceError: If the record could not be written
        """
        record = {
            "version": SCHEMA_VERSION,
            "savedAt": datetime.now().isoformat(),
            "state": {
                "token": session.credential if session.is_authenticated else None,
                "user": session.user.to_record() if session.is_authenticated else None,
                "isAuthenticated": session.is_authenticated,
            },
        }

        tmp_path = None
        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            # Write beside the target so os.replace stays on one filesystem
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.storage_dir,
                prefix=f".{self.storage_key}.", suffix=".tmp", delete=False
            ) as f:
                tmp_path = f.name
                json.dump(record, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise SessionPersistenceError(
                f"Could not write session record {self.path}: {e}",
                details={"path": str(self.path)}
            ) from e

        self.save_count += 1
        self.last_save_time = datetime.now()

    def clear(self) -> None:
        """Remove the record from disk"""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def _parse_record(self, record: Any) -> Session:
        """Validate the stored shape; anything unexpected raises ValueError"""
        if not isinstance(record, dict):
            raise ValueError("record is not an object")
        if record.get("version") != SCHEMA_VERSION:
            raise ValueError(f"unsupported record version {record.get('version')!r}")

        state = record["state"]
        if not isinstance(state, dict) or set(state) != {"token", "user", "isAuthenticated"}:
            raise ValueError("unexpected state shape")

        token = state["token"]
        user = state["user"]
        authenticated = state["isAuthenticated"]

        if authenticated is False and token is None and user is None:
            return EMPTY_SESSION
        if authenticated is not True:
            raise ValueError("inconsistent authentication flag")
        if not isinstance(token, str) or not token:
            raise ValueError("authenticated record without token")
        if not isinstance(user, dict):
            raise ValueError("authenticated record without user")

        return Session(user=Identity.from_record(user), credential=token)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "exists": self.path.exists(),
            "save_count": self.save_count,
            "last_save_time": self.last_save_time.isoformat() if self.last_save_time else None,
        }
