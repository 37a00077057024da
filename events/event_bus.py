"""
In-process event bus used to publish session changes, notices and cache activity
"""

import time
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from core.logging_config import get_logger

logger = get_logger(__name__)


class SystemEvent:
    """Represents a published event"""

    def __init__(self, event_type: str, data: Dict[str, Any], source: Optional[str] = None):
        self.id = str(uuid.uuid4())
        self.type = event_type
        self.data = data
        self.source = source or "system"
        self.timestamp = time.time()
        self.datetime = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary"""
        return {
            "id": self.id,
            "type": self.type,
            "data": self.data,
            "source": self.source,
            "timestamp": self.timestamp,
            "datetime": self.datetime
        }


class EventBus:
    """
    Synchronous event bus.

    Listeners run inline, in registration order, on the caller's event loop
    turn. A failing listener is logged and never stops the others.
    """

    def __init__(self, max_history: int = 500):
        self.listeners: Dict[str, List[Callable[[SystemEvent], None]]] = defaultdict(list)
        self.event_history: List[SystemEvent] = []
        self.max_history = max_history
        self.event_counts: Dict[str, int] = defaultdict(int)

    def emit(self, event_type: str, data: Dict[str, Any], source: Optional[str] = None) -> SystemEvent:
        """Publish an event and deliver it to every matching listener"""
        event = SystemEvent(event_type, data, source)

        self.event_counts[event.type] += 1
        self.event_history.append(event)
        if len(self.event_history) > self.max_history:
            self.event_history.pop(0)

        # Copy so listeners may unsubscribe while being notified
        for listener in list(self.listeners.get(event.type, [])) + list(self.listeners.get("*", [])):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Error in event listener for {event.type}")

        return event

    def on(self, event_type: str, callback: Callable[[SystemEvent], None]):
        """Register a listener for specific event type"""
        self.listeners[event_type].append(callback)

    def on_all(self, callback: Callable[[SystemEvent], None]):
        """Register a listener for all events"""
        self.listeners["*"].append(callback)

    def off(self, event_type: str, callback: Callable[[SystemEvent], None]):
        """Remove a listener"""
        if callback in self.listeners[event_type]:
            self.listeners[event_type].remove(callback)

    def get_stats(self) -> Dict[str, Any]:
        """Get event bus statistics"""
        return {
            "total_events": sum(self.event_counts.values()),
            "event_counts": dict(self.event_counts),
            "history_size": len(self.event_history),
            "listener_counts": {
                event_type: len(listeners)
                for event_type, listeners in self.listeners.items()
            }
        }

    def get_recent_events(self, count: int = 50, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get recent events from history, optionally filtered by type"""
        events = self.event_history
        if event_type:
            events = [e for e in events if e.type == event_type]

        return [e.to_dict() for e in events[-count:]]


class EventTypes:
    # Session events
    SESSION_LOGIN = "session.login"
    SESSION_LOGOUT = "session.logout"
    SESSION_IDENTITY_UPDATED = "session.identity_updated"
    SESSION_EXPIRED = "session.expired"

    # Navigation requests for the UI
    NAVIGATE_LOGIN = "navigation.login_required"

    # Passive user notices
    NOTICE_ERROR = "notice.error"
    NOTICE_SUCCESS = "notice.success"

    # Cache events
    CACHE_INVALIDATED = "cache.invalidated"

    # Mutation events
    MUTATION_STARTED = "mutation.started"
    MUTATION_SUCCEEDED = "mutation.succeeded"
    MUTATION_FAILED = "mutation.failed"
