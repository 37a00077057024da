"""
Submission state of a single form
"""

import time
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List

from core.exceptions import MutationInProgressError
from core.logging_config import get_logger


class MutationState(Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class MutationTransition:
    """Represents a state transition"""
    def __init__(self, from_state: MutationState, to_state: MutationState, reason: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        self.timestamp = time.time()
        self.datetime = datetime.now()

    def __str__(self):
        return f"{self.from_state.value} -> {self.to_state.value} ({self.reason})"


class Mutation:
    """
    State machine of one form instance.

    A form reuses its Mutation across submissions, which is what stops it
    from submitting twice at once.
    """

    VALID_TRANSITIONS = {
        MutationState.IDLE: [MutationState.SUBMITTING],
        MutationState.SUBMITTING: [MutationState.SUCCEEDED, MutationState.FAILED],
        MutationState.SUCCEEDED: [MutationState.SUBMITTING],
        MutationState.FAILED: [MutationState.IDLE],
    }

    def __init__(self, name: str, max_history: int = 50):
        self.logger = get_logger(__name__)
        self.name = name
        self.state = MutationState.IDLE

        self.transitions: List[MutationTransition] = []
        self.max_history = max_history
        self.listeners: List[Callable[[MutationState, MutationState], None]] = []

        self.submit_count = 0
        self.failure_count = 0

    @property
    def is_submitting(self) -> bool:
        return self.state is MutationState.SUBMITTING

    def begin(self):
        """
        Enter SUBMITTING.

        Raises:
            MutationInProgressError: The previous submission has not settled
        """
        if self.state is MutationState.SUBMITTING:
            raise MutationInProgressError(self.name)
        self.submit_count += 1
        self.transition_to(MutationState.SUBMITTING, "submit")

    def transition_to(self, new_state: MutationState, reason: str = "") -> bool:
        """
        Move to new_state if the transition is allowed.

        Returns:
            True if transition successful, False if invalid
        """
        if new_state not in self.VALID_TRANSITIONS.get(self.state, []):
            self.logger.warning(f"Invalid transition for {self.name}: {self.state.value} -> {new_state.value}")
            return False

        transition = MutationTransition(self.state, new_state, reason)
        self.transitions.append(transition)
        if len(self.transitions) > self.max_history:
            self.transitions = self.transitions[-self.max_history:]

        old_state = self.state
        self.state = new_state
        if new_state is MutationState.FAILED:
            self.failure_count += 1

        self.logger.debug(f"{self.name}: {transition}")

        for listener in list(self.listeners):
            try:
                listener(old_state, new_state)
            except Exception:
                self.logger.exception(f"Error in state listener of {self.name}")

        return True

    def add_listener(self, listener: Callable[[MutationState, MutationState], None]):
        self.listeners.append(listener)

    def remove_listener(self, listener: Callable[[MutationState, MutationState], None]):
        if listener in self.listeners:
            self.listeners.remove(listener)

    def get_transition_history(self, limit: int = 10) -> List[Dict[str, Any]]:
        return [
            {
                "from": t.from_state.value,
                "to": t.to_state.value,
                "reason": t.reason,
                "timestamp": t.timestamp,
                "datetime": t.datetime.isoformat()
            }
            for t in self.transitions[-limit:]
        ]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "submit_count": self.submit_count,
            "failure_count": self.failure_count,
            "transition_count": len(self.transitions),
        }
