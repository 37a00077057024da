"""
Exceptions shared across the forum client
"""

from typing import Any, Dict, Optional


class ForumClientError(Exception):
    """Base exception for all client-side errors"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class InvalidPayloadError(ForumClientError):
    """Raised when a successful response cannot be decoded into the expected model"""
    def __init__(self, model: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.model = model
        super().__init__(f"Invalid {model} payload: {message}", details)


class SessionPersistenceError(ForumClientError):
    """Raised when the session record cannot be written to durable storage"""
    pass


class MutationInProgressError(ForumClientError):
    """Raised when a form submits again while its previous submission is pending"""
    def __init__(self, mutation_name: str):
        self.mutation_name = mutation_name
        super().__init__(f"Mutation {mutation_name} is already submitting")


class TopicClosedError(ForumClientError):
    """Raised when a reply is submitted to a topic that is not open"""
    def __init__(self, topic_id: int, state: str):
        self.topic_id = topic_id
        self.state = state
        super().__init__(f"Topic {topic_id} is {state.lower()} and does not accept replies")


class IdentityUnavailableError(ForumClientError):
    """Raised when the server has no endpoint describing the signed-in user"""
    def __init__(self, identity_path: str):
        self.identity_path = identity_path
        super().__init__(
            f"The server has no identity endpoint at {identity_path}. "
            f"Point FOROHUB_IDENTITY_PATH at the endpoint that returns the signed-in user",
            {"identity_path": identity_path}
        )
