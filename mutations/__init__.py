"""
Forum writes and their effect on the query cache
"""

from .coordinator import MutationCoordinator, MutationOutcome
from .state import Mutation, MutationState, MutationTransition

__all__ = [
    "Mutation",
    "MutationCoordinator",
    "MutationOutcome",
    "MutationState",
    "MutationTransition",
]
