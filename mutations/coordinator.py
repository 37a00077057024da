"""
Write coordination: submission state, cache invalidation and optimistic patches
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from api import ApiError
from cache import CachePatch, QueryKey, ResourceQueryCache
from config import SUCCESS_MESSAGES
from core.exceptions import TopicClosedError
from core.logging_config import get_logger
from events import EventBus, EventTypes
from forum import REPLIES, STATS, TOPIC, TOPICS, Page, ReplyService, TopicService
from .state import Mutation, MutationState

# Resource kinds each write makes stale
TOPIC_WRITE_KINDS = (TOPICS, STATS)
TOPIC_UPDATE_KINDS = (TOPICS, TOPIC)
TOPIC_DELETE_KINDS = (TOPICS, REPLIES, STATS)
REPLY_WRITE_KINDS = (TOPIC, TOPICS, REPLIES, STATS)


@dataclass(frozen=True)
class MutationOutcome:
    """Result handed back to the form"""
    state: MutationState
    data: Any = None
    error: Optional[ApiError] = None

    @property
    def ok(self) -> bool:
        return self.state is MutationState.SUCCEEDED


class MutationCoordinator:
    """
    Runs forum writes and keeps the query cache consistent with them.

    On success every affected resource kind is invalidated. On failure the
    cache is left as it was (optimistic patches are rolled back) and the
    classified error is returned on the outcome rather than raised.

    Double submission is refused per Mutation handle. Forum writes called
    without one share a default handle per operation and target (for example
    "create_topic" or "delete_topic:7"), so two independent forms that create
    topics at the same time must each pass their own handle, e.g.
    coordinator.mutation("create_topic:sidebar").
    """

    def __init__(self,
                 cache: ResourceQueryCache,
                 topics: TopicService,
                 replies: ReplyService,
                 event_bus: Optional[EventBus] = None):
        self.logger = get_logger(__name__)
        self.cache = cache
        self.topics = topics
        self.replies = replies
        self.event_bus = event_bus

        self.mutations: Dict[str, Mutation] = {}

    def mutation(self, name: str) -> Mutation:
        """Handle for one form; the same name returns the same handle, so use one name per form"""
        if name not in self.mutations:
            self.mutations[name] = Mutation(name)
        return self.mutations[name]

    async def submit(self,
                     mutation: Mutation,
                     operation: Callable[[], Awaitable[Any]],
                     invalidates: Iterable[str] = (),
                     optimistic: Optional[Callable[[], List[CachePatch]]] = None,
                     evict: Iterable[QueryKey] = (),
                     success_message: Optional[str] = None) -> MutationOutcome:
        """
        Run one write.

        Args:
            mutation: Form handle; must not be submitting already
            operation: Coroutine function performing the request
            invalidates: Resource kinds to mark stale on success
            optimistic: Applies cache patches before the request is sent
            evict: Keys dropped from the cache on success
            success_message: Text of the notice.success event

        Raises:
            MutationInProgressError: The form is still submitting
            Any non-API error from optimistic or operation, after the cache is restored
        """
        mutation.begin()
        self._emit(EventTypes.MUTATION_STARTED, {"mutation": mutation.name})

        patches: List[CachePatch] = []
        try:
            if optimistic:
                patches = optimistic()
            data = await operation()
        except ApiError as e:
            self._fail(mutation, patches, e)
            return MutationOutcome(MutationState.FAILED, error=e)
        except (Exception, asyncio.CancelledError) as e:
            self._fail(mutation, patches, e)
            raise

        for key in evict:
            self.cache.remove(key)
        kinds = list(invalidates)
        for kind in kinds:
            self.cache.invalidate(kind)

        mutation.transition_to(MutationState.SUCCEEDED, "request accepted")
        self.logger.info(f"{mutation.name} succeeded", extra={"extra_data": {"invalidated": kinds}})
        self._emit(EventTypes.MUTATION_SUCCEEDED, {"mutation": mutation.name, "invalidated": kinds})
        if success_message:
            self._emit(EventTypes.NOTICE_SUCCESS, {"mutation": mutation.name, "message": success_message})

        return MutationOutcome(MutationState.SUCCEEDED, data=data)

    def _fail(self, mutation: Mutation, patches: List[CachePatch], error: BaseException):
        restored = sum(patch.rollback() for patch in reversed(patches))
        if restored:
            self.logger.debug(f"{mutation.name}: rolled back {restored} optimistic entries")

        mutation.transition_to(MutationState.FAILED, type(error).__name__)
        self.logger.warning(f"{mutation.name} failed: {error}")
        self._emit(EventTypes.MUTATION_FAILED, {
            "mutation": mutation.name,
            "error": type(error).__name__,
            "kind": error.kind.value if isinstance(error, ApiError) else None,
        })
        mutation.transition_to(MutationState.IDLE, "ready to retry")

    def _emit(self, event_type: str, data: Dict[str, Any]):
        if self.event_bus:
            self.event_bus.emit(event_type, data, source="mutation_coordinator")

    # Forum writes

    async def create_topic(self, title: str, body: str, course_id: int,
                           mutation: Optional[Mutation] = None) -> MutationOutcome:
        """On success outcome.data is the new TopicSummary"""
        return await self.submit(
            mutation or self.mutation("create_topic"),
            lambda: self.topics.create_topic(title, body, course_id),
            invalidates=TOPIC_WRITE_KINDS,
            success_message=SUCCESS_MESSAGES["create_topic"],
        )

    async def update_topic(self, topic_id: int, title: str, body: str, course_id: int,
                           mutation: Optional[Mutation] = None) -> MutationOutcome:
        return await self.submit(
            mutation or self.mutation(f"update_topic:{topic_id}"),
            lambda: self.topics.update_topic(topic_id, title, body, course_id),
            invalidates=TOPIC_UPDATE_KINDS,
            success_message=SUCCESS_MESSAGES["update_topic"],
        )

    async def delete_topic(self, topic_id: int, mutation: Optional[Mutation] = None) -> MutationOutcome:
        """
        Delete a topic, hiding it from cached listings while the request runs.

        The listings are restored if the server refuses; on success the
        topic's detail entry is evicted so a direct read goes to the network.
        """
        def hide_from_listings() -> List[CachePatch]:
            def drop(value):
                return value.without(topic_id) if isinstance(value, Page) else value
            return [self.cache.patch(TOPICS, drop)]

        return await self.submit(
            mutation or self.mutation(f"delete_topic:{topic_id}"),
            lambda: self.topics.delete_topic(topic_id),
            invalidates=TOPIC_DELETE_KINDS,
            optimistic=hide_from_listings,
            evict=[self.topics.detail_key(topic_id)],
            success_message=SUCCESS_MESSAGES["delete_topic"],
        )

    async def create_reply(self, topic_id: int, body: str,
                           mutation: Optional[Mutation] = None) -> MutationOutcome:
        """
        Raises:
            TopicClosedError: The topic is closed or resolved; nothing is sent
        """
        async def operation():
            topic = await self.topics.get_topic(topic_id)
            if not topic.accepts_replies:
                raise TopicClosedError(topic_id, topic.state.name)
            return await self.replies.create_reply(topic_id, body)

        return await self.submit(
            mutation or self.mutation(f"create_reply:{topic_id}"),
            operation,
            invalidates=REPLY_WRITE_KINDS,
            success_message=SUCCESS_MESSAGES["create_reply"],
        )

    async def update_reply(self, reply_id: int, body: str,
                           mutation: Optional[Mutation] = None) -> MutationOutcome:
        return await self.submit(
            mutation or self.mutation(f"update_reply:{reply_id}"),
            lambda: self.replies.update_reply(reply_id, body),
            invalidates=REPLY_WRITE_KINDS,
            success_message=SUCCESS_MESSAGES["update_reply"],
        )

    async def delete_reply(self, reply_id: int, mutation: Optional[Mutation] = None) -> MutationOutcome:
        return await self.submit(
            mutation or self.mutation(f"delete_reply:{reply_id}"),
            lambda: self.replies.delete_reply(reply_id),
            invalidates=REPLY_WRITE_KINDS,
            success_message=SUCCESS_MESSAGES["delete_reply"],
        )

    async def mark_solution(self, reply_id: int, mutation: Optional[Mutation] = None) -> MutationOutcome:
        return await self.submit(
            mutation or self.mutation(f"mark_solution:{reply_id}"),
            lambda: self.replies.mark_solution(reply_id),
            invalidates=REPLY_WRITE_KINDS,
            success_message=SUCCESS_MESSAGES["mark_solution"],
        )

    async def unmark_solution(self, reply_id: int, mutation: Optional[Mutation] = None) -> MutationOutcome:
        return await self.submit(
            mutation or self.mutation(f"unmark_solution:{reply_id}"),
            lambda: self.replies.unmark_solution(reply_id),
            invalidates=REPLY_WRITE_KINDS,
            success_message=SUCCESS_MESSAGES["unmark_solution"],
        )

    def get_stats(self) -> Dict[str, Any]:
        return {name: m.get_stats() for name, m in self.mutations.items()}
