"""
Topic reads (cached) and writes (uncached) against /topicos
"""

from typing import Optional

from api import ApiClient
from cache import QueryKey, ResourceQueryCache
from cache.query_cache import Fetcher
from config import API_CONFIG
from core.logging_config import get_logger
from .models import Page, TopicDetail, TopicSummary

TOPICS = "topics"
TOPIC = "topic"

# Listing scope -> collection path
SCOPE_PATHS = {
    "all": "/topicos",
    "search": "/topicos/buscar",
    "mine": "/topicos/mis-topicos",
}


class TopicService:
    """Reads go through the query cache; writes go straight to the API"""

    def __init__(self, api: ApiClient, cache: ResourceQueryCache, page_size: Optional[int] = None):
        self.logger = get_logger(__name__)
        self.api = api
        self.cache = cache
        self.page_size = page_size or API_CONFIG["page_size"]

    def page_key(self, scope: str = "all", page: int = 0, size: Optional[int] = None,
                 search: Optional[str] = None, course_id: Optional[int] = None) -> QueryKey:
        """Cache key of one topic listing page"""
        if scope not in ("all", "search", "course", "mine"):
            raise ValueError(f"Unknown topic scope: {scope}")
        if scope == "search" and not (search and search.strip()):
            raise ValueError("search scope needs a query")
        if scope == "course" and course_id is None:
            raise ValueError("course scope needs a course_id")
        if page < 0:
            raise ValueError("page index must not be negative")

        return QueryKey.build(
            TOPICS,
            scope=scope,
            page=page,
            size=size or self.page_size,
            search=search.strip() if scope == "search" else None,
            course_id=course_id if scope == "course" else None,
        )

    @staticmethod
    def detail_key(topic_id: int) -> QueryKey:
        return QueryKey.build(TOPIC, topic_id=topic_id)

    def page_fetcher(self, key: QueryKey) -> Fetcher:
        """Network read for a key built by page_key()"""
        scope = key.get("scope")
        if scope == "course":
            path = f"/topicos/curso/{key.get('course_id')}"
        else:
            path = SCOPE_PATHS[scope]
        params = {"page": key.get("page"), "size": key.get("size"), "q": key.get("search")}

        async def fetch() -> Page:
            result = await self.api.get(path, params=params)
            return Page.from_wire(result.unwrap(), TopicSummary.from_wire)

        return fetch

    async def load_page(self, key: QueryKey) -> Page:
        return await self.cache.fetch(key, self.page_fetcher(key))

    async def list_topics(self, page: int = 0, size: Optional[int] = None) -> Page:
        return await self.load_page(self.page_key("all", page, size))

    async def search_topics(self, query: str, page: int = 0, size: Optional[int] = None) -> Page:
        """Title search; a blank query lists every topic instead"""
        if not query or not query.strip():
            return await self.list_topics(page, size)
        return await self.load_page(self.page_key("search", page, size, search=query))

    async def topics_by_course(self, course_id: int, page: int = 0, size: Optional[int] = None) -> Page:
        return await self.load_page(self.page_key("course", page, size, course_id=course_id))

    async def my_topics(self, page: int = 0, size: Optional[int] = None) -> Page:
        return await self.load_page(self.page_key("mine", page, size))

    def detail_fetcher(self, topic_id: int) -> Fetcher:
        async def fetch() -> TopicDetail:
            result = await self.api.get(f"/topicos/{topic_id}")
            return TopicDetail.from_wire(result.unwrap())

        return fetch

    async def get_topic(self, topic_id: int) -> TopicDetail:
        return await self.cache.fetch(self.detail_key(topic_id), self.detail_fetcher(topic_id))

    async def create_topic(self, title: str, body: str, course_id: int) -> TopicSummary:
        result = await self.api.post("/topicos", json={"titulo": title, "mensaje": body, "cursoId": course_id})
        topic = TopicSummary.from_wire(result.unwrap())
        self.logger.info(f"Created topic {topic.id}")
        return topic

    async def update_topic(self, topic_id: int, title: str, body: str, course_id: int) -> TopicSummary:
        result = await self.api.put(
            f"/topicos/{topic_id}",
            json={"titulo": title, "mensaje": body, "cursoId": course_id}
        )
        return TopicSummary.from_wire(result.unwrap())

    async def delete_topic(self, topic_id: int) -> None:
        result = await self.api.delete(f"/topicos/{topic_id}")
        result.unwrap()
        self.logger.info(f"Deleted topic {topic_id}")
