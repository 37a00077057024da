"""
Replies and accepted answers against /respuestas
"""

from typing import Optional

from api import ApiClient
from cache import QueryKey, ResourceQueryCache
from config import API_CONFIG
from .models import Page, Reply

REPLIES = "replies"


class ReplyService:
    def __init__(self, api: ApiClient, cache: ResourceQueryCache, page_size: Optional[int] = None):
        self.api = api
        self.cache = cache
        self.page_size = page_size or API_CONFIG["page_size"]

    async def create_reply(self, topic_id: int, body: str) -> Reply:
        result = await self.api.post(f"/respuestas/topico/{topic_id}", json={"mensaje": body})
        return Reply.from_wire(result.unwrap())

    async def update_reply(self, reply_id: int, body: str) -> Reply:
        result = await self.api.put(f"/respuestas/{reply_id}", json={"mensaje": body})
        return Reply.from_wire(result.unwrap())

    async def delete_reply(self, reply_id: int) -> None:
        result = await self.api.delete(f"/respuestas/{reply_id}")
        result.unwrap()

    async def mark_solution(self, reply_id: int) -> Reply:
        """Accept a reply as the topic's answer (topic author only)"""
        result = await self.api.patch(f"/respuestas/{reply_id}/solucion")
        return Reply.from_wire(result.unwrap())

    async def unmark_solution(self, reply_id: int) -> Reply:
        result = await self.api.delete(f"/respuestas/{reply_id}/solucion")
        return Reply.from_wire(result.unwrap())

    async def my_replies(self, page: int = 0, size: Optional[int] = None) -> Page:
        size = size or self.page_size
        key = QueryKey.build(REPLIES, page=page, size=size)

        async def fetch() -> Page:
            result = await self.api.get("/respuestas/mis-respuestas", params={"page": page, "size": size})
            return Page.from_wire(result.unwrap(), Reply.from_wire)

        return await self.cache.fetch(key, fetch)
