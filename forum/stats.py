from api import ApiClient
from cache import QueryKey, ResourceQueryCache
from .models import ForumStats

STATS = "stats"


class StatsService:
    """Forum-wide counters shown on the dashboard"""

    def __init__(self, api: ApiClient, cache: ResourceQueryCache):
        self.api = api
        self.cache = cache

    async def get_stats(self) -> ForumStats:
        async def fetch() -> ForumStats:
            result = await self.api.get("/estadisticas")
            return ForumStats.from_wire(result.unwrap())

        return await self.cache.fetch(QueryKey.build(STATS), fetch)
