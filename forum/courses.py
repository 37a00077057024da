"""
Course catalogue reads against /cursos
"""

from typing import List

from api import ApiClient
from cache import QueryKey, ResourceQueryCache
from core.exceptions import InvalidPayloadError
from .models import Course

COURSES = "courses"
COURSE_CATEGORIES = "course-categories"


def _course_list(payload) -> List[Course]:
    if not isinstance(payload, list):
        raise InvalidPayloadError("course list", "expected an array")
    return [Course.from_wire(item) for item in payload]


class CourseService:
    def __init__(self, api: ApiClient, cache: ResourceQueryCache):
        self.api = api
        self.cache = cache

    async def _fetch_courses(self, key: QueryKey, path: str, params=None) -> List[Course]:
        async def fetch() -> List[Course]:
            result = await self.api.get(path, params=params)
            return _course_list(result.unwrap())

        return await self.cache.fetch(key, fetch)

    async def list_courses(self) -> List[Course]:
        return await self._fetch_courses(QueryKey.build(COURSES), "/cursos")

    async def courses_by_category(self, category: str) -> List[Course]:
        return await self._fetch_courses(
            QueryKey.build(COURSES, category=category),
            f"/cursos/categoria/{category}"
        )

    async def search_courses(self, query: str) -> List[Course]:
        if not query or not query.strip():
            return await self.list_courses()
        query = query.strip()
        return await self._fetch_courses(QueryKey.build(COURSES, search=query), "/cursos/buscar", {"q": query})

    async def categories(self) -> List[str]:
        async def fetch() -> List[str]:
            result = await self.api.get("/cursos/categorias")
            payload = result.unwrap()
            if not isinstance(payload, list):
                raise InvalidPayloadError("category list", "expected an array")
            return [str(name) for name in payload]

        return await self.cache.fetch(QueryKey.build(COURSE_CATEGORIES), fetch)
