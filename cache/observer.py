"""
Display binding between a view and the query cache.

A view asks for whatever key it currently wants (page 2, search "java", ...).
Responses can arrive in any order, so each one is committed only if its key is
still the one the view wants; anything else is a superseded request and is
dropped on arrival.
"""

from typing import Any, Dict, Optional

from core.logging_config import get_logger
from .keys import QueryKey
from .query_cache import Fetcher, ResourceQueryCache


class QueryObserver:
    """Tracks the desired key of one view and the data currently shown for it"""

    def __init__(self, cache: ResourceQueryCache, keep_previous_data: bool = True):
        self.logger = get_logger(__name__)
        self.cache = cache
        self.keep_previous_data = keep_previous_data

        self.desired_key: Optional[QueryKey] = None
        self.data_key: Optional[QueryKey] = None
        self.data: Any = None
        self.error: Optional[Exception] = None

        self._fetcher: Optional[Fetcher] = None
        self.discarded_responses = 0

    @property
    def is_loading(self) -> bool:
        return self.desired_key is not None and self.data_key != self.desired_key and self.error is None

    @property
    def is_previous_data(self) -> bool:
        """True while data belongs to an earlier key than the desired one"""
        return self.data is not None and self.data_key != self.desired_key

    def select(self, key: QueryKey):
        """Make key the desired key and show what the cache already has for it"""
        self.desired_key = key
        self.error = None

        if self.cache.contains(key):
            self.data = self.cache.peek(key)
            self.data_key = key
        elif not self.keep_previous_data:
            self.data = None
            self.data_key = None

    async def load(self, key: QueryKey, fetcher: Fetcher) -> Any:
        """
        Fetch key through the cache and commit the result if still wanted.

        Returns:
            The value for key, or None when the view moved on to another key
            before the response arrived

        Raises:
            The fetch error, when key is still the desired key
        """
        self.select(key)
        self._fetcher = fetcher

        try:
            value = await self.cache.fetch(key, fetcher)
        except Exception as e:
            if key != self.desired_key:
                self.logger.debug(f"Ignoring error for superseded key {key}: {type(e).__name__}")
                self.discarded_responses += 1
                return None
            self.error = e
            raise

        if key != self.desired_key:
            self.logger.debug(f"Discarding superseded response for {key}")
            self.discarded_responses += 1
            return None

        self.data = value
        self.data_key = key
        return value

    async def refresh(self) -> Any:
        """Reload the desired key with the fetcher used last"""
        if self.desired_key is None or self._fetcher is None:
            return None
        return await self.load(self.desired_key, self._fetcher)

    def get_state(self) -> Dict[str, Any]:
        return {
            "desired_key": str(self.desired_key) if self.desired_key else None,
            "data_key": str(self.data_key) if self.data_key else None,
            "is_loading": self.is_loading,
            "is_previous_data": self.is_previous_data,
            "error": type(self.error).__name__ if self.error else None,
            "discarded_responses": self.discarded_responses,
        }
