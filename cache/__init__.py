"""
Query cache for forum reads
"""

from .keys import QueryKey
from .observer import QueryObserver
from .query_cache import CacheEntry, CachePatch, ResourceQueryCache

__all__ = [
    "QueryKey",
    "QueryObserver",
    "CacheEntry",
    "CachePatch",
    "ResourceQueryCache",
]
