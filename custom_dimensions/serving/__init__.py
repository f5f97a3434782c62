"""
Serving Module
"""
from .cache import init_redis, close_redis, get_redis, CacheManager, TrackerCache

__all__ = [
    "init_redis",
    "close_redis",
    "get_redis",
    "CacheManager",
    "TrackerCache",
]
