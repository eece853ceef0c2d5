"""Cache keys and the Redis response cache."""

from .keys import cache_key, hash_key
from .redis_cache import CachePolicy, ResponseCache

__all__ = ["CachePolicy", "ResponseCache", "cache_key", "hash_key"]
