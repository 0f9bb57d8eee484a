"""File-backed response cache for API reads."""

from zdcli.cache.cache import ResponseCache, make_cache_key

__all__ = ["ResponseCache", "make_cache_key"]
