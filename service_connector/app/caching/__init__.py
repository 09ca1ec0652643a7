"""
Connector caching package.

Holds the bounded, process-local record of recent read-query results.
"""

from .query_cache import CacheEntry, QueryResultCache

__all__ = ["CacheEntry", "QueryResultCache"]
