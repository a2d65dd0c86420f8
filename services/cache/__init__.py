"""
POWERWATCH Query Cache

Bounded, recency-ordered cache for management controller responses.
"""

from .query_cache import BoundedQueryCache

__all__ = [
    "BoundedQueryCache",
]
