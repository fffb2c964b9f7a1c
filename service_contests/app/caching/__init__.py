"""
Contest service caching package.

Two-tier cache-aside engine: a process-local bounded tier in front of a
shared Redis tier, with size-gated compression, batch operations, a
stampede lock and dynamic TTL policies. Cache failures degrade to misses;
they never fail the caller.
"""

from .cache_manager import CacheManager
from .keys import CacheKeys
from .ttl_policy import (
    CacheExpiry,
    VerificationStatus,
    get_match_timing_ttl,
    get_verification_ttl,
    get_wallet_ttl,
)

__all__ = [
    "CacheManager",
    "CacheKeys",
    "CacheExpiry",
    "VerificationStatus",
    "get_match_timing_ttl",
    "get_verification_ttl",
    "get_wallet_ttl",
]
