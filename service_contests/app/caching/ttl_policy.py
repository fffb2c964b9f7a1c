"""
Dynamic cache TTL policies.

Stable or terminal state caches long; volatile or high-stakes state caches
short. All functions are pure and return seconds.
"""

import time
from enum import IntEnum
from typing import Optional


class CacheExpiry:
    """Named cache lifetimes in seconds."""
    THIRTY_SECONDS = 30
    ONE_MINUTE = 60
    TWO_MINUTES = 120
    FIVE_MINUTES = 300
    TEN_MINUTES = 600
    ONE_HOUR = 3600
    HALF_DAY = 43200
    ONE_DAY = 86400


class VerificationStatus(IntEnum):
    """KYC document verification states."""
    NOT_SUBMITTED = 0
    PENDING = 1
    VERIFIED = 2
    REJECTED = 3


HIGH_BALANCE_THRESHOLD = 10000


def get_verification_ttl(status: int) -> int:
    """TTL for a verification status."""
    if status in (VerificationStatus.VERIFIED, VerificationStatus.REJECTED):
        return CacheExpiry.ONE_DAY
    if status == VerificationStatus.PENDING:
        return CacheExpiry.ONE_MINUTE
    return CacheExpiry.TWO_MINUTES


def get_wallet_ttl(balance: float) -> int:
    """TTL for a wallet balance; large balances are never served stale for long."""
    if balance == 0:
        return CacheExpiry.TWO_MINUTES
    if balance > HIGH_BALANCE_THRESHOLD:
        return CacheExpiry.THIRTY_SECONDS
    return CacheExpiry.ONE_MINUTE


def get_match_timing_ttl(timestamp_start: float, now: Optional[float] = None) -> int:
    """TTL for match data given the match start (unix seconds)."""
    current_time = int(time.time()) if now is None else now
    time_to_match = timestamp_start - current_time
    hours_to_match = time_to_match / 3600

    if time_to_match < 0:
        return CacheExpiry.ONE_MINUTE
    if hours_to_match > 48:
        return CacheExpiry.ONE_DAY
    if hours_to_match > 24:
        return CacheExpiry.HALF_DAY
    if hours_to_match > 2:
        return CacheExpiry.TEN_MINUTES
    if hours_to_match > 0.5:
        return CacheExpiry.TWO_MINUTES
    return CacheExpiry.ONE_MINUTE
