"""
Cache consumers for the Contest Service.

These own no caching logic: they build keys, pick TTLs from the policy
functions and shape typed responses.
"""

from .match import MatchDetails, MatchService
from .user_activity import UserActivityService
from .wallet import DocumentStatus, WalletBalances, WalletService

__all__ = [
    "MatchDetails",
    "MatchService",
    "UserActivityService",
    "DocumentStatus",
    "WalletBalances",
    "WalletService",
]
