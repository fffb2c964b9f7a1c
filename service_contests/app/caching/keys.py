"""
Cache key builders shared by cache consumers.
"""


class CacheKeys:
    """Namespaced keys for cached platform data (unprefixed; CacheManager adds the Redis prefix)."""

    @staticmethod
    def wallet_balances(user_id: int) -> str:
        return f"user:{user_id}:walletBalances"

    @staticmethod
    def document_status(user_id: int) -> str:
        return f"user:{user_id}:documentStatus"

    @staticmethod
    def user_last_active(user_id: int) -> str:
        return f"user:{user_id}:lastActive"

    @staticmethod
    def user_pattern(user_id: int) -> str:
        """Glob matching every key cached for a user."""
        return f"user:{user_id}:*"

    @staticmethod
    def match_details(match_id: int) -> str:
        return f"match:{match_id}:details"
