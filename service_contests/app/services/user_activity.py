"""
User last-active tracking.

The database write is submitted as a detached background task so it never
delays or fails the request that triggered it.
"""

from datetime import datetime, timezone
from typing import Optional

from shared.background import BackgroundTaskRunner
from shared.logging import get_logger

from ..caching import CacheExpiry, CacheKeys, CacheManager
from ..persistence import QueryStore


class UserActivityService:
    def __init__(self, cache: CacheManager, store: QueryStore, tasks: BackgroundTaskRunner):
        self.cache = cache
        self.store = store
        self.tasks = tasks
        self.logger = get_logger("contests.user_activity")

    async def update_last_active(self, user_id: Optional[int]) -> bool:
        if not user_id:
            return False

        now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        self.tasks.submit(
            self.store.execute(
                "UPDATE users SET last_active_at = %s WHERE id = %s",
                [now, user_id],
            ),
            name=f"update-last-active:{user_id}",
        )

        await self.cache.set(CacheKeys.user_last_active(user_id), now, CacheExpiry.ONE_HOUR)
        return True

    async def get_last_active(self, user_id: Optional[int]) -> Optional[str]:
        if not user_id:
            return None

        async def load_last_active() -> Optional[str]:
            row = await self.store.query_one(
                "SELECT last_active_at FROM users WHERE id = %s LIMIT 1",
                [user_id],
            )
            if not row or not row.get("last_active_at"):
                return None
            return str(row["last_active_at"])

        return await self.cache.cache_aside(
            CacheKeys.user_last_active(user_id),
            load_last_active,
            CacheExpiry.FIVE_MINUTES,
        )
