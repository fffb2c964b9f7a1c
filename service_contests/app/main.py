"""
Contest service for the Fantasy Contest Platform.

Composition root: builds exactly one CacheManager and one
BackgroundTaskRunner per process and hands them to consumers.
"""

from typing import Any, Dict, Optional

from shared.background import BackgroundTaskRunner
from shared.base_service import BaseService
from shared.config import CacheConfig, get_cache_config
from shared.metrics import MetricsCollector, get_metrics_collector

from .caching import CacheManager


class ContestsService(BaseService):
    """Contest service implementation."""

    def __init__(
        self,
        cache: Optional[CacheManager] = None,
        tasks: Optional[BackgroundTaskRunner] = None,
        cache_config: Optional[CacheConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        metrics = metrics or (cache.metrics if cache is not None else get_metrics_collector("contests"))
        super().__init__("contests", 8020, metrics=metrics)

        self.cache = cache or CacheManager(cache_config or get_cache_config(), metrics=self.metrics)
        self.tasks = tasks or BackgroundTaskRunner("contests")

        self._setup_contest_routes()

    def _setup_contest_routes(self):
        """Set up contest-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "contests",
                "message": "Fantasy Contest Platform - Contest Service",
                "version": "1.0.0"
            }

        @self.app.get("/cache/stats")
        async def cache_stats() -> Dict[str, Any]:
            """Cache statistics."""
            stats = self.cache.get_stats()
            stats["background_tasks_pending"] = self.tasks.pending
            return stats

    async def _check_dependencies(self) -> Dict[str, str]:
        # A cache outage degrades latency only, so it never fails health.
        redis_ok = await self.cache.health_check()
        return {"redis": "ok" if redis_ok else "degraded"}

    async def on_shutdown(self) -> None:
        await self.tasks.shutdown()
        await self.cache.close()
        await super().on_shutdown()


def create_app(**kwargs):
    """Create the Contest Service FastAPI app."""
    service = ContestsService(**kwargs)
    return service.app


if __name__ == "__main__":
    ContestsService().run()
