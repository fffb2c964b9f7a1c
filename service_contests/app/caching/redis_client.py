"""
Redis connection lifecycle for the distributed cache tier.

One lazily-created client per process. Concurrent callers that arrive while
the handshake is running await the same in-flight attempt; a failed attempt
is cleared so the next call retries. There is no background reconnect loop.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from shared.config import CacheConfig
from shared.errors import CacheConnectionError
from shared.logging import get_logger
from shared.retry import RetryConfig, retry_on_exception

T = TypeVar("T")

TRANSIENT_ERRORS = (RedisConnectionError, RedisTimeoutError)


class ConnectionState(str, Enum):
    """Distributed client connection states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    ERROR = "error"  # last handshake failed; next call retries


class RedisClientManager:
    """Owns the shared Redis client and runs commands under a bounded retry policy."""

    def __init__(
        self,
        config: CacheConfig,
        client_factory: Callable[..., Any] = redis.Redis,
    ):
        self.config = config
        self.logger = get_logger("contests.cache.redis")
        self._client_factory = client_factory
        self._client: Optional[Any] = None
        self._connecting: Optional[asyncio.Task] = None

        self.state = ConnectionState.DISCONNECTED
        self.last_error: Optional[str] = None

        self.retry_config = RetryConfig(
            max_attempts=config.max_retries_per_request,
            base_delay=config.retry_base_delay_ms / 1000,
            max_delay=config.retry_max_delay_ms / 1000,
            jitter=False,
            backoff_strategy="linear",
        )
        self._run_with_retry = retry_on_exception(
            TRANSIENT_ERRORS, self.retry_config, name="redis_command"
        )(self._run_command)

    @property
    def is_ready(self) -> bool:
        return self.state is ConnectionState.READY and self._client is not None

    async def get_client(self) -> Any:
        """Return the ready client, connecting first if needed.

        Raises CacheConnectionError when the handshake fails or times out.
        """
        if self.is_ready:
            return self._client

        if self._connecting is None:
            self.state = ConnectionState.CONNECTING
            self._connecting = asyncio.get_running_loop().create_task(
                self._connect(), name="redis-connect"
            )

        # A cancelled caller must not abort the handshake other callers share.
        return await asyncio.shield(self._connecting)

    def _create_client(self) -> Any:
        # Command retries belong to execute(); the client itself must not retry.
        return self._client_factory(
            host=self.config.redis_host,
            port=self.config.redis_port,
            password=self.config.redis_password,
            db=self.config.redis_db,
            ssl=self.config.redis_tls,
            socket_connect_timeout=self.config.connect_timeout,
            socket_timeout=self.config.command_timeout,
            decode_responses=True,
            retry=Retry(NoBackoff(), 0),
        )

    async def _connect(self) -> Any:
        client = None
        try:
            client = self._create_client()
            await asyncio.wait_for(client.ping(), timeout=self.config.connect_timeout)
        except asyncio.CancelledError:
            self.state = ConnectionState.DISCONNECTED
            await self._discard(client)
            raise
        except Exception as exc:
            if isinstance(exc, asyncio.TimeoutError):
                message = f"Redis connection timeout after {self.config.connect_timeout_ms}ms"
            else:
                message = f"Redis connection failed: {exc}"
            self.state = ConnectionState.ERROR
            self.last_error = message
            self.logger.error(
                "Redis connection failed",
                host=self.config.redis_host,
                port=self.config.redis_port,
                error=message,
            )
            await self._discard(client)
            raise CacheConnectionError(message, cause=exc) from exc
        finally:
            self._connecting = None

        self._client = client
        self.state = ConnectionState.READY
        self.last_error = None
        self.logger.info(
            "Redis client ready",
            host=self.config.redis_host,
            port=self.config.redis_port,
            db=self.config.redis_db,
        )
        return client

    async def _discard(self, client: Optional[Any]) -> None:
        if client is None:
            return
        try:
            await client.aclose()
        except Exception as exc:
            self.logger.debug("Failed to close half-open Redis client", error=str(exc))

    async def _run_command(self, client: Any, command: Callable[[Any], Awaitable[T]]) -> T:
        return await command(client)

    async def execute(self, operation: str, command: Callable[[Any], Awaitable[T]]) -> T:
        """Run ``command(client)`` with transient-error retries.

        Raises CacheConnectionError when no connection is available and
        RetryError once retries are exhausted.
        """
        client = await self.get_client()
        self.logger.debug("Redis command", operation=operation)
        return await self._run_with_retry(client, command)

    async def health_check(self) -> bool:
        """Check Redis health without raising."""
        try:
            client = await self.get_client()
            await client.ping()
            return True
        except Exception as exc:
            self.logger.warning("Redis health check failed", error=str(exc))
            return False

    async def close(self) -> None:
        """Tear down the client. Safe to call repeatedly."""
        pending = self._connecting
        if pending is not None:
            pending.cancel()
            await asyncio.gather(pending, return_exceptions=True)
            self._connecting = None

        client, self._client = self._client, None
        if client is not None:
            await client.aclose()
            self.logger.info("Redis client closed")

        self.state = ConnectionState.DISCONNECTED
