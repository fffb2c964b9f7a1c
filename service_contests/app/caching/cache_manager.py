"""
Two-tier cache-aside manager.

Reads check the process-local tier first, then Redis. Writes go to both.
Cache infrastructure failures are logged and absorbed: reads degrade to a
miss and writes report False. Errors raised by compute callbacks passed to
``cache_aside`` are business errors and propagate unchanged.
"""

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from shared.config import CacheConfig, get_cache_config
from shared.errors import CacheSerializationError
from shared.logging import get_logger, log_cache_operation
from shared.metrics import MetricsCollector, get_metrics_collector

from .compression import DECODE_FAILED, CompressedPayload, CompressionCodec
from .local_cache import LocalCache
from .redis_client import ConnectionState, RedisClientManager


META_SUFFIX = ":meta"
COMPRESSED_FLAG = "1"
LOCK_VALUE = "1"
SCAN_BATCH_SIZE = 100

ComputeFn = Callable[[], Union[Any, Awaitable[Any]]]


class CacheManager:
    """Process-wide cache facade. Construct once at startup and share."""

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        *,
        client_factory: Optional[Callable[..., Any]] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or get_cache_config()
        self.logger = get_logger("contests.cache")
        self.metrics = metrics or get_metrics_collector("contests")

        self.local = LocalCache(
            max_size=self.config.memory_cache_max_size,
            ttl_seconds=self.config.memory_cache_ttl_seconds,
            clock=clock,
        )
        if client_factory is None:
            self.client_manager = RedisClientManager(self.config)
        else:
            self.client_manager = RedisClientManager(self.config, client_factory=client_factory)
        self.codec = CompressionCodec(self.config.compression_threshold_bytes)

    # Key namespacing

    def _redis_key(self, key: str) -> str:
        return f"{self.config.key_prefix}{key}"

    def _meta_key(self, key: str) -> str:
        return f"{self._redis_key(key)}{META_SUFFIX}"

    def _lock_key(self, key: str) -> str:
        return self._redis_key(f"lock:{key}")

    # Public operations

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value or None. Never raises."""
        start = time.perf_counter()

        value = self._get_local(key)
        if value is not None:
            self._record("get", key, start, tier="local", result="hit")
            return value

        try:
            payload, meta = await self.client_manager.execute(
                "get",
                lambda client: client.mget([self._redis_key(key), self._meta_key(key)]),
            )
        except Exception as exc:
            self._record_error("get", key, exc)
            return None

        if payload is None:
            self._record("get", key, start, tier="redis", result="miss")
            return None

        text, value = await self._decode(payload, meta)
        if value is DECODE_FAILED or value is None:
            self.logger.warning("Discarding undecodable cache entry", key=key, operation="get")
            self.metrics.increment_counter("cache_errors_total", operation="get")
            self._record("get", key, start, tier="redis", result="miss")
            return None

        self._set_local(key, text)
        self._record("get", key, start, tier="redis", result="hit")
        return value

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """Write both tiers. Returns the outcome of the Redis write only."""
        start = time.perf_counter()
        ttl = self._resolve_ttl(ttl_seconds)

        try:
            text = self.codec.serialize(value)
        except CacheSerializationError as exc:
            self._record_error("set", key, exc, ttl_seconds=ttl)
            return False

        self._set_local(key, text)

        try:
            encoded = await self.codec.compress_text(text)
            await self.client_manager.execute(
                "set",
                lambda client: self._write_entries(client, [(key, encoded)], ttl),
            )
        except Exception as exc:
            self._record_error("set", key, exc, ttl_seconds=ttl)
            return False

        self._record("set", key, start, tier="redis", result="ok")
        return True

    async def mget(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Batch get. Missing and undecodable keys are absent from the result."""
        start = time.perf_counter()
        result: Dict[str, Any] = {}
        missing: List[str] = []

        for key in dict.fromkeys(keys):
            value = self._get_local(key)
            if value is not None:
                result[key] = value
            else:
                missing.append(key)

        if not missing:
            return result

        redis_keys = [self._redis_key(key) for key in missing]
        redis_keys += [self._meta_key(key) for key in missing]
        try:
            values = await self.client_manager.execute(
                "mget", lambda client: client.mget(redis_keys)
            )
        except Exception as exc:
            self._record_error("mget", ",".join(missing), exc)
            return result

        payloads, metas = values[:len(missing)], values[len(missing):]
        for key, payload, meta in zip(missing, payloads, metas):
            if payload is None:
                continue
            text, value = await self._decode(payload, meta)
            if value is DECODE_FAILED or value is None:
                self.logger.debug("Skipping undecodable cache entry", key=key, operation="mget")
                continue
            self._set_local(key, text)
            result[key] = value

        self._record(
            "mget", ",".join(missing), start, tier="redis",
            result="hit" if len(result) == len(missing) else "miss",
        )
        return result

    async def mset(self, entries: Mapping[str, Any], ttl_seconds: Optional[int] = None) -> bool:
        """Batch set in a single pipelined round trip.

        Values that cannot be serialized are skipped and make the result False.
        """
        start = time.perf_counter()
        ttl = self._resolve_ttl(ttl_seconds)
        if not entries:
            return True

        encoded: List[Tuple[str, CompressedPayload]] = []
        all_encoded = True
        for key, value in entries.items():
            try:
                text = self.codec.serialize(value)
            except CacheSerializationError as exc:
                all_encoded = False
                self._record_error("mset", key, exc, ttl_seconds=ttl)
                continue
            self._set_local(key, text)
            encoded.append((key, await self.codec.compress_text(text)))

        if not encoded:
            return False

        try:
            await self.client_manager.execute(
                "mset", lambda client: self._write_entries(client, encoded, ttl)
            )
        except Exception as exc:
            self._record_error("mset", ",".join(key for key, _ in encoded), exc, ttl_seconds=ttl)
            return False

        self._record("mset", ",".join(key for key, _ in encoded), start, tier="redis", result="ok")
        return all_encoded

    async def delete(self, key: str) -> bool:
        """Remove a key from both tiers. Returns the outcome of the Redis delete."""
        start = time.perf_counter()
        self.local.delete(key)
        self.metrics.set_gauge("cache_local_entries", len(self.local))

        try:
            await self.client_manager.execute(
                "delete",
                lambda client: client.delete(self._redis_key(key), self._meta_key(key)),
            )
        except Exception as exc:
            self._record_error("delete", key, exc)
            return False

        self._record("delete", key, start, tier="redis", result="ok")
        return True

    async def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching a glob ``pattern`` (unprefixed) from both tiers.

        Redis is walked with SCAN and the matches, plus the compression flags
        of matched values, are deleted in one pipeline. Returns the number of
        cached values removed; flag and lock entries are not counted.
        """
        start = time.perf_counter()
        self.local.delete_matching(pattern)

        try:
            matched = await self.client_manager.execute(
                "scan", lambda client: self._scan_keys(client, self._redis_key(pattern))
            )
            values = [key for key in matched if self._is_value_key(key)]
            keys = list(dict.fromkeys(matched + [f"{key}{META_SUFFIX}" for key in values]))
            if keys:
                await self.client_manager.execute(
                    "delete_pattern", lambda client: self._delete_keys(client, keys)
                )
        except Exception as exc:
            self._record_error("delete_pattern", pattern, exc)
            self.metrics.set_gauge("cache_local_entries", len(self.local))
            return 0

        prefix_length = len(self.config.key_prefix)
        for redis_key in values:
            self.local.delete(redis_key[prefix_length:])
        self.metrics.set_gauge("cache_local_entries", len(self.local))

        self.logger.info("Deleted cache pattern", pattern=pattern, keys_count=len(values))
        self._record("delete_pattern", pattern, start, tier="redis", result="ok")
        return len(values)

    async def cache_aside(self, key: str, compute: ComputeFn, ttl_seconds: Optional[int] = None) -> Any:
        """Return the cached value for ``key`` or compute, cache and return it.

        On a miss, an advisory ``lock:{key}`` entry limits concurrent
        recomputation across workers. A worker that loses the lock waits once
        for a short fixed delay, re-reads, and computes anyway if still cold.
        ``None`` results are returned but not cached.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        if self.client_manager.state is ConnectionState.ERROR:
            locked = None
        else:
            locked = await self._acquire_lock(key)

        if locked is False:
            await asyncio.sleep(self.config.lock_wait_ms / 1000)
            cached = await self.get(key)
            if cached is not None:
                return cached
            outcome = "lock_contended"
        elif locked is None:
            outcome = "lock_unavailable"
        else:
            outcome = "lock_acquired"

        self.metrics.increment_counter("cache_compute_total", result=outcome)
        try:
            result = compute()
            if inspect.isawaitable(result):
                result = await result

            if result is not None:
                await self.set(key, result, ttl_seconds)
            return result
        finally:
            if locked:
                await self._release_lock(key)

    # Lifecycle and introspection

    def clear_local(self) -> None:
        """Empty the process-local tier."""
        self.local.clear()
        self.metrics.set_gauge("cache_local_entries", 0)
        self.logger.debug("Memory cache cleared")

    async def health_check(self) -> bool:
        return await self.client_manager.health_check()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "memory_cache_size": len(self.local),
            "memory_cache_max_size": self.local.max_size,
            "memory_cache_ttl_seconds": self.local.ttl_seconds,
            "redis_state": self.client_manager.state.value,
            "redis_connected": self.client_manager.is_ready,
            "redis_last_error": self.client_manager.last_error,
            "compression_threshold_bytes": self.codec.threshold_bytes,
        }

    async def close(self) -> None:
        """Close the Redis client and clear the local tier. Idempotent."""
        await self.client_manager.close()
        self.clear_local()

    # Internals

    def _resolve_ttl(self, ttl_seconds: Optional[int]) -> int:
        return self.config.default_ttl_seconds if ttl_seconds is None else int(ttl_seconds)

    def _get_local(self, key: str) -> Optional[Any]:
        text = self.local.get(key)
        if text is None:
            return None
        value = self.codec.deserialize(text)
        return None if value is DECODE_FAILED else value

    def _set_local(self, key: str, text: str) -> None:
        # The local tier holds serialized text so callers never share mutable values.
        self.local.set(key, text)
        self.metrics.set_gauge("cache_local_entries", len(self.local))

    async def _decode(self, payload: Any, meta: Optional[str]) -> Tuple[Any, Any]:
        text = await self.codec.decompress_text(payload, meta == COMPRESSED_FLAG)
        if text is DECODE_FAILED:
            return text, DECODE_FAILED
        return text, self.codec.deserialize(text)

    async def _write_entries(self, client: Any, entries: List[Tuple[str, CompressedPayload]], ttl: int) -> None:
        # MULTI/EXEC keeps each value and its compression flag in step.
        async with client.pipeline(transaction=True) as pipe:
            for key, encoded in entries:
                pipe.setex(self._redis_key(key), ttl, encoded.payload)
                if encoded.compressed:
                    pipe.setex(self._meta_key(key), ttl, COMPRESSED_FLAG)
                else:
                    pipe.delete(self._meta_key(key))
            await pipe.execute()

    def _is_value_key(self, redis_key: str) -> bool:
        key = redis_key[len(self.config.key_prefix):]
        return not key.endswith(META_SUFFIX) and not key.startswith("lock:")

    async def _scan_keys(self, client: Any, match: str) -> List[str]:
        found = [key async for key in client.scan_iter(match=match, count=SCAN_BATCH_SIZE)]
        return list(dict.fromkeys(found))

    async def _delete_keys(self, client: Any, keys: List[str]) -> None:
        async with client.pipeline(transaction=False) as pipe:
            for key in keys:
                pipe.delete(key)
            await pipe.execute()

    async def _acquire_lock(self, key: str) -> Optional[bool]:
        """SET NX the stampede lock. Returns None when Redis is unavailable."""
        try:
            acquired = await self.client_manager.execute(
                "lock",
                lambda client: client.set(
                    self._lock_key(key), LOCK_VALUE, nx=True, ex=self.config.lock_ttl_seconds
                ),
            )
        except Exception as exc:
            self.logger.warning("Stampede lock unavailable", key=key, error=str(exc))
            return None
        return bool(acquired)

    async def _release_lock(self, key: str) -> None:
        try:
            await self.client_manager.execute(
                "unlock", lambda client: client.delete(self._lock_key(key))
            )
        except Exception as exc:
            # The lock expires on its own after lock_ttl_seconds.
            self.logger.warning("Failed to release stampede lock", key=key, error=str(exc))

    def _record(self, operation: str, key: str, start: float, *, tier: str, result: str) -> None:
        duration = time.perf_counter() - start
        self.metrics.increment_counter("cache_requests_total", operation=operation, tier=tier, result=result)
        self.metrics.observe_histogram("cache_operation_duration_seconds", duration, operation=operation)
        log_cache_operation(self.logger, operation, key, result in ("hit", "ok"), duration * 1000)

    def _record_error(self, operation: str, key: str, exc: Exception, **context: Any) -> None:
        self.metrics.increment_counter("cache_errors_total", operation=operation)
        self.logger.error(
            "Cache operation failed",
            operation=operation,
            key=key,
            error=str(exc),
            error_type=type(exc).__name__,
            **context,
        )
