"""
Tests for the Redis connection lifecycle.
"""

import asyncio

import pytest
import redis.asyncio as redis
from redis.backoff import NoBackoff
from redis.exceptions import ConnectionError as RedisConnectionError

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_contests.app.caching.redis_client import ConnectionState, RedisClientManager
from shared.errors import CacheConnectionError
from shared.retry import RetryError
from shared.test_helpers import InMemoryRedis, make_cache_config


class TestRedisClientManager:
    """Test cases for RedisClientManager."""

    @pytest.fixture
    def server(self):
        return InMemoryRedis()

    @pytest.fixture
    def config(self):
        return make_cache_config(redis_host="cache.internal", redis_port=6380, redis_password="secret")

    @pytest.fixture
    def manager(self, config, server):
        return RedisClientManager(config, client_factory=server)

    def test_starts_disconnected(self, manager, server):
        assert manager.state is ConnectionState.DISCONNECTED
        assert manager.is_ready is False
        assert server.factory_calls == 0

    @pytest.mark.asyncio
    async def test_get_client_connects(self, manager, server):
        client = await manager.get_client()

        assert client is server
        assert manager.state is ConnectionState.READY
        assert manager.is_ready is True
        assert server.connect_kwargs["host"] == "cache.internal"
        assert server.connect_kwargs["port"] == 6380
        assert server.connect_kwargs["password"] == "secret"
        assert server.connect_kwargs["decode_responses"] is True
        assert server.connect_kwargs["socket_connect_timeout"] == pytest.approx(0.2)

    @pytest.mark.asyncio
    async def test_ready_client_is_reused(self, manager, server):
        await manager.get_client()
        await manager.get_client()
        assert server.factory_calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_handshake(self, config):
        server = InMemoryRedis(ping_delay=0.05)
        manager = RedisClientManager(config, client_factory=server)

        clients = await asyncio.gather(*[manager.get_client() for _ in range(10)])

        assert all(client is server for client in clients)
        assert server.factory_calls == 1
        assert server.command_names().count("ping") == 1

    @pytest.mark.asyncio
    async def test_state_is_connecting_during_handshake(self, config):
        server = InMemoryRedis(ping_delay=0.05)
        manager = RedisClientManager(config, client_factory=server)

        pending = asyncio.ensure_future(manager.get_client())
        await asyncio.sleep(0)
        assert manager.state is ConnectionState.CONNECTING

        await pending
        assert manager.state is ConnectionState.READY

    @pytest.mark.asyncio
    async def test_failed_handshake_enters_error(self, config):
        server = InMemoryRedis(fail_ping=True)
        manager = RedisClientManager(config, client_factory=server)

        with pytest.raises(CacheConnectionError) as exc_info:
            await manager.get_client()

        assert manager.state is ConnectionState.ERROR
        assert manager.is_ready is False
        assert "Connection refused" in manager.last_error
        assert isinstance(exc_info.value.cause, RedisConnectionError)
        assert server.closed == 1

    @pytest.mark.asyncio
    async def test_next_call_retries_after_failure(self, config):
        server = InMemoryRedis(fail_ping=True)
        manager = RedisClientManager(config, client_factory=server)

        with pytest.raises(CacheConnectionError):
            await manager.get_client()

        server.fail_ping = False
        client = await manager.get_client()

        assert client is server
        assert manager.state is ConnectionState.READY
        assert manager.last_error is None
        assert server.factory_calls == 2

    @pytest.mark.asyncio
    async def test_handshake_timeout(self):
        config = make_cache_config(connect_timeout_ms=20)
        server = InMemoryRedis(ping_delay=1.0)
        manager = RedisClientManager(config, client_factory=server)

        with pytest.raises(CacheConnectionError) as exc_info:
            await manager.get_client()

        assert "timeout after 20ms" in str(exc_info.value.message)
        assert manager.state is ConnectionState.ERROR

    @pytest.mark.asyncio
    async def test_execute_runs_command(self, manager, server):
        server.data["test:k"] = "v"
        value = await manager.execute("get", lambda client: client.get("test:k"))
        assert value == "v"

    @pytest.mark.asyncio
    async def test_execute_retries_transient_errors(self, manager, server):
        await manager.get_client()
        server.data["test:k"] = "v"
        server.fail_next(2)

        value = await manager.execute("get", lambda client: client.get("test:k"))

        assert value == "v"
        assert server.command_names().count("get") == 3

    @pytest.mark.asyncio
    async def test_execute_gives_up_after_max_retries(self, manager, server):
        await manager.get_client()
        server.always_fail = True

        with pytest.raises(RetryError) as exc_info:
            await manager.execute("get", lambda client: client.get("test:k"))

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_exception, RedisConnectionError)
        assert server.command_names().count("get") == 3

    @pytest.mark.asyncio
    async def test_execute_does_not_retry_other_errors(self, manager, server):
        async def broken(client):
            raise ValueError("bad command")

        with pytest.raises(ValueError):
            await manager.execute("broken", broken)

    @pytest.mark.asyncio
    async def test_execute_raises_when_unreachable(self, config):
        manager = RedisClientManager(config, client_factory=InMemoryRedis(fail_ping=True))

        with pytest.raises(CacheConnectionError):
            await manager.execute("get", lambda client: client.get("test:k"))

    @pytest.mark.asyncio
    async def test_health_check(self, manager, server):
        assert await manager.health_check() is True

        server.fail_ping = True
        assert await manager.health_check() is False

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, manager, server):
        await manager.get_client()

        await manager.close()
        await manager.close()

        assert manager.state is ConnectionState.DISCONNECTED
        assert server.closed == 1

    @pytest.mark.asyncio
    async def test_close_cancels_pending_handshake(self, config):
        server = InMemoryRedis(ping_delay=1.0)
        manager = RedisClientManager(config, client_factory=server)

        pending = asyncio.ensure_future(manager.get_client())
        await asyncio.sleep(0.01)
        await manager.close()

        with pytest.raises(asyncio.CancelledError):
            await pending
        assert manager.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_reconnects_after_close(self, manager, server):
        await manager.get_client()
        await manager.close()

        await manager.get_client()

        assert manager.state is ConnectionState.READY
        assert server.factory_calls == 2


class TestRedisClientSettings:
    """Settings handed to the real redis.asyncio client."""

    @pytest.mark.asyncio
    async def test_real_client_does_not_retry_on_its_own(self):
        config = make_cache_config(command_timeout_ms=750, max_retries_per_request=3)
        manager = RedisClientManager(config)

        client = manager._create_client()
        try:
            assert isinstance(client, redis.Redis)
            kwargs = client.get_connection_kwargs()
            assert kwargs["retry"]._retries == 0
            assert isinstance(kwargs["retry"]._backoff, NoBackoff)
            assert kwargs["socket_timeout"] == pytest.approx(0.75)
            assert kwargs["socket_connect_timeout"] == pytest.approx(0.2)
            assert kwargs["decode_responses"] is True
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_factory_receives_zero_retry_policy(self):
        server = InMemoryRedis()
        manager = RedisClientManager(make_cache_config(), client_factory=server)

        await manager.get_client()

        assert server.connect_kwargs["retry"]._retries == 0
        assert server.connect_kwargs["socket_timeout"] == pytest.approx(5.0)

    @pytest.mark.asyncio
    async def test_command_attempts_bounded_by_config(self):
        server = InMemoryRedis()
        manager = RedisClientManager(make_cache_config(max_retries_per_request=2), client_factory=server)
        await manager.get_client()
        server.always_fail = True

        with pytest.raises(RetryError):
            await manager.execute("get", lambda client: client.get("test:k"))

        assert server.command_names().count("get") == 2
