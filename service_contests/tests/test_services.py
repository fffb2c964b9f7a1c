"""
Tests for the Contest Service cache consumers.
"""

import time
from unittest.mock import AsyncMock

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_contests.app.caching import CacheManager
from service_contests.app.services import (
    DocumentStatus,
    MatchDetails,
    MatchService,
    UserActivityService,
    WalletBalances,
    WalletService,
)
from shared.background import BackgroundTaskRunner
from shared.metrics import MetricsCollector
from shared.test_helpers import InMemoryRedis, make_cache_config


@pytest.fixture
def server():
    return InMemoryRedis()


@pytest.fixture
def cache(server):
    return CacheManager(make_cache_config(), client_factory=server, metrics=MetricsCollector("contests"))


@pytest.fixture
def store():
    store = AsyncMock()
    store.query_one.return_value = None
    store.query_all.return_value = []
    store.execute.return_value = 1
    return store


class TestWalletService:
    """Test cases for WalletService."""

    @pytest.fixture
    def service(self, cache, store):
        return WalletService(cache, store)

    @pytest.mark.asyncio
    async def test_balances_aggregate_wallet_amount(self, service, store, server):
        store.query_all.return_value = [
            {"payment_type": 3, "amount": 500},
            {"payment_type": 4, "amount": 250.5},
            {"payment_type": 1, "amount": 50},
            {"payment_type": 2, "amount": 20},
            {"payment_type": 9, "amount": 5},
            {"payment_type": 99, "amount": 1000},
        ]

        balances = await service.get_wallet_balances(1)

        assert balances == WalletBalances(
            bonus_amount=50,
            prize_amount=250.5,
            referral_amount=20,
            deposit_amount=500,
            extra_cash=5,
            wallet_amount=750.5,
        )
        assert server.ttls["test:user:1:walletBalances"] == 60

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rows,expected_ttl", [
        ([], 120),
        ([{"payment_type": 3, "amount": 20000}], 30),
        ([{"payment_type": 1, "amount": 20000}], 120),
    ])
    async def test_balance_ttl(self, service, store, server, rows, expected_ttl):
        store.query_all.return_value = rows

        await service.get_wallet_balances(2)

        assert server.ttls["test:user:2:walletBalances"] == expected_ttl

    @pytest.mark.asyncio
    async def test_balances_served_from_cache(self, service, store):
        store.query_all.return_value = [{"payment_type": 3, "amount": 10}]

        first = await service.get_wallet_balances(1)
        second = await service.get_wallet_balances(1)

        assert first == second
        store.query_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_document_status_verified(self, service, store, server):
        store.query_one.return_value = {
            "status": 2,
            "doc_type": "pancard",
            "doc_name": "A KUMAR",
            "doc_number": "ABCDE1234F",
        }

        status = await service.get_document_status(5)

        assert status == DocumentStatus(
            document_verified=2,
            doc_type="pancard",
            pan_name="A KUMAR",
            pan_number="ABCDE1234F",
        )
        assert store.query_one.await_args.args[1] == [5, "pancard", "adharcard"]
        assert server.ttls["test:user:5:documentStatus"] == 86400

    @pytest.mark.asyncio
    async def test_document_status_pending(self, service, store, server):
        store.query_one.return_value = {"status": 1, "doc_type": "adharcard"}

        status = await service.get_document_status(5)

        assert status.document_verified == 1
        assert server.ttls["test:user:5:documentStatus"] == 60

    @pytest.mark.asyncio
    async def test_document_status_not_submitted(self, service, server):
        status = await service.get_document_status(6)

        assert status == DocumentStatus()
        assert status.document_verified == 0
        assert server.ttls["test:user:6:documentStatus"] == 120

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, service, store):
        store.query_all.side_effect = ConnectionRefusedError("database down")

        with pytest.raises(ConnectionRefusedError):
            await service.get_wallet_balances(1)

    @pytest.mark.asyncio
    async def test_invalidate_user(self, service, store, server):
        store.query_all.return_value = [{"payment_type": 3, "amount": 10}]
        await service.get_wallet_balances(1)
        await service.get_document_status(1)
        await service.get_wallet_balances(2)

        removed = await service.invalidate_user(1)

        assert removed == 2
        assert list(server.data) == ["test:user:2:walletBalances"]
        await service.get_wallet_balances(1)
        assert store.query_all.await_count == 3


class TestMatchService:
    """Test cases for MatchService."""

    @pytest.fixture
    def service(self, cache, store):
        return MatchService(cache, store)

    @pytest.fixture
    def match_row(self):
        return {
            "match_id": 11,
            "title": "MI vs CSK",
            "team_a": "MI",
            "team_b": "CSK",
            "timestamp_start": int(time.time()) + 72 * 3600,
            "status": 1,
        }

    @pytest.mark.asyncio
    async def test_get_match_caches_by_start_time(self, service, store, server, match_row):
        store.query_one.return_value = match_row

        match = await service.get_match(11)

        assert match == MatchDetails(**match_row)
        assert server.ttls["test:match:11:details"] == 86400

    @pytest.mark.asyncio
    async def test_started_match_cached_briefly(self, service, store, server, match_row):
        match_row["timestamp_start"] = int(time.time()) - 600
        store.query_one.return_value = match_row

        await service.get_match(11)

        assert server.ttls["test:match:11:details"] == 60

    @pytest.mark.asyncio
    async def test_get_match_reads_through_cache(self, service, store, match_row):
        store.query_one.return_value = match_row

        await service.get_match(11)
        match = await service.get_match(11)

        assert match.title == "MI vs CSK"
        store.query_one.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_match(self, service, server):
        assert await service.get_match(404) is None
        assert "test:match:404:details" not in server.data


class TestUserActivityService:
    """Test cases for UserActivityService."""

    @pytest.fixture
    def tasks(self):
        return BackgroundTaskRunner("test")

    @pytest.fixture
    def service(self, cache, store, tasks):
        return UserActivityService(cache, store, tasks)

    @pytest.mark.asyncio
    async def test_update_last_active(self, service, store, tasks, server):
        assert await service.update_last_active(3) is True
        await tasks.shutdown(timeout=1)

        store.execute.assert_awaited_once()
        sql, params = store.execute.await_args.args
        assert sql.startswith("UPDATE users SET last_active_at")
        assert params[1] == 3
        assert server.data["test:user:3:lastActive"] == f'"{params[0]}"'
        assert server.ttls["test:user:3:lastActive"] == 3600

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id", [None, 0])
    async def test_update_without_user(self, service, store, user_id):
        assert await service.update_last_active(user_id) is False
        store.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_background_failure_does_not_fail_request(self, service, store, tasks):
        store.execute.side_effect = RuntimeError("deadlock detected")

        assert await service.update_last_active(3) is True
        await tasks.shutdown(timeout=1)

    @pytest.mark.asyncio
    async def test_get_last_active_reads_through(self, service, store, server):
        store.query_one.return_value = {"last_active_at": "2024-05-01 09:30:00"}

        first = await service.get_last_active(3)
        second = await service.get_last_active(3)

        assert first == second == "2024-05-01 09:30:00"
        store.query_one.assert_awaited_once()
        assert server.ttls["test:user:3:lastActive"] == 300

    @pytest.mark.asyncio
    async def test_get_last_active_unknown_user(self, service, server):
        assert await service.get_last_active(3) is None
        assert await service.get_last_active(None) is None
        assert "test:user:3:lastActive" not in server.data
