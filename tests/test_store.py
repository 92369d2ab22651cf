"""Tests for the SQLite watermark store."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytz

from flexassistant.models import Miner, Pool, Worker
from flexassistant.store import StoreError, WatermarkStore

ADDRESS = "0x" + "ab" * 20
NOW = pytz.utc.localize(datetime(2025, 6, 1, 12, 0))


@pytest.fixture
def store(tmp_path):
    return WatermarkStore(tmp_path / "flexassistant.db")


class TestMiners:
    def test_get_or_create_is_idempotent(self, store):
        first = store.get_or_create_miner("eth", ADDRESS)
        second = store.get_or_create_miner("eth", ADDRESS)
        assert first.id == second.id
        assert first == second

    def test_new_miner_has_no_watermarks(self, store):
        miner = store.get_or_create_miner("eth", ADDRESS)
        assert miner.balance is None
        assert miner.last_payment_timestamp is None

    def test_same_address_other_coin_is_another_miner(self, store):
        eth = store.get_or_create_miner("eth", ADDRESS)
        etc = store.get_or_create_miner("etc", ADDRESS)
        assert eth.id != etc.id

    def test_save_and_reload(self, store):
        miner = store.get_or_create_miner("eth", ADDRESS)
        miner.balance = Decimal("123456789012345678901")
        miner.last_payment_timestamp = 1700000000
        store.save_miner(miner)

        reloaded = store.get_or_create_miner("eth", ADDRESS)
        assert reloaded.balance == Decimal("123456789012345678901")
        assert reloaded.last_payment_timestamp == 1700000000

    def test_zero_balance_survives_reload(self, store):
        miner = store.get_or_create_miner("eth", ADDRESS)
        miner.balance = Decimal(0)
        store.save_miner(miner)
        assert store.get_or_create_miner("eth", ADDRESS).balance == Decimal(0)

    def test_save_unknown_miner_fails(self, store):
        with pytest.raises(StoreError):
            store.save_miner(Miner(coin="eth", address="0xunknown", balance=Decimal(1)))

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "flexassistant.db"
        first = WatermarkStore(path)
        miner = first.get_or_create_miner("eth", ADDRESS)
        miner.last_payment_timestamp = 42
        first.save_miner(miner)

        second = WatermarkStore(path)
        assert second.get_or_create_miner("eth", ADDRESS).last_payment_timestamp == 42


class TestPools:
    def test_get_or_create_is_idempotent(self, store):
        assert store.get_or_create_pool("eth").id == store.get_or_create_pool("eth").id

    def test_save_and_reload(self, store):
        pool = store.get_or_create_pool("eth")
        assert pool.last_block_number is None
        pool.last_block_number = 15_000_000
        store.save_pool(pool)
        assert store.get_or_create_pool("eth").last_block_number == 15_000_000

    def test_save_unknown_pool_fails(self, store):
        with pytest.raises(StoreError):
            store.save_pool(Pool(coin="zzz", last_block_number=1))


class TestWorkers:
    def test_upsert_creates_then_overwrites(self, store):
        store.upsert_worker(Worker(ADDRESS, "rig1", True, NOW - timedelta(minutes=5)))
        store.upsert_worker(Worker(ADDRESS, "rig1", False, NOW))

        worker = store.get_worker(ADDRESS, "rig1")
        assert worker.is_online is False
        assert worker.last_seen == NOW

    def test_get_missing_worker(self, store):
        assert store.get_worker(ADDRESS, "nope") is None

    def test_prune_retention(self, store):
        store.upsert_worker(Worker(ADDRESS, "old", False, NOW - timedelta(days=8)))
        store.upsert_worker(Worker(ADDRESS, "recent", True, NOW - timedelta(days=6)))

        deleted = store.prune_stale_workers(NOW - timedelta(days=7))

        assert deleted == 1
        assert store.get_worker(ADDRESS, "old") is None
        assert store.get_worker(ADDRESS, "recent") is not None


def test_unopenable_database(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    with pytest.raises(StoreError):
        WatermarkStore(blocker / "sub" / "flexassistant.db")
