"""
Watermark Store

SQLite persistence for the last notified value of every tracked entity:
- miners: unpaid balance and last payment timestamp
- pools: last block number
- workers: online flag and last seen time (pruned after a retention window)

Every mutation runs in its own transaction and touches a single row, so a
failed save never leaves an entity half-updated.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterator, Optional

import pytz

from flexassistant.models import Miner, Pool, Worker

logger = logging.getLogger(__name__)

DB_TIMEOUT = 5.0


class StoreError(Exception):
    """A watermark could not be read or written."""


class WatermarkStore:
    """
    SQLite database for notification watermarks.

    Lookups are find-or-create: the first lookup of a (coin, address) miner or
    of a pool coin inserts an empty row, later lookups return that same row.
    Empty watermarks are stored as NULL, meaning "never observed".
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_db()
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"cannot open database {self.db_path}: {e}") from e

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection wrapped in one transaction; commit on success."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=DB_TIMEOUT)
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database schema."""
        with sqlite3.connect(self.db_path, timeout=DB_TIMEOUT) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS miners (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    coin TEXT NOT NULL,
                    address TEXT NOT NULL,
                    balance TEXT,
                    last_payment_timestamp INTEGER,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (coin, address)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS pools (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    coin TEXT NOT NULL UNIQUE,
                    last_block_number INTEGER,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS workers (
                    miner_address TEXT NOT NULL,
                    name TEXT NOT NULL,
                    is_online INTEGER NOT NULL,
                    last_seen INTEGER NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (miner_address, name)
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_workers_last_seen
                ON workers(last_seen)
            """)
            conn.commit()
        conn.close()

    # -------------------------------------------------------------------------
    # Miners
    # -------------------------------------------------------------------------

    def get_or_create_miner(self, coin: str, address: str) -> Miner:
        now = _now_iso()
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO miners (coin, address, created_at, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (coin, address, now, now),
            )
            row = conn.execute(
                "SELECT * FROM miners WHERE coin = ? AND address = ?",
                (coin, address),
            ).fetchone()
        return _row_to_miner(row)

    def save_miner(self, miner: Miner) -> None:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE miners SET balance = ?, last_payment_timestamp = ?, updated_at = ? "
                "WHERE coin = ? AND address = ?",
                (
                    str(miner.balance) if miner.balance is not None else None,
                    miner.last_payment_timestamp,
                    _now_iso(),
                    miner.coin,
                    miner.address,
                ),
            )
            if cursor.rowcount != 1:
                raise StoreError(f"{miner} is not persisted")
        logger.debug(
            "Saved %s balance=%s last_payment_timestamp=%s",
            miner, miner.balance, miner.last_payment_timestamp,
        )

    # -------------------------------------------------------------------------
    # Pools
    # -------------------------------------------------------------------------

    def get_or_create_pool(self, coin: str) -> Pool:
        now = _now_iso()
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO pools (coin, created_at, updated_at) VALUES (?, ?, ?)",
                (coin, now, now),
            )
            row = conn.execute("SELECT * FROM pools WHERE coin = ?", (coin,)).fetchone()
        return Pool(
            coin=row["coin"],
            last_block_number=row["last_block_number"],
            id=row["id"],
        )

    def save_pool(self, pool: Pool) -> None:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE pools SET last_block_number = ?, updated_at = ? WHERE coin = ?",
                (pool.last_block_number, _now_iso(), pool.coin),
            )
            if cursor.rowcount != 1:
                raise StoreError(f"{pool} is not persisted")
        logger.debug("Saved %s last_block_number=%s", pool, pool.last_block_number)

    # -------------------------------------------------------------------------
    # Workers
    # -------------------------------------------------------------------------

    def get_worker(self, miner_address: str, name: str) -> Optional[Worker]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM workers WHERE miner_address = ? AND name = ?",
                (miner_address, name),
            ).fetchone()
        return _row_to_worker(row) if row else None

    def upsert_worker(self, worker: Worker) -> None:
        with self._connect() as conn:
            conn.execute("""
                INSERT INTO workers (miner_address, name, is_online, last_seen, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (miner_address, name) DO UPDATE SET
                    is_online = excluded.is_online,
                    last_seen = excluded.last_seen,
                    updated_at = excluded.updated_at
            """, (
                worker.miner_address,
                worker.name,
                int(worker.is_online),
                int(worker.last_seen.timestamp()),
                _now_iso(),
            ))

    def prune_stale_workers(self, older_than: datetime) -> int:
        """Remove workers last seen before `older_than`."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM workers WHERE last_seen < ?",
                (int(older_than.timestamp()),),
            )
            deleted = cursor.rowcount

        if deleted > 0:
            logger.info("Pruned %d workers last seen before %s", deleted, older_than.isoformat())

        return deleted


def _now_iso() -> str:
    return datetime.now(pytz.utc).isoformat()


def _row_to_miner(row: sqlite3.Row) -> Miner:
    return Miner(
        coin=row["coin"],
        address=row["address"],
        balance=Decimal(row["balance"]) if row["balance"] is not None else None,
        last_payment_timestamp=row["last_payment_timestamp"],
        id=row["id"],
    )


def _row_to_worker(row: sqlite3.Row) -> Worker:
    return Worker(
        miner_address=row["miner_address"],
        name=row["name"],
        is_online=bool(row["is_online"]),
        last_seen=datetime.fromtimestamp(row["last_seen"], pytz.utc),
    )
