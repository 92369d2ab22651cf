"""Worker liveness — persist the latest worker list and age out stale rows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from flexassistant.models import OFFLINE_WORKER, Miner, Notification, Worker
from flexassistant.store import StoreError, WatermarkStore

logger = logging.getLogger(__name__)

RETENTION = timedelta(days=7)

UNKNOWN = "unknown"
ONLINE = "online"
OFFLINE = "offline"


@dataclass
class WorkerRefresh:
    worker: Worker
    previous_state: str  # unknown | online | offline
    saved: bool = True

    @property
    def state(self) -> str:
        return ONLINE if self.worker.is_online else OFFLINE


def worker_state(worker: Optional[Worker]) -> str:
    if worker is None:
        return UNKNOWN
    return ONLINE if worker.is_online else OFFLINE


def prune_workers(store: WatermarkStore, now: datetime) -> int:
    """Delete workers not seen within the retention window."""
    return store.prune_stale_workers(now - RETENTION)


def refresh_workers(store: WatermarkStore, workers: Iterable[Worker]) -> list[WorkerRefresh]:
    """Overwrite persisted rows with the fresh, authoritative worker list.

    A worker whose row cannot be written is reported with saved=False and
    must not be notified.
    """
    refreshes = []
    for worker in workers:
        try:
            previous = store.get_worker(worker.miner_address, worker.name)
            store.upsert_worker(worker)
        except StoreError as e:
            logger.warning("Cannot update %s: %s", worker, e)
            refreshes.append(WorkerRefresh(worker, UNKNOWN, saved=False))
            continue

        refresh = WorkerRefresh(worker, worker_state(previous))
        if refresh.previous_state != refresh.state:
            logger.info("%s is now %s (was %s)", worker, refresh.state, refresh.previous_state)
        refreshes.append(refresh)
    return refreshes


def offline_notifications(miner: Miner, refreshes: Iterable[WorkerRefresh]) -> list[Notification]:
    """One notification per saved worker currently reporting offline.

    Repeats on every poll while the worker stays offline; previous_state lets
    the sink tell a new outage from an ongoing one.
    """
    return [
        Notification(OFFLINE_WORKER, {
            "miner": miner,
            "worker": r.worker,
            "previous_state": r.previous_state,
        })
        for r in refreshes
        if r.saved and r.state == OFFLINE
    ]
