"""Polling cycle — fetch, reconcile, persist, then notify.

One call to PollingCycle.run() processes every configured miner, then every
configured pool, sequentially. Each axis (balance, payments, workers, blocks)
is isolated: a failure is logged and the cycle moves on. For every change the
watermark is saved before the notification is dispatched, so a crash or a
failed save can miss a notification but never repeat one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Optional

import pytz

from flexassistant.engine.liveness import offline_notifications, prune_workers, refresh_workers
from flexassistant.engine.reconcile import (
    Reconciliation,
    reconcile_balance,
    reconcile_blocks,
    reconcile_payments,
)
from flexassistant.models import Miner, Notification, Pool
from flexassistant.notify.base import NotificationError, Notifier
from flexassistant.providers.base import PoolAPIError, PoolClient
from flexassistant.store import StoreError, WatermarkStore
from flexassistant.utils.coins import parse_coin
from flexassistant.utils.config import Config, MinerConfig, PoolConfig

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    sent: int = 0
    # "<entity> <axis>: <error>" for every axis that was skipped or not notified
    errors: list[str] = field(default_factory=list)

    def error(self, message: str) -> None:
        logger.warning(message)
        self.errors.append(message)


class PollingCycle:
    def __init__(
        self,
        config: Config,
        client: PoolClient,
        store: WatermarkStore,
        notifier: Notifier,
    ):
        self.config = config
        self.client = client
        self.store = store
        self.notifier = notifier

    def run(self, now: Optional[datetime] = None) -> CycleReport:
        """Run one complete cycle and return what happened."""
        now = now or datetime.now(pytz.utc)
        report = CycleReport()

        try:
            prune_workers(self.store, now)
        except StoreError as e:
            report.error(f"workers prune: {e}")

        for miner_config in self.config.miners:
            self.process_miner(miner_config, report)

        for pool_config in self.config.pools:
            self.process_pool(pool_config, report)

        logger.info(
            "Cycle complete: %d notifications sent, %d errors",
            report.sent, len(report.errors),
        )
        return report

    # -------------------------------------------------------------------------
    # Miners
    # -------------------------------------------------------------------------

    def process_miner(self, miner_config: MinerConfig, report: CycleReport) -> None:
        try:
            coin = miner_config.coin or parse_coin(miner_config.address)
            if not miner_config.address:
                raise ValueError("Miner address is empty")
        except ValueError as e:
            report.error(f"Could not parse miner: {e}")
            return

        try:
            miner = self.store.get_or_create_miner(coin, miner_config.address)
        except StoreError as e:
            report.error(f"Cannot fetch miner {miner_config.address} from database: {e}")
            return

        if miner_config.enable_balance:
            self._balance(miner, report)
        if miner_config.enable_payments:
            self._payments(miner, report)
        if miner_config.enable_offline_workers:
            self._workers(miner, report)

    def _balance(self, miner: Miner, report: CycleReport) -> None:
        logger.debug("Fetching balance for %s", miner)
        try:
            balance = self.client.fetch_balance(miner.coin, miner.address)
        except PoolAPIError as e:
            report.error(f"{miner} balance: could not fetch unpaid balance: {e}")
            return
        logger.debug("Unpaid balance %s", balance)

        result = reconcile_balance(miner, balance)
        self._commit(
            miner, result, report, "balance",
            lambda: self._save_miner(miner, balance=result.watermark),
        )

    def _payments(self, miner: Miner, report: CycleReport) -> None:
        logger.debug("Fetching payments for %s", miner)
        try:
            payments = self.client.fetch_payments(
                miner.coin, miner.address, self.config.max_payments
            )
        except PoolAPIError as e:
            report.error(f"{miner} payments: could not fetch payments: {e}")
            return

        result = reconcile_payments(miner, payments)
        self._commit(
            miner, result, report, "payments",
            lambda: self._save_miner(miner, last_payment_timestamp=result.watermark),
        )

    def _workers(self, miner: Miner, report: CycleReport) -> None:
        logger.debug("Fetching workers for %s", miner)
        try:
            workers = self.client.fetch_workers(miner.coin, miner.address)
        except PoolAPIError as e:
            report.error(f"{miner} workers: could not fetch workers: {e}")
            return

        refreshes = refresh_workers(self.store, workers)
        for refresh in refreshes:
            if not refresh.saved:
                report.errors.append(f"{refresh.worker} workers: not saved")
        self._dispatch(offline_notifications(miner, refreshes), report)

    def _save_miner(self, miner: Miner, **changes) -> None:
        updated = replace(miner, **changes)
        self.store.save_miner(updated)
        # Only a persisted watermark is visible to the next axis
        for name, value in changes.items():
            setattr(miner, name, value)

    # -------------------------------------------------------------------------
    # Pools
    # -------------------------------------------------------------------------

    def process_pool(self, pool_config: PoolConfig, report: CycleReport) -> None:
        if not pool_config.coin:
            report.error("Could not parse pool: coin is empty")
            return

        try:
            pool = self.store.get_or_create_pool(pool_config.coin)
        except StoreError as e:
            report.error(f"Cannot fetch pool {pool_config.coin} from database: {e}")
            return

        if pool_config.enable_blocks:
            self._blocks(pool, pool_config, report)

    def _blocks(self, pool: Pool, pool_config: PoolConfig, report: CycleReport) -> None:
        logger.debug("Fetching blocks for %s", pool)
        try:
            blocks = self.client.fetch_blocks(pool.coin, self.config.max_blocks)
        except PoolAPIError as e:
            report.error(f"{pool} blocks: could not fetch blocks: {e}")
            return

        result = reconcile_blocks(pool, blocks, pool_config.min_block_reward)
        self._commit(pool, result, report, "blocks", lambda: self._save_pool(pool, result.watermark))

    def _save_pool(self, pool: Pool, last_block_number: int) -> None:
        self.store.save_pool(replace(pool, last_block_number=last_block_number))
        pool.last_block_number = last_block_number

    # -------------------------------------------------------------------------
    # Persist then notify
    # -------------------------------------------------------------------------

    def _commit(
        self,
        entity,
        result: Reconciliation,
        report: CycleReport,
        axis: str,
        save: Callable[[], None],
    ) -> None:
        if not result.changed:
            logger.debug("%s %s: no change", entity, axis)
            return
        try:
            save()
        except StoreError as e:
            report.error(f"{entity} {axis}: cannot update watermark: {e}")
            return
        logger.debug("%s %s: %s to %s", entity, axis, result.status, result.watermark)
        self._dispatch(result.notifications, report)

    def _dispatch(self, notifications: list[Notification], report: CycleReport) -> None:
        for notification in notifications:
            try:
                self.notifier.notify(notification.kind, notification.payload)
            except NotificationError as e:
                report.error(f"{notification.kind} notification: cannot send notification: {e}")
                continue
            report.sent += 1
            logger.info("%s notification sent", notification.kind)
