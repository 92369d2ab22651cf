"""Notification test harness — sends sample notifications built from live data.

Invoked explicitly from the command line; the polling cycle never calls it.
"""

from __future__ import annotations

import logging
import random
from decimal import Decimal

from flexassistant.models import (
    BALANCE,
    BLOCK,
    NOTIFICATION_KINDS,
    OFFLINE_WORKER,
    PAYMENT,
    Miner,
    Pool,
)
from flexassistant.notify.base import Notifier
from flexassistant.providers.base import PoolAPIError
from flexassistant.providers.flexpool import FlexpoolClient
from flexassistant.utils.config import NotificationsConfig

logger = logging.getLogger(__name__)


class SampleBuilder:
    """Build realistic payloads from a random pool and one of its top miners."""

    def __init__(self, client: FlexpoolClient, rng: random.Random | None = None):
        self.client = client
        self.rng = rng or random.Random()

    def random_pool(self) -> Pool:
        logger.debug("Fetching a random pool")
        coins = self.client.fetch_coins()
        if not coins:
            raise PoolAPIError("pool has no coins")
        return Pool(coin=self.rng.choice(coins))

    def random_miner(self, pool: Pool) -> Miner:
        logger.debug("Fetching a random miner")
        addresses = self.client.fetch_top_miners(pool.coin)
        if not addresses:
            raise PoolAPIError(f"{pool} has no top miners")
        miner = Miner(coin=pool.coin, address=self.rng.choice(addresses))
        miner.balance = self.client.fetch_balance(miner.coin, miner.address)
        return miner

    def build(self, kind: str) -> dict:
        pool = self.random_pool()
        if kind == BLOCK:
            blocks = self.client.fetch_blocks(pool.coin, 1)
            if not blocks:
                raise PoolAPIError(f"{pool} has no blocks")
            pool.last_block_number = blocks[0].number
            return {"pool": pool, "block": blocks[0]}

        miner = self.random_miner(pool)
        if kind == BALANCE:
            # Pretend the last tenth of the balance arrived since the previous cycle
            difference = max((miner.balance / 10).to_integral_value(), Decimal(1))
            return {
                "miner": miner,
                "balance": miner.balance,
                "previous": miner.balance - difference,
                "difference": difference,
            }
        if kind == PAYMENT:
            payments = self.client.fetch_payments(miner.coin, miner.address, 1)
            if not payments:
                raise PoolAPIError(f"{miner} has no payments")
            return {"miner": miner, "payment": payments[0]}
        if kind == OFFLINE_WORKER:
            workers = self.client.fetch_workers(miner.coin, miner.address)
            if not workers:
                raise PoolAPIError(f"{miner} has no workers")
            return {
                "miner": miner,
                "worker": self.rng.choice(workers),
                "previous_state": "online",
            }
        raise ValueError(f"unknown notification kind '{kind}'")


def send_test_notifications(
    notifier: Notifier,
    builder: SampleBuilder,
    notifications: NotificationsConfig,
) -> list[str]:
    """Send one sample per kind flagged with `test: true`.

    Returns the kinds that were sent. Errors propagate to the caller.
    """
    sent = []
    for kind in NOTIFICATION_KINDS:
        if not notifications.get(kind).test:
            continue
        logger.info("Testing %s notification", kind)
        payload = builder.build(kind)
        notifier.notify(kind, payload)
        sent.append(kind)
    return sent
