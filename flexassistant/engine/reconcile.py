"""Reconciliation — classify fresh snapshots against persisted watermarks.

Each function is pure: it reads the persisted entity, never mutates it, and
returns the new watermark plus the notifications the change warrants. The
caller persists the watermark before dispatching anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Iterable

from flexassistant.models import (
    BALANCE,
    BLOCK,
    PAYMENT,
    Block,
    Miner,
    Notification,
    Payment,
    Pool,
)

logger = logging.getLogger(__name__)

NO_CHANGE = "no_change"
FIRST_OBSERVATION = "first_observation"
ADVANCE = "advance"


@dataclass
class Reconciliation:
    status: str  # no_change | first_observation | advance
    watermark: Any
    notifications: list[Notification] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """True when the watermark must be persisted."""
        return self.status != NO_CHANGE


def reconcile_balance(miner: Miner, balance: Decimal) -> Reconciliation:
    """Compare a fresh unpaid balance with the last notified one.

    The balance is not monotonic (it drops after every payout): any difference
    is an advance.
    """
    previous = miner.balance
    if previous is None:
        return Reconciliation(FIRST_OBSERVATION, balance)
    if balance == previous:
        return Reconciliation(NO_CHANGE, previous)

    notification = Notification(BALANCE, {
        "miner": replace(miner, balance=balance),
        "balance": balance,
        "previous": previous,
        "difference": balance - previous,
    })
    return Reconciliation(ADVANCE, balance, [notification])


def reconcile_payments(miner: Miner, payments: Iterable[Payment]) -> Reconciliation:
    """Find payments newer than the last notified payment timestamp.

    Every payment strictly newer than the persisted watermark is notified, in
    the order the upstream listed them. The new watermark is the newest
    timestamp seen.
    """
    persisted = miner.last_payment_timestamp
    fresh = [p for p in payments if persisted is None or p.timestamp > persisted]
    if not fresh:
        return Reconciliation(NO_CHANGE, persisted)

    watermark = max(p.timestamp for p in fresh)
    if persisted is None:
        logger.debug("%s: first payment observation, watermark %d", miner, watermark)
        return Reconciliation(FIRST_OBSERVATION, watermark)

    snapshot = replace(miner, last_payment_timestamp=watermark)
    notifications = [
        Notification(PAYMENT, {"miner": snapshot, "payment": p}) for p in fresh
    ]
    return Reconciliation(ADVANCE, watermark, notifications)


def reconcile_blocks(
    pool: Pool,
    blocks: Iterable[Block],
    min_reward: Decimal = Decimal(0),
) -> Reconciliation:
    """Find blocks above the last notified block number.

    Blocks rewarded below `min_reward` still move the watermark but are not
    notified.
    """
    persisted = pool.last_block_number
    fresh = [b for b in blocks if persisted is None or b.number > persisted]
    if not fresh:
        return Reconciliation(NO_CHANGE, persisted)

    watermark = max(b.number for b in fresh)
    if persisted is None:
        logger.debug("%s: first block observation, watermark %d", pool, watermark)
        return Reconciliation(FIRST_OBSERVATION, watermark)

    snapshot = replace(pool, last_block_number=watermark)
    notifications = []
    for block in fresh:
        if block.reward < min_reward:
            logger.debug("%s: reward %s below %s, not notified", block, block.reward, min_reward)
            continue
        notifications.append(Notification(BLOCK, {"pool": snapshot, "block": block}))
    return Reconciliation(ADVANCE, watermark, notifications)
