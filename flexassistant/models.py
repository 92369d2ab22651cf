"""Shared dataclasses used across all modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

# Notification kinds
BALANCE = "balance"
PAYMENT = "payment"
BLOCK = "block"
OFFLINE_WORKER = "offline_worker"

NOTIFICATION_KINDS = (BALANCE, PAYMENT, BLOCK, OFFLINE_WORKER)


@dataclass
class Miner:
    coin: str
    address: str
    # None until the first observation has been recorded
    balance: Optional[Decimal] = None
    last_payment_timestamp: Optional[int] = None
    id: Optional[int] = None

    def __str__(self) -> str:
        return f"Miner<{self.address}>"


@dataclass
class Pool:
    coin: str
    last_block_number: Optional[int] = None
    id: Optional[int] = None

    def __str__(self) -> str:
        return f"Pool<{self.coin}>"


@dataclass
class Payment:
    hash: str
    value: Decimal
    timestamp: int

    def __str__(self) -> str:
        return f"Payment<{self.hash}>"


@dataclass
class Block:
    hash: str
    number: int
    reward: Decimal

    def __str__(self) -> str:
        return f"Block<{self.number}>"


@dataclass
class Worker:
    miner_address: str
    name: str
    is_online: bool
    last_seen: datetime

    def __str__(self) -> str:
        return f"Worker<{self.name}>"


@dataclass
class Notification:
    kind: str  # balance | payment | block | offline_worker
    payload: dict = field(default_factory=dict)
