"""Message templates — balance, payment, block and offline worker notifications.

Templates are `str.format` strings. A template configured as a file path
replaces the built-in one for its kind; both receive the same fields.

Fields:
    all miner kinds   coin, coin_upper, address
    balance           balance, balance_raw, previous, difference
    payment           payment_hash, payment_value, payment_value_raw,
                      payment_time, payment_url
    block             coin, coin_upper, block_hash, block_number,
                      block_reward, block_reward_raw, block_url
    offline_worker    worker_name, worker_last_seen, previous_state

Amounts are converted to the main unit (ETH, XCH) when the coin is known;
the *_raw fields keep the smallest unit as returned by the API.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytz

from flexassistant.models import BALANCE, BLOCK, OFFLINE_WORKER, PAYMENT
from flexassistant.notify.base import NotificationError
from flexassistant.utils.coins import (
    convert_currency,
    format_block_url,
    format_transaction_url,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES = {
    BALANCE: (
        "💰 *{coin_upper} balance*\n"
        "`{address}`\n"
        "Unpaid: *{balance} {coin_upper}* ({difference} {coin_upper})"
    ),
    PAYMENT: (
        "💸 *{coin_upper} payment*\n"
        "`{address}`\n"
        "Received *{payment_value} {coin_upper}* on {payment_time}\n"
        "[Transaction]({payment_url})"
    ),
    BLOCK: (
        "⛏ *{coin_upper} block #{block_number}*\n"
        "Reward: *{block_reward} {coin_upper}*\n"
        "[Block]({block_url})"
    ),
    OFFLINE_WORKER: (
        "🔴 *Worker offline*\n"
        "`{worker_name}` on `{address}`\n"
        "Last seen: {worker_last_seen}"
    ),
}


class MessageFormatter:
    def __init__(self, templates: dict[str, str] | None = None, timezone: str = "UTC"):
        # kind -> template file path; empty or missing means built-in
        self.templates = templates or {}
        self.tz = pytz.timezone(timezone)

    def render(self, kind: str, payload: dict) -> str:
        template = self._load_template(kind)
        fields = self.fields(kind, payload)
        try:
            return template.format(**fields)
        except (KeyError, IndexError, ValueError) as e:
            raise NotificationError(f"{kind} template failed: {e}") from e

    def fields(self, kind: str, payload: dict) -> dict:
        """Flatten a notification payload into template fields."""
        if kind == BALANCE:
            miner = payload["miner"]
            return {
                **_miner_fields(miner),
                "balance": _amount(miner.coin, payload["balance"]),
                "balance_raw": payload["balance"],
                "previous": _amount(miner.coin, payload["previous"]),
                "difference": _amount(miner.coin, payload["difference"], signed=True),
            }
        if kind == PAYMENT:
            miner, payment = payload["miner"], payload["payment"]
            return {
                **_miner_fields(miner),
                "payment_hash": payment.hash,
                "payment_value": _amount(miner.coin, payment.value),
                "payment_value_raw": payment.value,
                "payment_time": self._format_time(datetime.fromtimestamp(payment.timestamp, pytz.utc)),
                "payment_url": _explorer_url(format_transaction_url, miner.coin, payment.hash),
            }
        if kind == BLOCK:
            pool, block = payload["pool"], payload["block"]
            return {
                "coin": pool.coin,
                "coin_upper": pool.coin.upper(),
                "block_hash": block.hash,
                "block_number": block.number,
                "block_reward": _amount(pool.coin, block.reward),
                "block_reward_raw": block.reward,
                "block_url": _explorer_url(format_block_url, pool.coin, block.hash),
            }
        if kind == OFFLINE_WORKER:
            miner, worker = payload["miner"], payload["worker"]
            return {
                **_miner_fields(miner),
                "worker_name": worker.name,
                "worker_last_seen": self._format_time(worker.last_seen),
                "previous_state": payload.get("previous_state", ""),
            }
        raise NotificationError(f"unknown notification kind '{kind}'")

    def _load_template(self, kind: str) -> str:
        path = self.templates.get(kind)
        if not path:
            try:
                return DEFAULT_TEMPLATES[kind]
            except KeyError:
                raise NotificationError(f"unknown notification kind '{kind}'")
        logger.debug("Parsing template file %s", path)
        try:
            return Path(path).read_text()
        except OSError as e:
            raise NotificationError(f"cannot read template {path}: {e}") from e

    def _format_time(self, dt: datetime) -> str:
        return dt.astimezone(self.tz).strftime("%Y-%m-%d %H:%M %Z")


def _miner_fields(miner) -> dict:
    return {
        "coin": miner.coin,
        "coin_upper": miner.coin.upper(),
        "address": miner.address,
    }


def _amount(coin: str, value: Decimal, signed: bool = False) -> str:
    """Convert to the main unit when the coin is known, keep the raw unit otherwise."""
    try:
        value = convert_currency(coin, value)
    except ValueError:
        logger.debug("No unit conversion for %s, keeping raw value", coin)
    text = f"{value:+.6f}" if signed else f"{value:.6f}"
    return text.rstrip("0").rstrip(".")


def _explorer_url(builder, coin: str, hash: str) -> str:
    try:
        return builder(coin, hash)
    except ValueError:
        return ""
