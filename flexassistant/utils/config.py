"""YAML config loader."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path

import yaml

from flexassistant import APP_NAME

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = f"{APP_NAME}.yaml"
MAX_PAYMENTS = 10
MAX_BLOCKS = 50


@dataclass
class MinerConfig:
    address: str
    coin: str = ""
    enable_balance: bool = False
    enable_payments: bool = False
    enable_offline_workers: bool = False


@dataclass
class PoolConfig:
    coin: str
    enable_blocks: bool = False
    min_block_reward: Decimal = Decimal(0)


@dataclass
class TelegramConfig:
    token: str = ""
    chat_id: int = 0
    channel_name: str = ""


@dataclass
class NotificationConfig:
    template: str = ""
    test: bool = False


@dataclass
class NotificationsConfig:
    balance: NotificationConfig = field(default_factory=NotificationConfig)
    payment: NotificationConfig = field(default_factory=NotificationConfig)
    block: NotificationConfig = field(default_factory=NotificationConfig)
    offline_worker: NotificationConfig = field(default_factory=NotificationConfig)

    def get(self, kind: str) -> NotificationConfig:
        return getattr(self, kind)


@dataclass
class ApiConfig:
    base_url: str = "https://api.flexpool.io/v2"
    timeout: float = 3
    retries: int = 0


@dataclass
class Config:
    database_file: str = f"{APP_NAME}.db"
    max_payments: int = MAX_PAYMENTS
    max_blocks: int = MAX_BLOCKS
    timezone: str = "UTC"
    api: ApiConfig = field(default_factory=ApiConfig)
    miners: list[MinerConfig] = field(default_factory=list)
    pools: list[PoolConfig] = field(default_factory=list)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


def load_yaml(path: str | Path) -> dict:
    """Load a YAML config file safely."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> Config:
    """Read the YAML configuration file and apply defaults.

    Raises OSError when the file cannot be read and ValueError when a value
    has the wrong shape.
    """
    cfg = load_yaml(path)
    if not isinstance(cfg, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return parse_config(cfg)


def parse_config(cfg: dict) -> Config:
    """Build a Config from an already parsed YAML mapping."""
    api = _mapping(cfg.get("api"), "api")
    telegram = _mapping(cfg.get("telegram"), "telegram")
    notifications = _mapping(cfg.get("notifications"), "notifications")

    config = Config(
        database_file=str(cfg.get("database-file") or f"{APP_NAME}.db"),
        max_payments=_positive_or_default(cfg.get("max-payments"), MAX_PAYMENTS),
        max_blocks=_positive_or_default(cfg.get("max-blocks"), MAX_BLOCKS),
        timezone=str(cfg.get("timezone") or "UTC"),
        api=ApiConfig(
            base_url=str(api.get("base-url", ApiConfig.base_url)),
            timeout=float(api.get("timeout", ApiConfig.timeout)),
            retries=int(api.get("retries", ApiConfig.retries)),
        ),
        miners=[_parse_miner(m) for m in _sequence(cfg.get("miners"), "miners")],
        pools=[_parse_pool(p) for p in _sequence(cfg.get("pools"), "pools")],
        telegram=TelegramConfig(
            token=str(telegram.get("token") or os.environ.get("TELEGRAM_BOT_TOKEN", "")),
            chat_id=int(telegram.get("chat-id") or 0),
            channel_name=str(telegram.get("channel-name") or ""),
        ),
        notifications=NotificationsConfig(
            balance=_parse_notification(notifications.get("balance"), "balance"),
            payment=_parse_notification(notifications.get("payment"), "payment"),
            block=_parse_notification(notifications.get("block"), "block"),
            offline_worker=_parse_notification(notifications.get("offline-worker"), "offline-worker"),
        ),
    )
    logger.debug(
        "Loaded configuration: %d miners, %d pools", len(config.miners), len(config.pools)
    )
    return config


def _parse_miner(entry: dict) -> MinerConfig:
    if not isinstance(entry, dict):
        raise ValueError(f"miner entry must be a mapping, got {entry!r}")
    return MinerConfig(
        address=str(entry.get("address") or ""),
        coin=str(entry.get("coin") or "").lower(),
        enable_balance=bool(entry.get("enable-balance", False)),
        enable_payments=bool(entry.get("enable-payments", False)),
        enable_offline_workers=bool(entry.get("enable-offline-workers", False)),
    )


def _parse_pool(entry: dict) -> PoolConfig:
    if not isinstance(entry, dict):
        raise ValueError(f"pool entry must be a mapping, got {entry!r}")
    return PoolConfig(
        coin=str(entry.get("coin") or "").lower(),
        enable_blocks=bool(entry.get("enable-blocks", False)),
        min_block_reward=_decimal(entry.get("min-block-reward") or 0),
    )


def _parse_notification(entry, name: str) -> NotificationConfig:
    entry = _mapping(entry, f"notifications.{name}")
    return NotificationConfig(
        template=str(entry.get("template") or ""),
        test=bool(entry.get("test", False)),
    )


def _mapping(value, name: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be a mapping, got {value!r}")
    return value


def _sequence(value, name: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{name} must be a list, got {value!r}")
    return value


def _decimal(value) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid number: '{value}'")


def _positive_or_default(value, default: int) -> int:
    if value is None:
        return default
    value = int(value)
    return value if value > 0 else default
