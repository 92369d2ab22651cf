"""CLI entry point — run one polling cycle.

Run:
    flexassistant --config flexassistant.yaml --verbose
    python -m flexassistant --config flexassistant.yaml --test-notifications
    python scripts/run_cycle.py --config flexassistant.yaml

Schedule it with cron or a systemd timer; each invocation is one cycle.
"""

from __future__ import annotations

import argparse
import logging
import sys

import yaml

from flexassistant import APP_NAME, __version__

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Flexpool balance, payment, block and worker notifications",
    )
    p.add_argument("--config", default=f"{APP_NAME}.yaml",
                   help=f"Configuration file name (default: {APP_NAME}.yaml)")
    p.add_argument("--version", action="store_true",
                   help="Print version and exit")
    p.add_argument("--quiet", action="store_true",
                   help="Log errors only")
    p.add_argument("--verbose", action="store_true",
                   help="Print more logs")
    p.add_argument("--debug", action="store_true",
                   help="Print even more logs")
    p.add_argument("--test-notifications", action="store_true",
                   help="Send sample notifications for kinds with 'test: true', then exit")
    return p.parse_args(argv)


def log_level(args: argparse.Namespace) -> int:
    """--quiet beats --verbose, which beats --debug."""
    if args.quiet:
        return logging.ERROR
    if args.verbose:
        return logging.INFO
    if args.debug:
        return logging.DEBUG
    return logging.WARNING


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if args.version:
        print(f"{APP_NAME} version {__version__}")
        return 0

    from flexassistant.engine.cycle import PollingCycle
    from flexassistant.models import NOTIFICATION_KINDS
    from flexassistant.notify.base import NotificationError
    from flexassistant.notify.formatter import MessageFormatter
    from flexassistant.notify.samples import SampleBuilder, send_test_notifications
    from flexassistant.notify.telegram import TelegramNotifier
    from flexassistant.providers.base import PoolAPIError
    from flexassistant.providers.flexpool import ClientConfig, FlexpoolClient
    from flexassistant.store import StoreError, WatermarkStore
    from flexassistant.utils.config import load_config
    from flexassistant.utils.logging_setup import setup_logging

    setup_logging(log_level(args))

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error("Cannot parse configuration file: %s", e)
        return 1

    client = FlexpoolClient(ClientConfig(
        base_url=config.api.base_url,
        timeout=config.api.timeout,
        retries=config.api.retries,
    ))

    try:
        formatter = MessageFormatter(
            templates={k: config.notifications.get(k).template for k in NOTIFICATION_KINDS},
            timezone=config.timezone,
        )
        notifier = TelegramNotifier(config.telegram, formatter)
    except (ValueError, KeyError) as e:
        # KeyError: unknown timezone
        logger.error("Could not create notifier: %s", e)
        return 1

    if args.test_notifications:
        try:
            sent = send_test_notifications(notifier, SampleBuilder(client), config.notifications)
        except (PoolAPIError, NotificationError) as e:
            logger.error("Test notification failed: %s", e)
            return 1
        if not sent:
            logger.warning("No notification has 'test: true' in %s", args.config)
        return 0

    try:
        store = WatermarkStore(config.database_file)
    except StoreError as e:
        logger.error("Could not create database: %s", e)
        return 1

    PollingCycle(config, client, store, notifier).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
