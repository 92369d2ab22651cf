"""Flexpool provider — fetches miner and pool snapshots from the public v2 API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation

import pytz
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from flexassistant import APP_NAME, __version__
from flexassistant.models import Block, Payment, Worker
from flexassistant.providers.base import (
    MAX_PAGES,
    MalformedResponse,
    PaginationExhausted,
    PoolClient,
    TransportError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

FLEXPOOL_API_URL = "https://api.flexpool.io/v2"


@dataclass
class ClientConfig:
    base_url: str = FLEXPOOL_API_URL
    timeout: float = 3
    retries: int = 0
    user_agent: str = f"{APP_NAME}/{__version__}"


class FlexpoolClient(PoolClient):
    name = "flexpool"

    def __init__(self, config: ClientConfig | None = None):
        self.config = config or ClientConfig()
        self.session = requests.Session()
        self.session.headers["User-Agent"] = self.config.user_agent
        retry = Retry(
            total=self.config.retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
        )
        self.session.mount("https://", HTTPAdapter(max_retries=retry))
        self.session.mount("http://", HTTPAdapter(max_retries=retry))

    def fetch_balance(self, coin: str, address: str) -> Decimal:
        result = self._request("miner/balance", coin=coin, address=address)
        if not isinstance(result, dict) or "balance" not in result:
            raise MalformedResponse("balance missing from response")
        return _to_decimal(result["balance"])

    def fetch_payments(self, coin: str, address: str, limit: int) -> list[Payment]:
        items = self._paginate(
            "miner/payments", limit, coin=coin, address=address,
        )
        payments = [_parse_item("miner/payments", _payment, item) for item in items]
        payments.sort(key=lambda p: p.timestamp, reverse=True)
        return payments

    def fetch_workers(self, coin: str, address: str) -> list[Worker]:
        result = self._request("miner/workers", coin=coin, address=address)
        if result is None:
            return []
        if not isinstance(result, list):
            raise MalformedResponse("workers result is not a list")
        return [
            _parse_item("miner/workers", _worker, item, address)
            for item in result
        ]

    def fetch_blocks(self, coin: str, limit: int) -> list[Block]:
        items = self._paginate("pool/blocks", limit, coin=coin)
        blocks = [_parse_item("pool/blocks", _block, item) for item in items]
        blocks.sort(key=lambda b: b.number, reverse=True)
        return blocks

    def fetch_coins(self) -> list[str]:
        """Return the tickers of every coin mined on the pool."""
        result = self._request("pool/coins")
        try:
            return [c["ticker"] for c in result["coins"]]
        except (KeyError, TypeError) as e:
            raise MalformedResponse(f"unexpected coins payload: {e}") from e

    def fetch_top_miners(self, coin: str) -> list[str]:
        """Return the addresses of the pool's top miners."""
        result = self._request("pool/topMiners", coin=coin)
        try:
            return [m["address"] for m in result]
        except (KeyError, TypeError) as e:
            raise MalformedResponse(f"unexpected top miners payload: {e}") from e

    def _paginate(self, route: str, limit: int, **params) -> list[dict]:
        """Collect `limit` items from a paged route, reading at most MAX_PAGES pages."""
        items: list[dict] = []
        for page in range(MAX_PAGES):
            result = self._request(route, page=page, **params)
            if not isinstance(result, dict):
                raise MalformedResponse(f"{route}: result is not an object")
            data = result.get("data") or []
            if not isinstance(data, list):
                raise MalformedResponse(f"{route}: data is not a list")
            # An empty or last page means the listing is complete; fewer items than
            # `limit` is then a short listing, not an exhausted page cap
            if not data:
                return items
            for item in data:
                items.append(item)
                if len(items) >= limit:
                    return items
            total_pages = result.get("totalPages")
            if total_pages is not None and page + 1 >= _to_int(total_pages):
                return items
        raise PaginationExhausted(MAX_PAGES)

    def _request(self, route: str, **params):
        """Call the API and return the `result` member of the response."""
        url = f"{self.config.base_url.rstrip('/')}/{route}"
        logger.debug("Requesting %s %s", url, params)
        try:
            resp = self.session.get(url, params=params, timeout=self.config.timeout)
        except requests.RequestException as e:
            raise TransportError(f"{route}: {e}") from e

        try:
            body = resp.json(parse_float=Decimal)
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("error"):
            raise UpstreamError(f"Flexpool API error: {body['error']}")
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise TransportError(f"{route}: {e}") from e
        if not isinstance(body, dict):
            raise MalformedResponse(f"{route}: response is not a JSON object")
        return body.get("result")


def _parse_item(route: str, parse, item, *args):
    """Build one record from a listing item, or raise MalformedResponse."""
    if not isinstance(item, dict):
        raise MalformedResponse(f"{route}: item is not an object: {item!r}")
    try:
        return parse(item, *args)
    except (AttributeError, TypeError, ValueError, OverflowError, OSError) as e:
        raise MalformedResponse(f"{route}: invalid item {item!r}: {e}") from e


def _payment(item: dict) -> Payment:
    return Payment(
        hash=str(item.get("hash", "")),
        value=_to_decimal(item.get("value", 0)),
        timestamp=_to_int(item.get("timestamp")),
    )


def _worker(item: dict, address: str) -> Worker:
    return Worker(
        miner_address=address,
        name=str(item.get("name", "")),
        is_online=bool(item.get("isOnline", False)),
        last_seen=datetime.fromtimestamp(_to_int(item.get("lastSeen", 0)), pytz.utc),
    )


def _block(item: dict) -> Block:
    return Block(
        hash=str(item.get("hash", "")),
        number=_to_int(item.get("number")),
        reward=_to_decimal(item.get("reward", 0)),
    )


def _to_decimal(value) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise MalformedResponse(f"not a number: {value!r}")
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise MalformedResponse(f"not a number: {value!r}") from e
    if not number.is_finite():
        raise MalformedResponse(f"not a finite number: {value!r}")
    return number


def _to_int(value) -> int:
    """Convert an integral JSON number; fractional values are rejected."""
    number = _to_decimal(value)
    if number != number.to_integral_value():
        raise MalformedResponse(f"not an integer: {value!r}")
    return int(number)
