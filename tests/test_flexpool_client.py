"""Tests for the Flexpool HTTP client — parsing, errors and pagination bound."""

import json
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import pytz
import requests

from flexassistant.providers.base import (
    MAX_PAGES,
    MalformedResponse,
    PaginationExhausted,
    TransportError,
    UpstreamError,
)
from flexassistant.providers.flexpool import ClientConfig, FlexpoolClient

ADDRESS = "0x" + "ab" * 20


class FakeResponse:
    def __init__(self, body, status_code=200):
        self._text = body if isinstance(body, str) else json.dumps(body)
        self.status_code = status_code

    def json(self, **kwargs):
        return json.loads(self._text, **kwargs)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


def _client(*responses) -> FlexpoolClient:
    client = FlexpoolClient(ClientConfig(base_url="https://api.test/v2", timeout=1))
    client.session.get = MagicMock(side_effect=list(responses))
    return client


def _ok(result):
    return FakeResponse({"error": None, "result": result})


def _page(data, total_pages=None):
    result = {"data": data}
    if total_pages is not None:
        result["totalPages"] = total_pages
    return _ok(result)


class TestSession:
    def test_user_agent_and_timeout(self):
        client = _client(_ok({"balance": 1}))
        client.fetch_balance("eth", ADDRESS)
        assert client.session.headers["User-Agent"].startswith("flexassistant/")
        args, kwargs = client.session.get.call_args
        assert args[0] == "https://api.test/v2/miner/balance"
        assert kwargs["params"] == {"coin": "eth", "address": ADDRESS}
        assert kwargs["timeout"] == 1


class TestBalance:
    def test_large_balance_keeps_precision(self):
        client = _client(FakeResponse('{"error": null, "result": {"balance": 123456789012345678901}}'))
        assert client.fetch_balance("eth", ADDRESS) == Decimal("123456789012345678901")

    def test_float_balance_is_decimal(self):
        client = _client(FakeResponse('{"error": null, "result": {"balance": 0.1}}'))
        balance = client.fetch_balance("eth", ADDRESS)
        assert isinstance(balance, Decimal)
        assert balance == Decimal("0.1")

    def test_upstream_error_field(self):
        client = _client(FakeResponse({"error": "invalid address", "result": None}, status_code=400))
        with pytest.raises(UpstreamError, match="invalid address"):
            client.fetch_balance("eth", "bad")

    def test_http_error(self):
        client = _client(FakeResponse("<html>bad gateway</html>", status_code=502))
        with pytest.raises(TransportError):
            client.fetch_balance("eth", ADDRESS)

    def test_network_error(self):
        client = _client(requests.ConnectionError("boom"))
        with pytest.raises(TransportError):
            client.fetch_balance("eth", ADDRESS)

    def test_timeout(self):
        client = _client(requests.Timeout("slow"))
        with pytest.raises(TransportError):
            client.fetch_balance("eth", ADDRESS)

    def test_missing_field(self):
        client = _client(_ok({}))
        with pytest.raises(MalformedResponse):
            client.fetch_balance("eth", ADDRESS)


class TestPayments:
    def test_sorted_by_timestamp_desc(self):
        client = _client(_page([
            {"hash": "0x1", "value": 10, "timestamp": 100},
            {"hash": "0x3", "value": 30, "timestamp": 300},
            {"hash": "0x2", "value": 20, "timestamp": 200},
        ]))
        payments = client.fetch_payments("eth", ADDRESS, 3)
        assert [p.timestamp for p in payments] == [300, 200, 100]
        assert payments[0].value == Decimal(30)

    def test_pages_until_limit(self):
        client = _client(
            _page([{"hash": "0x1", "value": 1, "timestamp": 5}], total_pages=5),
            _page([{"hash": "0x2", "value": 1, "timestamp": 4}], total_pages=5),
        )
        payments = client.fetch_payments("eth", ADDRESS, 2)
        assert len(payments) == 2
        pages = [c.kwargs["params"]["page"] for c in client.session.get.call_args_list]
        assert pages == [0, 1]

    def test_short_listing_ends_early(self):
        client = _client(
            _page([{"hash": "0x1", "value": 1, "timestamp": 5}]),
            _page([]),
        )
        assert len(client.fetch_payments("eth", ADDRESS, 10)) == 1

    def test_last_page_ends_early(self):
        client = _client(_page([{"hash": "0x1", "value": 1, "timestamp": 5}], total_pages=1))
        assert len(client.fetch_payments("eth", ADDRESS, 10)) == 1
        assert client.session.get.call_count == 1

    def test_pagination_exhausted(self):
        pages = [
            _page([{"hash": f"0x{i}", "value": 1, "timestamp": i}])
            for i in range(MAX_PAGES + 5)
        ]
        client = _client(*pages)
        with pytest.raises(PaginationExhausted):
            client.fetch_payments("eth", ADDRESS, 100)
        assert client.session.get.call_count == MAX_PAGES

    def test_fractional_timestamp_rejected(self):
        client = _client(_page([{"hash": "0x1", "value": 1, "timestamp": 1.5}]))
        with pytest.raises(MalformedResponse):
            client.fetch_payments("eth", ADDRESS, 1)

    def test_item_not_an_object(self):
        client = _client(_page(["not-an-object"]))
        with pytest.raises(MalformedResponse, match="item is not an object"):
            client.fetch_payments("eth", ADDRESS, 1)

    def test_data_not_a_list(self):
        client = _client(_page({"hash": "h"}))
        with pytest.raises(MalformedResponse, match="data is not a list"):
            client.fetch_payments("eth", ADDRESS, 1)

    def test_invalid_total_pages(self):
        client = _client(_page([{"hash": "0x1", "value": 1, "timestamp": 5}], total_pages="n/a"))
        with pytest.raises(MalformedResponse):
            client.fetch_payments("eth", ADDRESS, 10)

    def test_missing_timestamp(self):
        client = _client(_page([{"hash": "0x1", "value": 1}]))
        with pytest.raises(MalformedResponse):
            client.fetch_payments("eth", ADDRESS, 1)


class TestWorkers:
    def test_parse(self):
        client = _client(_ok([
            {"name": "rig1", "isOnline": True, "lastSeen": 1700000000},
            {"name": "rig2", "isOnline": False, "lastSeen": 1690000000},
        ]))
        workers = client.fetch_workers("eth", ADDRESS)
        assert [w.name for w in workers] == ["rig1", "rig2"]
        assert workers[1].is_online is False
        assert workers[0].miner_address == ADDRESS
        assert workers[0].last_seen == datetime.fromtimestamp(1700000000, pytz.utc)

    def test_no_workers(self):
        assert _client(_ok(None)).fetch_workers("eth", ADDRESS) == []

    def test_item_not_an_object(self):
        with pytest.raises(MalformedResponse):
            _client(_ok([None])).fetch_workers("eth", ADDRESS)

    def test_last_seen_out_of_range(self):
        client = _client(_ok([{"name": "rig1", "isOnline": True, "lastSeen": 10 ** 20}]))
        with pytest.raises(MalformedResponse):
            client.fetch_workers("eth", ADDRESS)


class TestBlocks:
    def test_integer_numbers_sorted_desc(self):
        client = _client(_page([
            {"hash": "0xa", "number": 100, "reward": 2.5},
            {"hash": "0xb", "number": 102, "reward": 2},
            {"hash": "0xc", "number": 101, "reward": 2},
        ]))
        blocks = client.fetch_blocks("eth", 3)
        assert [b.number for b in blocks] == [102, 101, 100]
        assert all(isinstance(b.number, int) for b in blocks)
        assert blocks[2].reward == Decimal("2.5")

    def test_nan_reward_rejected(self):
        client = _client(FakeResponse(
            '{"error": null, "result": {"data": [{"hash": "0xa", "number": 1, "reward": NaN}]}}'
        ))
        with pytest.raises(MalformedResponse, match="finite"):
            client.fetch_blocks("eth", 1)

    def test_pagination_exhausted(self):
        client = _client(*[_page([{"hash": "0x", "number": 1, "reward": 1}])] * MAX_PAGES)
        with pytest.raises(PaginationExhausted):
            client.fetch_blocks("eth", 50)


class TestDiscovery:
    def test_coins(self):
        client = _client(_ok({"coins": [{"ticker": "eth", "name": "Ethereum"}, {"ticker": "xch"}]}))
        assert client.fetch_coins() == ["eth", "xch"]

    def test_top_miners(self):
        client = _client(_ok([{"address": ADDRESS}]))
        assert client.fetch_top_miners("eth") == [ADDRESS]

    def test_malformed_coins(self):
        with pytest.raises(MalformedResponse):
            _client(_ok({"nope": 1})).fetch_coins()
