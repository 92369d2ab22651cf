"""Tests for coin deduction, unit conversion and explorer links."""

from decimal import Decimal

import pytest

from flexassistant.utils.coins import (
    convert_currency,
    format_block_url,
    format_transaction_url,
    parse_coin,
)


class TestParseCoin:
    def test_eth(self):
        assert parse_coin("0x" + "0" * 40) == "eth"

    def test_xch(self):
        assert parse_coin("xch" + "q" * 59) == "xch"

    @pytest.mark.parametrize("address", ["", "0x123", "1" * 42, "xch123"])
    def test_invalid(self, address):
        with pytest.raises(ValueError):
            parse_coin(address)


class TestConvertCurrency:
    def test_wei_to_eth(self):
        assert convert_currency("eth", Decimal("1500000000000000000")) == Decimal("1.5")

    def test_etc_uses_wei(self):
        assert convert_currency("etc", Decimal(10) ** 18) == Decimal(1)

    def test_mojo_to_xch(self):
        assert convert_currency("xch", Decimal(250_000_000_000)) == Decimal("0.25")

    def test_unsupported(self):
        with pytest.raises(ValueError, match="not supported"):
            convert_currency("doge", Decimal(1))


class TestExplorerUrls:
    def test_block_urls(self):
        assert format_block_url("eth", "0xh") == "https://etherscan.io/block/0xh"
        assert format_block_url("xch", "h") == "https://www.chiaexplorer.com/blockchain/block/h"

    def test_transaction_urls(self):
        assert format_transaction_url("eth", "0xt") == "https://etherscan.io/tx/0xt"
        assert format_transaction_url("etc", "0xt") == "https://etcblockexplorer.com/address/0xt"

    def test_unsupported(self):
        with pytest.raises(ValueError):
            format_block_url("doge", "h")
