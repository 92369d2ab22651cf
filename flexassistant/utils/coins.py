"""Coin helpers — address validation, unit conversion and explorer links."""

from __future__ import annotations

from decimal import Decimal

ETH_ADDRESS_LENGTH = 42
XCH_ADDRESS_LENGTH = 62

WEI_PER_ETH = Decimal(10) ** 18
MOJO_PER_XCH = Decimal(10) ** 12

_DIVIDERS = {
    "eth": WEI_PER_ETH,
    "etc": WEI_PER_ETH,
    "xch": MOJO_PER_XCH,
}

_BLOCK_URLS = {
    "etc": "https://etcblockexplorer.com/block/{hash}",
    "eth": "https://etherscan.io/block/{hash}",
    "xch": "https://www.chiaexplorer.com/blockchain/block/{hash}",
}

_TRANSACTION_URLS = {
    "etc": "https://etcblockexplorer.com/address/{hash}",
    "eth": "https://etherscan.io/tx/{hash}",
    "xch": "https://www.chiaexplorer.com/blockchain/coin/{hash}",
}


def parse_coin(address: str) -> str:
    """Deduce the currency from a miner address.

    Raises ValueError if the address matches no supported coin.
    """
    if not address:
        raise ValueError("Miner address is empty")
    if len(address) == ETH_ADDRESS_LENGTH and address.startswith("0x"):
        return "eth"
    if len(address) == XCH_ADDRESS_LENGTH and address.startswith("xch"):
        return "xch"
    raise ValueError(f"Unsupported address '{address}'")


def convert_currency(coin: str, value: Decimal) -> Decimal:
    """Convert a value from the smallest unit of the coin (wei, mojo) to the coin."""
    divider = _DIVIDERS.get(coin)
    if divider is None:
        raise ValueError(f"Coin {coin} not supported")
    return Decimal(value) / divider


def format_block_url(coin: str, hash: str) -> str:
    template = _BLOCK_URLS.get(coin)
    if template is None:
        raise ValueError(f"Coin {coin} not supported")
    return template.format(hash=hash)


def format_transaction_url(coin: str, hash: str) -> str:
    template = _TRANSACTION_URLS.get(coin)
    if template is None:
        raise ValueError(f"Coin {coin} not supported")
    return template.format(hash=hash)
