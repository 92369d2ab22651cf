"""PoolClient abstract base class and fetch errors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal

from flexassistant.models import Block, Payment, Worker

# Paged routes give up after this many pages
MAX_PAGES = 10


class PoolAPIError(Exception):
    """Base class for every failure to obtain a snapshot from the pool."""


class TransportError(PoolAPIError):
    """Network failure, timeout, non-2xx status or undecodable body."""


class UpstreamError(PoolAPIError):
    """The API answered with an explicit error field."""


class MalformedResponse(PoolAPIError):
    """The payload could not be mapped onto the expected structure."""


class PaginationExhausted(PoolAPIError):
    """The requested number of items was not reached within MAX_PAGES pages."""

    def __init__(self, max_pages: int = MAX_PAGES):
        super().__init__(f"max iterations of {max_pages} reached")
        self.max_pages = max_pages


class PoolClient(ABC):
    """Interface for all mining pool data sources."""

    name: str = "base"

    @abstractmethod
    def fetch_balance(self, coin: str, address: str) -> Decimal:
        """Return the current unpaid balance in the smallest currency unit."""
        ...

    @abstractmethod
    def fetch_payments(self, coin: str, address: str, limit: int) -> list[Payment]:
        """Return up to `limit` payments sorted by timestamp descending.

        Raises PaginationExhausted when MAX_PAGES pages are not enough.
        """
        ...

    @abstractmethod
    def fetch_workers(self, coin: str, address: str) -> list[Worker]:
        """Return the full list of workers currently known for a miner."""
        ...

    @abstractmethod
    def fetch_blocks(self, coin: str, limit: int) -> list[Block]:
        """Return up to `limit` pool blocks sorted by number descending."""
        ...
