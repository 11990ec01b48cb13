"""Chain data gateway interface consumed by the detectors.

The detectors never manage connections. They only issue these four
read-only calls, each of which may fail; callers treat a failure as an
unknown answer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class ChainGatewayError(RuntimeError):
    """Base error raised when a chain data read cannot be fulfilled."""


class ChainDataGateway(ABC):
    """Read-only access to chain state."""

    @abstractmethod
    async def get_bytecode(self, address: str) -> bytes:
        """Return the deployed bytecode at ``address`` (empty for EOAs)."""

    @abstractmethod
    async def get_outbound_transaction_count(self, address: str) -> int:
        """Return the number of transactions sent from ``address``."""

    @abstractmethod
    async def get_current_average_gas_price(self) -> int:
        """Return the network's current average gas price in wei."""

    @abstractmethod
    async def call_read_only(self, address: str, data: bytes) -> bytes:
        """Execute a read-only call against ``address`` and return raw output."""

    async def close(self) -> None:
        """Release transport resources. Nothing to release by default."""


__all__ = [
    "ChainDataGateway",
    "ChainGatewayError",
]
