"""In-memory chain data gateway for demos, replays and tests."""

from __future__ import annotations

import logging

from chainsentry.gateway.base import ChainDataGateway, ChainGatewayError

logger = logging.getLogger(__name__)


class InMemoryGateway(ChainDataGateway):
    """Gateway backed by plain dictionaries.

    Unknown addresses behave like fresh EOAs: empty bytecode and a zero
    transaction count. Read-only call results are keyed by
    ``(address, selector)`` where the selector is the ``0x`` hex of the first
    four bytes of the call data.

    Example:
        >>> gateway = InMemoryGateway(gas_price=30 * 10**9)
        >>> gateway.set_contract("0xabc...", bytecode=b"\\x60\\x80", tx_count=2)
        >>> gateway.fail_for("0xdead...")
    """

    def __init__(self, gas_price: int = 0) -> None:
        self.gas_price = gas_price
        self.bytecode: dict[str, bytes] = {}
        self.tx_counts: dict[str, int] = {}
        self.call_results: dict[tuple[str, str], bytes] = {}
        self.failing_addresses: set[str] = set()
        self.fail_all = False
        self.calls_made = 0

    def set_contract(self, address: str, bytecode: bytes = b"\x00", tx_count: int = 0) -> None:
        """Register a contract with the given bytecode and outbound count."""
        self.bytecode[address.lower()] = bytecode
        self.tx_counts[address.lower()] = tx_count

    def set_tx_count(self, address: str, tx_count: int) -> None:
        self.tx_counts[address.lower()] = tx_count

    def set_call_result(self, address: str, selector: str, result: bytes) -> None:
        """Register the raw output of a read-only call."""
        self.call_results[(address.lower(), selector.lower())] = result

    def fail_for(self, address: str) -> None:
        """Make every read concerning ``address`` raise ChainGatewayError."""
        self.failing_addresses.add(address.lower())

    def _check(self, address: str | None = None) -> None:
        self.calls_made += 1
        if self.fail_all:
            raise ChainGatewayError("gateway unavailable")
        if address is not None and address.lower() in self.failing_addresses:
            raise ChainGatewayError(f"read failed for {address}")

    async def get_bytecode(self, address: str) -> bytes:
        self._check(address)
        return self.bytecode.get(address.lower(), b"")

    async def get_outbound_transaction_count(self, address: str) -> int:
        self._check(address)
        return self.tx_counts.get(address.lower(), 0)

    async def get_current_average_gas_price(self) -> int:
        self._check()
        return self.gas_price

    async def call_read_only(self, address: str, data: bytes) -> bytes:
        self._check(address)
        selector = "0x" + data[:4].hex()
        try:
            return self.call_results[(address.lower(), selector)]
        except KeyError as exc:
            logger.debug("No call result registered for %s %s", address, selector)
            raise ChainGatewayError(f"execution reverted: {address} {selector}") from exc


__all__ = ["InMemoryGateway"]
