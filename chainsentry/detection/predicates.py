"""Address predicates shared by the detectors.

Every predicate needs one or two gateway round trips. A failed read is
logged and answered with the negative/unknown value; it never propagates.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from chainsentry.decoding.abi import function_selector
from chainsentry.gateway.base import ChainDataGateway

logger = logging.getLogger(__name__)

RECENT_CONTRACT_MAX_TX_COUNT = 5
RECENT_ADDRESS_MAX_TX_COUNT = 3


async def fetch_bytecode(gateway: ChainDataGateway, address: str) -> bytes | None:
    """Return bytecode at ``address``, or None if the read failed."""
    try:
        return await gateway.get_bytecode(address)
    except Exception as exc:
        logger.warning("Bytecode lookup failed for %s: %s", address, exc)
        return None


async def fetch_transaction_count(gateway: ChainDataGateway, address: str) -> int | None:
    """Return the outbound transaction count of ``address``, or None on failure."""
    try:
        return await gateway.get_outbound_transaction_count(address)
    except Exception as exc:
        logger.warning("Transaction count lookup failed for %s: %s", address, exc)
        return None


async def is_contract(gateway: ChainDataGateway, address: str) -> bool | None:
    """True for contracts, False for EOAs, None when unknown."""
    code = await fetch_bytecode(gateway, address)
    if code is None:
        return None
    return len(code) > 0


async def is_recently_deployed_contract(
    gateway: ChainDataGateway,
    address: str,
    max_tx_count: int = RECENT_CONTRACT_MAX_TX_COUNT,
) -> bool:
    """A contract with bytecode and fewer than ``max_tx_count`` outbound transactions."""
    code = await fetch_bytecode(gateway, address)
    if not code:
        return False
    count = await fetch_transaction_count(gateway, address)
    if count is None:
        return False
    return count < max_tx_count


async def is_recently_active_address(
    gateway: ChainDataGateway,
    address: str,
    max_tx_count: int = RECENT_ADDRESS_MAX_TX_COUNT,
) -> bool:
    """An address with fewer than ``max_tx_count`` outbound transactions."""
    count = await fetch_transaction_count(gateway, address)
    if count is None:
        return False
    return count < max_tx_count


class MultisigCapabilityCheck(ABC):
    """Decides whether an address is a multisig wallet."""

    @abstractmethod
    async def is_multisig(self, gateway: ChainDataGateway, address: str) -> bool:
        """Return True if ``address`` should be treated as a multisig."""


MULTISIG_SIGNATURES = (
    "execTransaction(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,bytes)",
    "getOwners()",
    "getThreshold()",
    "isOwner(address)",
    "submitTransaction(address,uint256,bytes)",
    "confirmTransaction(uint256)",
    "revokeConfirmation(uint256)",
    "executeTransaction(uint256)",
)


class BytecodeMultisigHeuristic(MultisigCapabilityCheck):
    """Heuristic: the bytecode embeds at least one known multisig selector.

    This is a substring match on the runtime bytecode, not an interface
    check, so proxies that delegate everything are missed.
    """

    def __init__(self, signatures: tuple[str, ...] = MULTISIG_SIGNATURES) -> None:
        self._needles = tuple(bytes.fromhex(function_selector(sig)[2:]) for sig in signatures)

    async def is_multisig(self, gateway: ChainDataGateway, address: str) -> bool:
        code = await fetch_bytecode(gateway, address)
        if not code:
            return False
        return any(needle in code for needle in self._needles)


__all__ = [
    "fetch_bytecode",
    "fetch_transaction_count",
    "is_contract",
    "is_recently_deployed_contract",
    "is_recently_active_address",
    "MultisigCapabilityCheck",
    "BytecodeMultisigHeuristic",
    "MULTISIG_SIGNATURES",
]
