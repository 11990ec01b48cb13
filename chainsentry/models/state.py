"""Records kept by the stateful detectors between calls.

Each record is owned by exactly one detector instance and lives for the
lifetime of the process unless the detector evicts or resets it.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PendingSwap:
    """A swap observed by the MEV detector, awaiting same-block correlation.

    Attributes:
        tx_hash: Hash of the swap transaction.
        block_number: Block the swap was included in.
        timestamp: Unix time the swap was recorded.
        sender: Address that sent the swap.
        token_path: Decoded token route, input to output.
        amount_in: Decoded input amount.
        amount_out_min: Decoded minimum output.
        slippage: Tolerated slippage in [0, 1].
    """

    tx_hash: str
    block_number: int
    timestamp: int
    sender: str
    token_path: tuple[str, ...]
    amount_in: int
    amount_out_min: int
    slippage: float


@dataclass(frozen=True)
class MultisigConfiguration:
    """Owners and signature threshold last read for a multisig wallet."""

    owners: frozenset[str]
    threshold: int

    @property
    def owner_count(self) -> int:
        return len(self.owners)

    def is_owner(self, address: str) -> bool:
        return address.lower() in self.owners


@dataclass(frozen=True)
class PendingAuthentication:
    """An operation waiting for a second factor.

    Attributes:
        operation_id: Identifier supplied by the authentication event.
        tx_hash: Transaction that requested authentication.
        requester: User that must authenticate.
        target: Recipient of the requesting transaction ("" if none).
        value: Native value of the requesting transaction.
        operation_type: Classified operation type tag.
        timestamp: Timestamp carried by the event.
    """

    operation_id: str
    tx_hash: str
    requester: str
    target: str
    value: int
    operation_type: str
    timestamp: int


@dataclass(frozen=True)
class TwoFactorSettings:
    """Per-user 2FA configuration.

    Attributes:
        enabled_for: Operation type tags that require 2FA ("all" matches any).
        value_threshold: Minimum transaction value (wei) that requires 2FA.
        last_verification: Unix time of the last successful verification.
    """

    enabled_for: frozenset[str] = field(default_factory=lambda: frozenset({"all"}))
    value_threshold: int = 0
    last_verification: int = 0

    def covers(self, operation_type: str) -> bool:
        """Check whether 2FA is enabled for the given operation type."""
        return "all" in self.enabled_for or operation_type in self.enabled_for


__all__ = [
    "PendingSwap",
    "MultisigConfiguration",
    "PendingAuthentication",
    "TwoFactorSettings",
]
