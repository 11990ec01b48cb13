"""Pydantic models for the transaction events handed to detectors.

A ``TransactionEvent`` is built by the outer request layer from a node trace
and is read-only from the detectors' point of view: logs and function calls
arrive already decoded, detectors only filter them by signature.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chainsentry.decoding.abi import data_size, normalize_signature, selector_of, to_int

# Ethereum address regex pattern
ETH_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
# Transaction hash regex pattern
TX_HASH_PATTERN = re.compile(r"^0x[a-fA-F0-9]{64}$")
# Hex call data pattern (possibly empty)
HEX_DATA_PATTERN = re.compile(r"^0x([a-fA-F0-9]{2})*$")


def _validate_address(v: str) -> str:
    if not v:
        raise ValueError("Address cannot be empty")
    v = v.lower()
    if not ETH_ADDRESS_PATTERN.match(v):
        raise ValueError(
            f"Invalid Ethereum address: {v[:20]}... "
            "Expected format: 0x followed by 40 hex characters"
        )
    return v


def _validate_hex_data(v: Any) -> str:
    if v is None or v == "":
        return "0x"
    if not isinstance(v, str):
        raise ValueError("Call data must be a hex string")
    v = v.lower()
    if not HEX_DATA_PATTERN.match(v):
        raise ValueError(f"Invalid call data: {v[:20]}... Expected 0x prefixed hex bytes")
    return v


class LogEvent(BaseModel):
    """A decoded event log emitted during the transaction.

    Attributes:
        address: Contract that emitted the log.
        signature: Canonical event signature, e.g. ``Approval(address,address,uint256)``.
        args: Decoded event arguments by parameter name.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str = Field(..., min_length=42, max_length=42)
    signature: str = Field(..., min_length=3)
    args: dict[str, Any] = Field(default_factory=dict)

    @field_validator("address")
    @classmethod
    def validate_eth_address(cls, v: str) -> str:
        """Validate Ethereum address format and normalize to lowercase."""
        return _validate_address(v)

    @field_validator("signature")
    @classmethod
    def validate_signature(cls, v: str) -> str:
        """Normalize the event signature (no prefix, no whitespace)."""
        return normalize_signature(v)


class FunctionCall(BaseModel):
    """A decoded function invocation found in the transaction or its traces.

    Attributes:
        address: Contract the function was called on.
        signature: Canonical function signature, e.g. ``approve(address,uint256)``.
        args: Positional decoded arguments.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str | None = Field(default=None, min_length=42, max_length=42)
    signature: str = Field(..., min_length=3)
    args: tuple[Any, ...] = Field(default_factory=tuple)

    @field_validator("address")
    @classmethod
    def validate_eth_address(cls, v: str | None) -> str | None:
        """Validate Ethereum address format and normalize to lowercase."""
        if v is None:
            return None
        return _validate_address(v)

    @field_validator("signature")
    @classmethod
    def validate_signature(cls, v: str) -> str:
        """Normalize the function signature (no prefix, no whitespace)."""
        return normalize_signature(v)

    @property
    def name(self) -> str:
        """Function name without the parameter list."""
        return self.signature.split("(", 1)[0]


class CallTrace(BaseModel):
    """A sub-call recorded by the node's tracer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str = Field(default="call")
    from_address: str | None = None
    to: str | None = None
    input: str = Field(default="0x")

    @field_validator("from_address", "to")
    @classmethod
    def validate_eth_address(cls, v: str | None) -> str | None:
        """Validate Ethereum address format and normalize to lowercase."""
        if v is None:
            return None
        return _validate_address(v)

    @field_validator("input", mode="before")
    @classmethod
    def validate_input(cls, v: Any) -> str:
        """Validate hex input and normalize to lowercase."""
        return _validate_hex_data(v)

    @property
    def has_selector(self) -> bool:
        return selector_of(self.input) is not None


class TransactionEvent(BaseModel):
    """A single transaction as seen by the detectors.

    Attributes:
        hash: Transaction hash (66-character hex string with 0x prefix).
        block_number: Block the transaction was included in.
        timestamp: Block timestamp in unix seconds, when known.
        sender: Address that sent the transaction.
        recipient: Destination address; None for contract creation.
        value: Native value transferred, in wei.
        gas_price: Gas price in wei, when known.
        data: Raw call data (``0x`` for plain transfers).
        logs: Decoded event logs.
        calls: Decoded function calls (top-level call and traced sub-calls).
        traces: Raw sub-call traces.

    Example:
        >>> tx = TransactionEvent(
        ...     hash="0x0c8d...4e832",
        ...     block_number=24305113,
        ...     sender="0x66a9...ba8af",
        ...     recipient="0x7a25...2488d",
        ...     value=10**18,
        ...     data="0x7ff36ab5...",
        ... )
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        extra="forbid",
    )

    hash: str = Field(
        ...,
        min_length=66,
        max_length=66,
        description="Transaction hash (0x + 64 hex characters)",
        examples=["0x0c8d16bd4bbe310078b6c12dab184a5ffe0088c4cd7f36371680cc855014e832"],
    )
    block_number: int = Field(..., ge=0, description="Block number", examples=[24305113])
    timestamp: int | None = Field(default=None, ge=0, description="Block timestamp")
    sender: str = Field(
        ...,
        min_length=42,
        max_length=42,
        description="Address that sent the transaction",
        examples=["0x66a9893cc07d91d95644aedd05d03f95e1dba8af"],
    )
    recipient: str | None = Field(
        default=None,
        min_length=42,
        max_length=42,
        description="Destination address (None for contract creation)",
    )
    value: int = Field(default=0, ge=0, description="Native value in wei")
    gas_price: int | None = Field(default=None, ge=0, description="Gas price in wei")
    data: str = Field(default="0x", description="Raw call data")
    logs: tuple[LogEvent, ...] = Field(default_factory=tuple)
    calls: tuple[FunctionCall, ...] = Field(default_factory=tuple)
    traces: tuple[CallTrace, ...] = Field(default_factory=tuple)

    @field_validator("hash")
    @classmethod
    def validate_tx_hash(cls, v: str) -> str:
        """Validate transaction hash format and normalize to lowercase."""
        if not v:
            raise ValueError("Transaction hash cannot be empty")
        v = v.lower()
        if not TX_HASH_PATTERN.match(v):
            raise ValueError(
                f"Invalid transaction hash: {v[:20]}... "
                "Expected format: 0x followed by 64 hex characters"
            )
        return v

    @field_validator("sender")
    @classmethod
    def validate_sender(cls, v: str) -> str:
        """Validate Ethereum address format and normalize to lowercase."""
        return _validate_address(v)

    @field_validator("recipient")
    @classmethod
    def validate_recipient(cls, v: str | None) -> str | None:
        """Validate the optional recipient address."""
        if v is None:
            return None
        return _validate_address(v)

    @field_validator("value", "gas_price", mode="before")
    @classmethod
    def coerce_quantity(cls, v: Any) -> Any:
        """Accept ints, decimal strings and 0x hex quantities."""
        if v is None or isinstance(v, int):
            return v
        number = to_int(v)
        if number is None:
            raise ValueError(f"Invalid quantity: {v!r}")
        return number

    @field_validator("data", mode="before")
    @classmethod
    def validate_data(cls, v: Any) -> str:
        """Validate hex call data and normalize to lowercase."""
        return _validate_hex_data(v)

    @property
    def selector(self) -> str | None:
        """Leading 4-byte selector of the call data, if any."""
        return selector_of(self.data)

    @property
    def data_size(self) -> int:
        """Size of the call data in bytes."""
        return data_size(self.data)

    @property
    def addresses(self) -> tuple[str, ...]:
        """Addresses touched by the transaction, in first-seen order.

        Includes the sender, the recipient, every log emitter and every
        address-valued log argument.
        """
        seen: dict[str, None] = {self.sender: None}
        if self.recipient:
            seen[self.recipient] = None
        for log in self.logs:
            seen[log.address] = None
            for value in log.args.values():
                if isinstance(value, str) and ETH_ADDRESS_PATTERN.match(value):
                    seen[value.lower()] = None
        return tuple(seen)

    def filter_log(self, *signatures: str) -> list[LogEvent]:
        """Return logs matching any of the given event signatures."""
        wanted = {normalize_signature(sig) for sig in signatures}
        return [log for log in self.logs if log.signature in wanted]

    def filter_function(self, *signatures: str) -> list[FunctionCall]:
        """Return function calls matching any of the given signatures."""
        wanted = {normalize_signature(sig) for sig in signatures}
        return [call for call in self.calls if call.signature in wanted]

    def contract_calls(self) -> list[CallTrace]:
        """Traced sub-calls of type ``call`` that carry a function selector."""
        return [trace for trace in self.traces if trace.type == "call" and trace.has_selector]


__all__ = [
    "TransactionEvent",
    "LogEvent",
    "FunctionCall",
    "CallTrace",
    "ETH_ADDRESS_PATTERN",
    "TX_HASH_PATTERN",
]
