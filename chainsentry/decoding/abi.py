"""ABI helpers: keccak selectors and topics, integer coercion and decode results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

T = TypeVar("T")

MAX_UINT256 = 2**256 - 1

_SIGNATURE_PREFIXES = ("function ", "event ")


@dataclass(frozen=True)
class DecodeResult(Generic[T]):
    """Outcome of a best-effort decode attempt.

    Exactly one of ``value`` or ``error`` is set. Checks that depend on the
    decoded value branch on ``ok`` instead of catching exceptions.
    """

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> DecodeResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> DecodeResult[T]:
        return cls(error=error or "decode failed")


def normalize_signature(signature: str) -> str:
    """Strip ``function``/``event`` prefixes and whitespace from a signature."""
    sig = signature.strip()
    for prefix in _SIGNATURE_PREFIXES:
        if sig.startswith(prefix):
            sig = sig[len(prefix):]
    return "".join(sig.split())


def function_selector(signature: str) -> str:
    """Return the 4-byte selector of a function signature as ``0x`` hex."""
    return "0x" + keccak(text=normalize_signature(signature))[:4].hex()


def event_topic(signature: str) -> str:
    """Return the topic hash of an event signature as ``0x`` hex."""
    return "0x" + keccak(text=normalize_signature(signature)).hex()


def selector_of(data: str | None) -> str | None:
    """Return the leading selector of call data, or None if too short."""
    if not data or len(data) < 10:
        return None
    return data[:10].lower()


def hex_to_bytes(data: str) -> bytes:
    """Convert ``0x`` prefixed hex to bytes.

    Raises:
        ValueError: If the string is not valid hex.
    """
    body = data[2:] if data.startswith(("0x", "0X")) else data
    return bytes.fromhex(body)


def data_size(data: str | None) -> int:
    """Return the size in bytes of ``0x`` prefixed call data."""
    if not data:
        return 0
    body = data[2:] if data.startswith(("0x", "0X")) else data
    return len(body) // 2


def to_int(value: Any) -> int | None:
    """Coerce ints, decimal strings and ``0x`` hex strings to int.

    Returns None for anything that does not represent an integer.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith("0x"):
                return int(text, 16)
            return int(text)
        except ValueError:
            return None
    return None


def decode_address_list(raw: bytes) -> DecodeResult[tuple[str, ...]]:
    """Decode an ABI encoded ``address[]`` return value."""
    try:
        (addresses,) = decode(["address[]"], raw)
    except (DecodingError, ValueError, TypeError, OverflowError) as exc:
        return DecodeResult.failure(f"address[] decode failed: {exc}")
    return DecodeResult.success(tuple(address.lower() for address in addresses))


def decode_uint(raw: bytes) -> DecodeResult[int]:
    """Decode an ABI encoded ``uint256`` return value."""
    try:
        (number,) = decode(["uint256"], raw)
    except (DecodingError, ValueError, TypeError, OverflowError) as exc:
        return DecodeResult.failure(f"uint256 decode failed: {exc}")
    return DecodeResult.success(int(number))


__all__ = [
    "MAX_UINT256",
    "DecodeResult",
    "normalize_signature",
    "function_selector",
    "event_topic",
    "selector_of",
    "hex_to_bytes",
    "data_size",
    "to_int",
    "decode_address_list",
    "decode_uint",
]
