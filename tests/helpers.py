"""Builders shared by the test modules."""

from __future__ import annotations

from typing import Any

from eth_abi import encode

from chainsentry.decoding.abi import function_selector
from chainsentry.models.transaction import TransactionEvent

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "c0" * 20
TOKEN = "0x" + "70" * 20
WETH = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def call_data(signature: str, types: list[str] | None = None, args: list[Any] | None = None) -> str:
    """ABI encode a call as 0x hex: selector followed by encoded arguments."""
    body = encode(types, args).hex() if types else ""
    return function_selector(signature) + body


def make_tx(**overrides: Any) -> TransactionEvent:
    fields: dict[str, Any] = {
        "hash": tx_hash(1),
        "block_number": 100,
        "sender": ALICE,
        "recipient": BOB,
    }
    fields.update(overrides)
    return TransactionEvent(**fields)
