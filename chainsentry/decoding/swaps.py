"""Best-effort decoding of DEX router swap calls.

Supported routers:
- Uniswap V2 style (Uniswap V2, SushiSwap, PancakeSwap):
  ``swapExactETHForTokens``, ``swapExactTokensForETH``, ``swapExactTokensForTokens``
- Uniswap V3 SwapRouter: ``exactInput``, ``exactOutput``

Every decode returns a ``DecodeResult``; unparseable call data is a normal
failure branch, never an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from eth_abi import decode
from eth_abi.exceptions import DecodingError

from chainsentry.decoding.abi import DecodeResult, function_selector, hex_to_bytes, selector_of

DEX_ROUTERS: dict[str, str] = {
    "uniswap_v2": "0x7a250d5630b4cf539739df2c5dacb4c659f2488d",
    "uniswap_v3": "0xe592427a0aece92de3edee1f18e0157c05861564",
    "sushiswap": "0xd9e1ce17f2641f24ae83637ab66a2cca9c378b9f",
    "pancakeswap": "0x10ed43c718714eb63d5aa57b78b54704e256024e",
}

V2_STYLE_ROUTERS = frozenset(
    {DEX_ROUTERS["uniswap_v2"], DEX_ROUTERS["sushiswap"], DEX_ROUTERS["pancakeswap"]}
)

SWAP_EXACT_ETH_FOR_TOKENS = "swapExactETHForTokens(uint256,address[],address,uint256)"
SWAP_EXACT_TOKENS_FOR_ETH = "swapExactTokensForETH(uint256,uint256,address[],address,uint256)"
SWAP_EXACT_TOKENS_FOR_TOKENS = (
    "swapExactTokensForTokens(uint256,uint256,address[],address,uint256)"
)
EXACT_INPUT = "exactInput((bytes,address,uint256,uint256,uint256))"
EXACT_OUTPUT = "exactOutput((bytes,address,uint256,uint256,uint256))"

SWAP_SELECTORS: dict[str, str] = {
    function_selector(sig): sig
    for sig in (
        SWAP_EXACT_ETH_FOR_TOKENS,
        SWAP_EXACT_TOKENS_FOR_ETH,
        SWAP_EXACT_TOKENS_FOR_TOKENS,
        EXACT_INPUT,
        EXACT_OUTPUT,
    )
}

# Uniswap V3 packed path: token (20 bytes) followed by (fee (3) + token (20)) per hop
_V3_ADDRESS_SIZE = 20
_V3_HOP_SIZE = 23

_DECODE_ERRORS = (DecodingError, ValueError, TypeError, OverflowError, IndexError)


@dataclass(frozen=True)
class SwapDetails:
    """Decoded parameters of a router swap.

    Attributes:
        path: Token addresses in input -> output order.
        amount_in: Input amount (or maximum input for exact-output swaps).
        amount_out_min: Minimum acceptable output (or exact output).
    """

    path: tuple[str, ...]
    amount_in: int
    amount_out_min: int

    @property
    def slippage(self) -> float:
        """Relative gap between minimum output and input, clamped to [0, 1].

        Zero when no minimum output was set.
        """
        if self.amount_out_min == 0 or self.amount_in <= 0:
            return 0.0
        ratio = Decimal(self.amount_out_min) / Decimal(self.amount_in)
        slippage = Decimal(1) - ratio
        return float(min(Decimal(1), max(Decimal(0), slippage)))


def is_swap_call(recipient: str | None, data: str | None) -> bool:
    """Check whether a call targets a known router with a known swap selector."""
    if not recipient:
        return False
    if recipient.lower() not in DEX_ROUTERS.values():
        return False
    return selector_of(data) in SWAP_SELECTORS


def decode_swap(recipient: str | None, data: str | None, value: int = 0) -> DecodeResult[SwapDetails]:
    """Decode router call data into ``SwapDetails``.

    Args:
        recipient: Router address the transaction was sent to.
        data: Raw ``0x`` call data.
        value: Native value attached to the transaction (used as amountIn
            for ``swapExactETHForTokens``).

    Returns:
        DecodeResult holding SwapDetails, or the reason decoding failed.
    """
    if not recipient or not data:
        return DecodeResult.failure("missing recipient or call data")

    router = recipient.lower()
    selector = selector_of(data)
    signature = SWAP_SELECTORS.get(selector or "")
    if signature is None:
        return DecodeResult.failure(f"unknown swap selector {selector}")

    try:
        payload = hex_to_bytes(data)[4:]
    except ValueError as exc:
        return DecodeResult.failure(f"invalid call data: {exc}")

    if router in V2_STYLE_ROUTERS:
        result = _decode_v2(signature, payload, value)
    elif router == DEX_ROUTERS["uniswap_v3"]:
        result = _decode_v3(signature, payload)
    else:
        return DecodeResult.failure(f"unsupported router {router}")

    if not result.ok:
        return result
    details = result.value
    if details.amount_in == 0 or not details.path:
        return DecodeResult.failure("swap has no input amount or token path")
    return result


def decode_v3_path(raw: bytes) -> tuple[str, ...]:
    """Split a packed Uniswap V3 path into token addresses.

    Raises:
        ValueError: If the byte length is not a valid packed path.
    """
    if len(raw) < _V3_ADDRESS_SIZE + _V3_HOP_SIZE or (len(raw) - _V3_ADDRESS_SIZE) % _V3_HOP_SIZE:
        raise ValueError(f"invalid packed path length {len(raw)}")
    tokens = ["0x" + raw[:_V3_ADDRESS_SIZE].hex()]
    offset = _V3_ADDRESS_SIZE
    while offset < len(raw):
        start = offset + 3
        tokens.append("0x" + raw[start:start + _V3_ADDRESS_SIZE].hex())
        offset += _V3_HOP_SIZE
    return tuple(tokens)


def _decode_v2(signature: str, payload: bytes, value: int) -> DecodeResult[SwapDetails]:
    try:
        if signature == SWAP_EXACT_ETH_FOR_TOKENS:
            amount_out_min, path, _to, _deadline = decode(
                ["uint256", "address[]", "address", "uint256"], payload
            )
            amount_in = value
        elif signature in (SWAP_EXACT_TOKENS_FOR_ETH, SWAP_EXACT_TOKENS_FOR_TOKENS):
            amount_in, amount_out_min, path, _to, _deadline = decode(
                ["uint256", "uint256", "address[]", "address", "uint256"], payload
            )
        else:
            return DecodeResult.failure(f"{signature} is not a V2 router call")
    except _DECODE_ERRORS as exc:
        return DecodeResult.failure(f"V2 swap decode failed: {exc}")

    return DecodeResult.success(
        SwapDetails(
            path=tuple(token.lower() for token in path),
            amount_in=int(amount_in),
            amount_out_min=int(amount_out_min),
        )
    )


def _decode_v3(signature: str, payload: bytes) -> DecodeResult[SwapDetails]:
    if signature not in (EXACT_INPUT, EXACT_OUTPUT):
        return DecodeResult.failure(f"{signature} is not a V3 router call")
    try:
        ((raw_path, _recipient, _deadline, first_amount, second_amount),) = decode(
            ["(bytes,address,uint256,uint256,uint256)"], payload
        )
        path = decode_v3_path(raw_path)
    except _DECODE_ERRORS as exc:
        return DecodeResult.failure(f"V3 swap decode failed: {exc}")

    if signature == EXACT_INPUT:
        # (path, recipient, deadline, amountIn, amountOutMinimum)
        return DecodeResult.success(
            SwapDetails(path=path, amount_in=int(first_amount), amount_out_min=int(second_amount))
        )
    # exactOutput: (path reversed, recipient, deadline, amountOut, amountInMaximum)
    return DecodeResult.success(
        SwapDetails(
            path=tuple(reversed(path)),
            amount_in=int(second_amount),
            amount_out_min=int(first_amount),
        )
    )


__all__ = [
    "DEX_ROUTERS",
    "SWAP_SELECTORS",
    "SwapDetails",
    "is_swap_call",
    "decode_swap",
    "decode_v3_path",
]
