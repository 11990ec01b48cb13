"""Call-data and return-data decoding helpers.

Decoding is best-effort: failures come back as ``DecodeResult`` values so
that the checks depending on them can be skipped without raising.
"""

from chainsentry.decoding.abi import (
    MAX_UINT256,
    DecodeResult,
    data_size,
    decode_address_list,
    decode_uint,
    event_topic,
    function_selector,
    hex_to_bytes,
    normalize_signature,
    selector_of,
    to_int,
)
from chainsentry.decoding.swaps import (
    DEX_ROUTERS,
    SWAP_SELECTORS,
    SwapDetails,
    decode_swap,
    decode_v3_path,
    is_swap_call,
)

__all__ = [
    "MAX_UINT256",
    "DecodeResult",
    "data_size",
    "decode_address_list",
    "decode_uint",
    "event_topic",
    "function_selector",
    "hex_to_bytes",
    "normalize_signature",
    "selector_of",
    "to_int",
    "DEX_ROUTERS",
    "SWAP_SELECTORS",
    "SwapDetails",
    "decode_swap",
    "decode_v3_path",
    "is_swap_call",
]
