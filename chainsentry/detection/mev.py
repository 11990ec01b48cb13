"""MEV and sandwich attack detection.

The detector keeps a window of recently observed router swaps keyed by
transaction hash. Each new swap is recorded, stale entries are evicted and
the swaps sharing the current block are scanned for front-run / victim /
back-run triples.

Algorithm (sandwich correlation):
1. Decode the router call once per transaction (best effort).
2. Record the swap and evict entries more than ``swap_window_blocks`` below
   the newest block seen so far.
3. Walk every contiguous triple of same-block swaps in recording order and
   flag the middle one as a victim when the outer legs share a sender and
   have a matching token route.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from decimal import Decimal

from chainsentry.decoding.abi import DecodeResult
from chainsentry.decoding.swaps import SwapDetails, decode_swap, is_swap_call
from chainsentry.detection.base import GatewayDetector
from chainsentry.models.finding import Finding, FindingSeverity, FindingType
from chainsentry.models.state import PendingSwap
from chainsentry.models.transaction import TransactionEvent

logger = logging.getLogger(__name__)


def paths_are_similar(first: tuple[str, ...], second: tuple[str, ...]) -> bool:
    """Check whether two token routes have the same length and endpoints.

    A back-run usually trades the front-run route in reverse, so endpoints
    may match in either direction.
    """
    if len(first) != len(second) or not first:
        return False
    same_direction = first[0] == second[0] and first[-1] == second[-1]
    reversed_direction = first[0] == second[-1] and first[-1] == second[0]
    return same_direction or reversed_direction


class MevDetector(GatewayDetector):
    """Detects MEV patterns: gas spikes, sandwiches, tight slippage and long routes.

    Args:
        gateway: Chain data gateway used for the average gas price.
        settings: Detector thresholds.
        clock: Returns the current unix time; used when the transaction
            carries no block timestamp.
    """

    name = "mev"

    def __init__(self, gateway, settings=None, clock: Callable[[], float] = time.time) -> None:
        super().__init__(gateway, settings)
        self._clock = clock
        self.pending_swaps: dict[str, PendingSwap] = {}
        self._latest_block: int | None = None

    def reset(self) -> None:
        """Forget every recorded swap."""
        self.pending_swaps.clear()
        self._latest_block = None

    async def handle_transaction(self, tx: TransactionEvent) -> list[Finding]:
        findings: list[Finding] = []
        await self._check_high_gas_price(tx, findings)

        if not is_swap_call(tx.recipient, tx.data):
            return findings

        decoded = decode_swap(tx.recipient, tx.data, tx.value)
        if not decoded.ok:
            logger.debug("Skipping swap checks for %s: %s", tx.hash, decoded.error)
            return findings

        self._check_sandwich(tx, decoded, findings)
        self._check_low_slippage(tx, decoded.value, findings)
        self._check_unusual_route(tx, decoded.value, findings)
        return findings

    async def _check_high_gas_price(self, tx: TransactionEvent, findings: list[Finding]) -> None:
        if not tx.gas_price:
            return
        try:
            average = await self.gateway.get_current_average_gas_price()
        except Exception as exc:
            logger.warning("Average gas price lookup failed: %s", exc)
            return
        if average <= 0 or tx.gas_price < average * self.settings.high_gas_multiplier:
            return

        ratio = Decimal(tx.gas_price) / Decimal(average)
        findings.append(
            Finding(
                name="High Gas Price Transaction",
                description=f"Transaction with unusually high gas price ({tx.gas_price})",
                alert_id="MEV-1",
                severity=FindingSeverity.MEDIUM,
                type=FindingType.SUSPICIOUS,
                metadata={
                    "from": tx.sender,
                    "to": tx.recipient or "",
                    "gasPrice": tx.gas_price,
                    "averageGasPrice": average,
                    "ratio": f"{ratio:.2f}",
                },
            )
        )

    def _record_swap(self, tx: TransactionEvent, swap: SwapDetails) -> None:
        timestamp = tx.timestamp if tx.timestamp is not None else int(self._clock())
        self.pending_swaps[tx.hash] = PendingSwap(
            tx_hash=tx.hash,
            block_number=tx.block_number,
            timestamp=timestamp,
            sender=tx.sender,
            token_path=swap.path,
            amount_in=swap.amount_in,
            amount_out_min=swap.amount_out_min,
            slippage=swap.slippage,
        )
        if self._latest_block is None or tx.block_number > self._latest_block:
            self._latest_block = tx.block_number
        self._evict_before(self._latest_block - self.settings.swap_window_blocks)

    def _evict_before(self, min_block_number: int) -> None:
        stale = [h for h, swap in self.pending_swaps.items() if swap.block_number < min_block_number]
        for tx_hash in stale:
            del self.pending_swaps[tx_hash]
        if stale:
            logger.debug("Evicted %d swap(s) below block %d", len(stale), min_block_number)

    def _check_sandwich(
        self, tx: TransactionEvent, decoded: DecodeResult[SwapDetails], findings: list[Finding]
    ) -> None:
        self._record_swap(tx, decoded.value)

        block_swaps = [
            swap for swap in self.pending_swaps.values() if swap.block_number == tx.block_number
        ]
        for front, victim, back in zip(block_swaps, block_swaps[1:], block_swaps[2:]):
            if not paths_are_similar(front.token_path, back.token_path):
                continue
            if front.sender != back.sender or front.sender == victim.sender:
                continue
            findings.append(
                Finding(
                    name="Potential Sandwich Attack",
                    description="Pattern of transactions consistent with a sandwich attack detected",
                    alert_id="MEV-2",
                    severity=FindingSeverity.HIGH,
                    type=FindingType.SUSPICIOUS,
                    metadata={
                        "victimTx": victim.tx_hash,
                        "frontrunTx": front.tx_hash,
                        "backrunTx": back.tx_hash,
                        "attacker": front.sender,
                        "victim": victim.sender,
                        "tokenPath": json.dumps(list(victim.token_path)),
                    },
                )
            )

    def _check_low_slippage(
        self, tx: TransactionEvent, swap: SwapDetails, findings: list[Finding]
    ) -> None:
        if Decimal(str(swap.slippage)) >= self.settings.low_slippage_threshold:
            return
        findings.append(
            Finding(
                name="Extremely Low Slippage Tolerance",
                description="Swap with very low slippage tolerance, could be MEV target",
                alert_id="MEV-3",
                severity=FindingSeverity.MEDIUM,
                type=FindingType.SUSPICIOUS,
                metadata={
                    "from": tx.sender,
                    "to": tx.recipient or "",
                    "amountIn": swap.amount_in,
                    "amountOutMin": swap.amount_out_min,
                    "slippage": swap.slippage,
                    "path": json.dumps(list(swap.path)),
                },
            )
        )

    def _check_unusual_route(
        self, tx: TransactionEvent, swap: SwapDetails, findings: list[Finding]
    ) -> None:
        if len(swap.path) <= self.settings.max_route_length:
            return
        findings.append(
            Finding(
                name="Unusual Swap Route",
                description=f"Swap with unusually long token path ({len(swap.path)} tokens)",
                alert_id="MEV-4",
                severity=FindingSeverity.MEDIUM,
                type=FindingType.SUSPICIOUS,
                metadata={
                    "from": tx.sender,
                    "to": tx.recipient or "",
                    "pathLength": len(swap.path),
                    "path": json.dumps(list(swap.path)),
                },
            )
        )


__all__ = [
    "MevDetector",
    "paths_are_similar",
]
