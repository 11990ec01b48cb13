"""Token and NFT approval risk detection.

Classifies the grantee of every unlimited ERC20 approval and every
full-collection NFT approval, and flags approval-heavy transaction shapes.
"""

from __future__ import annotations

import logging
from enum import StrEnum

from chainsentry.decoding.abi import MAX_UINT256, to_int
from chainsentry.detection.base import GatewayDetector
from chainsentry.detection.phishing import KNOWN_HONEYPOT_CONTRACTS
from chainsentry.detection.predicates import fetch_transaction_count, is_contract
from chainsentry.models.finding import Finding, FindingSeverity, FindingType
from chainsentry.models.transaction import TransactionEvent

logger = logging.getLogger(__name__)

ERC20_APPROVAL_EVENT = "Approval(address,address,uint256)"
APPROVAL_FOR_ALL_EVENT = "ApprovalForAll(address,address,bool)"

APPROVE = "approve(address,uint256)"
SET_APPROVAL_FOR_ALL = "setApprovalForAll(address,bool)"
TRANSFER_SIGNATURES = (
    "transfer(address,uint256)",
    "transferFrom(address,address,uint256)",
    "safeTransferFrom(address,address,uint256)",
)

KNOWN_MALICIOUS_CONTRACTS = KNOWN_HONEYPOT_CONTRACTS

KNOWN_SAFE_CONTRACTS: dict[str, str] = {
    "0x7a250d5630b4cf539739df2c5dacb4c659f2488d": "Uniswap V2 Router",
    "0xe592427a0aece92de3edee1f18e0157c05861564": "Uniswap V3 Router",
    "0xd9e1ce17f2641f24ae83637ab66a2cca9c378b9f": "SushiSwap Router",
    "0x7d2768de32b0b80b7a3454c06bdac94a69ddc7a9": "Aave V2 Lending Pool",
    "0x398ec7346dcd622edc5ae82352f02be94c62d119": "Aave V1 Lending Pool",
    "0x3d9819210a31b4961b30ef54be2aed79b9c9cd3b": "Compound Comptroller",
    "0x00000000006c3852cbef3e08e8df289169ede581": "OpenSea Seaport",
}


class GranteeRisk(StrEnum):
    """Outcome of classifying an approval grantee, highest priority first."""

    MALICIOUS = "malicious"
    EOA = "eoa"
    NEW_CONTRACT = "new_contract"
    UNKNOWN_CONTRACT = "unknown_contract"
    SAFE = "safe"


# (alert id, name, description, severity, type) per risk, ERC20 then NFT
_ERC20_ALERTS = {
    GranteeRisk.MALICIOUS: (
        "APPROVAL-MALICIOUS-1",
        "Approval To Known Malicious Contract",
        "Unlimited token approval to a known malicious contract",
        FindingSeverity.CRITICAL,
        FindingType.EXPLOIT,
    ),
    GranteeRisk.EOA: (
        "APPROVAL-SUSPICIOUS-1",
        "Unlimited Approval To EOA",
        "Unlimited token approval to an externally owned account",
        FindingSeverity.HIGH,
        FindingType.SUSPICIOUS,
    ),
    GranteeRisk.NEW_CONTRACT: (
        "APPROVAL-SUSPICIOUS-2",
        "Unlimited Approval To New Contract",
        "Unlimited token approval to a recently deployed contract",
        FindingSeverity.HIGH,
        FindingType.SUSPICIOUS,
    ),
    GranteeRisk.UNKNOWN_CONTRACT: (
        "APPROVAL-CAUTION-1",
        "Unlimited Approval To Unknown Contract",
        "Unlimited token approval to an unknown contract",
        FindingSeverity.MEDIUM,
        FindingType.SUSPICIOUS,
    ),
}

_NFT_ALERTS = {
    GranteeRisk.MALICIOUS: (
        "NFT-APPROVAL-MALICIOUS-1",
        "NFT Approval To Known Malicious Contract",
        "Full collection approval to a known malicious contract",
        FindingSeverity.CRITICAL,
        FindingType.EXPLOIT,
    ),
    GranteeRisk.EOA: (
        "NFT-APPROVAL-SUSPICIOUS-1",
        "NFT Approval To EOA",
        "Full NFT collection approval to an externally owned account",
        FindingSeverity.HIGH,
        FindingType.SUSPICIOUS,
    ),
    GranteeRisk.NEW_CONTRACT: (
        "NFT-APPROVAL-SUSPICIOUS-2",
        "NFT Approval To New Contract",
        "Full NFT collection approval to a recently deployed contract",
        FindingSeverity.HIGH,
        FindingType.SUSPICIOUS,
    ),
    GranteeRisk.UNKNOWN_CONTRACT: (
        "NFT-APPROVAL-CAUTION-1",
        "NFT Approval To Unknown Contract",
        "Full NFT collection approval to an unknown contract",
        FindingSeverity.MEDIUM,
        FindingType.SUSPICIOUS,
    ),
}


def _finding(alert: tuple, metadata: dict) -> Finding:
    alert_id, name, description, severity, finding_type = alert
    return Finding(
        name=name,
        description=description,
        alert_id=alert_id,
        severity=severity,
        type=finding_type,
        metadata=metadata,
    )


def _as_address(value) -> str | None:
    if isinstance(value, str) and value:
        return value.lower()
    return None


class ApprovalDetector(GatewayDetector):
    """Detects risky token and NFT approvals."""

    name = "approval"

    async def handle_transaction(self, tx: TransactionEvent) -> list[Finding]:
        findings: list[Finding] = []
        await self._check_erc20_approvals(tx, findings)
        await self._check_nft_approvals(tx, findings)
        self._check_multiple_approvals(tx, findings)
        self._check_approval_patterns(tx, findings)
        return findings

    async def classify_grantee(self, address: str) -> GranteeRisk | None:
        """Classify an approval grantee.

        The first matching outcome wins: known malicious, EOA, recently
        deployed contract, contract outside the safe list. Returns None when
        the bytecode read failed and the grantee cannot be classified.
        """
        address = address.lower()
        if address in KNOWN_MALICIOUS_CONTRACTS:
            return GranteeRisk.MALICIOUS

        contract = await is_contract(self.gateway, address)
        if contract is None:
            return None
        if not contract:
            return GranteeRisk.EOA

        count = await fetch_transaction_count(self.gateway, address)
        if count is not None and count < self.settings.recent_contract_max_tx_count:
            return GranteeRisk.NEW_CONTRACT

        if address not in KNOWN_SAFE_CONTRACTS:
            return GranteeRisk.UNKNOWN_CONTRACT
        return GranteeRisk.SAFE

    async def _check_erc20_approvals(self, tx: TransactionEvent, findings: list[Finding]) -> None:
        for log in tx.filter_log(ERC20_APPROVAL_EVENT):
            spender = _as_address(log.args.get("spender"))
            value = to_int(log.args.get("value"))
            if spender is None or value is None:
                logger.debug("Skipping malformed Approval log in %s", tx.hash)
                continue

            metadata = {
                "owner": log.args.get("owner", ""),
                "spender": spender,
                "token": log.address,
                "value": value,
            }

            if value == MAX_UINT256:
                risk = await self.classify_grantee(spender)
                if risk in _ERC20_ALERTS:
                    findings.append(_finding(_ERC20_ALERTS[risk], metadata))
            elif value > self.settings.high_value_approval_wei:
                findings.append(
                    Finding(
                        name="High Value Approval",
                        description="Extremely high-value token approval granted",
                        alert_id="APPROVAL-CAUTION-2",
                        severity=FindingSeverity.MEDIUM,
                        type=FindingType.SUSPICIOUS,
                        metadata=metadata,
                    )
                )

    async def _check_nft_approvals(self, tx: TransactionEvent, findings: list[Finding]) -> None:
        for log in tx.filter_log(APPROVAL_FOR_ALL_EVENT):
            if log.args.get("approved") is not True:
                continue
            operator = _as_address(log.args.get("operator"))
            if operator is None:
                logger.debug("Skipping malformed ApprovalForAll log in %s", tx.hash)
                continue

            risk = await self.classify_grantee(operator)
            if risk not in _NFT_ALERTS:
                continue
            findings.append(
                _finding(
                    _NFT_ALERTS[risk],
                    {
                        "owner": log.args.get("owner", ""),
                        "operator": operator,
                        "collection": log.address,
                    },
                )
            )

    def _check_multiple_approvals(self, tx: TransactionEvent, findings: list[Finding]) -> None:
        erc20_count = len(tx.filter_function(APPROVE))
        nft_count = len(tx.filter_function(SET_APPROVAL_FOR_ALL))
        total = erc20_count + nft_count
        if total < self.settings.multiple_approvals_threshold:
            return
        findings.append(
            Finding(
                name="Multiple Approvals in Single Transaction",
                description=f"{total} approvals granted in a single transaction",
                alert_id="APPROVAL-PATTERN-1",
                severity=FindingSeverity.HIGH,
                type=FindingType.SUSPICIOUS,
                metadata={
                    "erc20ApprovalCount": erc20_count,
                    "nftApprovalCount": nft_count,
                    "transactionHash": tx.hash,
                },
            )
        )

    def _check_approval_patterns(self, tx: TransactionEvent, findings: list[Finding]) -> None:
        approvals = tx.filter_function(APPROVE, SET_APPROVAL_FOR_ALL)
        if not approvals:
            return

        transfers = tx.filter_function(*TRANSFER_SIGNATURES)
        if transfers:
            findings.append(
                Finding(
                    name="Approval And Transfer in Same Transaction",
                    description="Transaction contains both approvals and transfers",
                    alert_id="APPROVAL-PATTERN-2",
                    severity=FindingSeverity.MEDIUM,
                    type=FindingType.SUSPICIOUS,
                    metadata={
                        "approvalCount": len(approvals),
                        "transferCount": len(transfers),
                        "transactionHash": tx.hash,
                    },
                )
            )

        call_count = len(tx.contract_calls())
        if call_count > self.settings.complex_call_threshold:
            findings.append(
                Finding(
                    name="Complex Transaction with Approvals",
                    description="Transaction with approvals contains many contract calls",
                    alert_id="APPROVAL-PATTERN-3",
                    severity=FindingSeverity.MEDIUM,
                    type=FindingType.SUSPICIOUS,
                    metadata={
                        "approvalCount": len(approvals),
                        "callCount": call_count,
                        "transactionHash": tx.hash,
                    },
                )
            )


__all__ = [
    "ApprovalDetector",
    "GranteeRisk",
    "KNOWN_MALICIOUS_CONTRACTS",
    "KNOWN_SAFE_CONTRACTS",
]
