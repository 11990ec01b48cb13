"""Phishing detection.

Flags transactions that look like they were produced by a malicious or
spoofed dApp front end: interaction with known honeypots, unlimited
approvals to freshly deployed contracts, oversized multicalls, extreme gas
prices, delegation to fresh addresses and sensitive calls into new contracts.

The detector is stateless; every check uses only the current transaction and
live gateway reads.
"""

from __future__ import annotations

import logging

from chainsentry.decoding.abi import MAX_UINT256, function_selector, to_int
from chainsentry.detection.base import GatewayDetector
from chainsentry.detection.predicates import (
    is_recently_active_address,
    is_recently_deployed_contract,
)
from chainsentry.models.finding import Finding, FindingSeverity, FindingType
from chainsentry.models.transaction import TransactionEvent

logger = logging.getLogger(__name__)

KNOWN_HONEYPOT_CONTRACTS = frozenset(
    {
        "0x7ea2f8c2a3c7c0850e59a8d155a7b8ed5a7cee65",
        "0xa9881c706647ce486b687d47e04a6f64c308a6c9",
    }
)

APPROVE = "approve(address,uint256)"
SET_APPROVAL_FOR_ALL = "setApprovalForAll(address,bool)"
MULTICALL = "multicall(bytes[])"
DELEGATE = "delegate(address)"

# Selectors commonly abused by drainer front ends
SUSPICIOUS_SIGNATURES = (
    "transfer(address,uint256)",
    "transferFrom(address,address,uint256)",
    SET_APPROVAL_FOR_ALL,
    APPROVE,
    "setOperator(address,bool)",
    MULTICALL,
    "safeBatchTransferFrom(address,address,uint256[],uint256[],bytes)",
    DELEGATE,
)
SUSPICIOUS_SELECTORS = frozenset(function_selector(sig) for sig in SUSPICIOUS_SIGNATURES)


class PhishingDetector(GatewayDetector):
    """Detects transactions initiated from malicious or spoofed dApp interfaces."""

    name = "phishing"

    async def handle_transaction(self, tx: TransactionEvent) -> list[Finding]:
        findings: list[Finding] = []
        self._check_known_phishing_addresses(tx, findings)
        await self._check_suspicious_token_operations(tx, findings)
        self._check_suspicious_multicall(tx, findings)
        self._check_frontrunning(tx, findings)
        await self._check_suspicious_delegation(tx, findings)
        await self._check_interaction_with_recent_contract(tx, findings)
        return findings

    def _check_known_phishing_addresses(self, tx: TransactionEvent, findings: list[Finding]) -> None:
        if tx.recipient not in KNOWN_HONEYPOT_CONTRACTS:
            return
        findings.append(
            Finding(
                name="Known Phishing Address",
                description="Transaction interacts with a known phishing address",
                alert_id="PHISHING-1",
                severity=FindingSeverity.HIGH,
                type=FindingType.SUSPICIOUS,
                metadata={"address": tx.recipient, "from": tx.sender},
            )
        )

    async def _check_suspicious_token_operations(
        self, tx: TransactionEvent, findings: list[Finding]
    ) -> None:
        max_tx_count = self.settings.recent_contract_max_tx_count

        for call in tx.filter_function(APPROVE, SET_APPROVAL_FOR_ALL):
            if len(call.args) < 2 or not isinstance(call.args[0], str):
                continue
            grantee = call.args[0].lower()

            if call.name == "approve" and to_int(call.args[1]) == MAX_UINT256:
                if await is_recently_deployed_contract(self.gateway, grantee, max_tx_count):
                    findings.append(
                        Finding(
                            name="Suspicious Token Approval",
                            description="Unlimited token approval to a recently deployed contract",
                            alert_id="PHISHING-2",
                            severity=FindingSeverity.HIGH,
                            type=FindingType.SUSPICIOUS,
                            metadata={
                                "token": call.address or "",
                                "spender": grantee,
                                "owner": tx.sender,
                                "value": str(MAX_UINT256),
                            },
                        )
                    )

            elif call.name == "setApprovalForAll" and call.args[1] is True:
                if await is_recently_deployed_contract(self.gateway, grantee, max_tx_count):
                    findings.append(
                        Finding(
                            name="Suspicious Collection Approval",
                            description="Approval granted for all NFTs to a recently deployed contract",
                            alert_id="PHISHING-3",
                            severity=FindingSeverity.HIGH,
                            type=FindingType.SUSPICIOUS,
                            metadata={
                                "collection": call.address or "",
                                "operator": grantee,
                                "owner": tx.sender,
                            },
                        )
                    )

    def _check_suspicious_multicall(self, tx: TransactionEvent, findings: list[Finding]) -> None:
        if not tx.filter_function(MULTICALL):
            return
        if tx.data_size <= self.settings.multicall_data_threshold_bytes:
            return
        findings.append(
            Finding(
                name="Suspicious Multicall",
                description="Large data multicall transaction detected",
                alert_id="PHISHING-4",
                severity=FindingSeverity.MEDIUM,
                type=FindingType.SUSPICIOUS,
                metadata={
                    "contract": tx.recipient or "",
                    "from": tx.sender,
                    "dataLength": tx.data_size,
                },
            )
        )

    def _check_frontrunning(self, tx: TransactionEvent, findings: list[Finding]) -> None:
        # Mempool correlation is out of reach here; an extreme gas price is the signal
        if tx.gas_price is None or tx.gas_price <= self.settings.frontrunning_gas_price_wei:
            return
        findings.append(
            Finding(
                name="Potential Frontrunning",
                description="Transaction with unusually high gas price",
                alert_id="PHISHING-5",
                severity=FindingSeverity.MEDIUM,
                type=FindingType.SUSPICIOUS,
                metadata={
                    "from": tx.sender,
                    "to": tx.recipient or "",
                    "gasPrice": tx.gas_price,
                },
            )
        )

    async def _check_suspicious_delegation(
        self, tx: TransactionEvent, findings: list[Finding]
    ) -> None:
        for call in tx.filter_function(DELEGATE):
            if not call.args or not isinstance(call.args[0], str):
                continue
            delegatee = call.args[0].lower()
            if not await is_recently_active_address(
                self.gateway, delegatee, self.settings.recent_address_max_tx_count
            ):
                continue
            findings.append(
                Finding(
                    name="Suspicious Delegation",
                    description="Voting power delegated to a recently active address",
                    alert_id="PHISHING-6",
                    severity=FindingSeverity.MEDIUM,
                    type=FindingType.SUSPICIOUS,
                    metadata={
                        "delegator": tx.sender,
                        "delegatee": delegatee,
                        "contract": call.address or "",
                    },
                )
            )

    async def _check_interaction_with_recent_contract(
        self, tx: TransactionEvent, findings: list[Finding]
    ) -> None:
        if not tx.recipient or tx.selector not in SUSPICIOUS_SELECTORS:
            return
        if not await is_recently_deployed_contract(
            self.gateway, tx.recipient, self.settings.recent_contract_max_tx_count
        ):
            return
        findings.append(
            Finding(
                name="Interaction with Suspicious New Contract",
                description="Transaction to a recently deployed contract with suspicious function signature",
                alert_id="PHISHING-7",
                severity=FindingSeverity.HIGH,
                type=FindingType.SUSPICIOUS,
                metadata={
                    "from": tx.sender,
                    "to": tx.recipient,
                    "data": tx.selector,
                },
            )
        )


__all__ = [
    "PhishingDetector",
    "KNOWN_HONEYPOT_CONTRACTS",
    "SUSPICIOUS_SELECTORS",
]
