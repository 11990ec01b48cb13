"""Multisig wallet protection.

For every multisig touched by a transaction the detector refreshes the
wallet's owners and threshold from chain, then checks the configuration,
the activity carried by the transaction and any ownership changes.
"""

from __future__ import annotations

import logging

from chainsentry.config import DetectorSettings
from chainsentry.decoding.abi import (
    decode_address_list,
    decode_uint,
    function_selector,
    hex_to_bytes,
    to_int,
)
from chainsentry.detection.base import GatewayDetector
from chainsentry.detection.predicates import BytecodeMultisigHeuristic, MultisigCapabilityCheck
from chainsentry.gateway.base import ChainDataGateway
from chainsentry.models.finding import Finding, FindingSeverity, FindingType
from chainsentry.models.state import MultisigConfiguration
from chainsentry.models.transaction import TransactionEvent

logger = logging.getLogger(__name__)

REVOKE_CONFIRMATION_EVENT = "RevokeConfirmation(address,bytes32)"
OWNER_ADDITION_EVENT = "OwnerAddition(address)"
OWNER_REMOVAL_EVENT = "OwnerRemoval(address)"
REQUIREMENT_CHANGE_EVENT = "RequirementChange(uint256)"

GET_OWNERS = function_selector("getOwners()")
GET_THRESHOLD = function_selector("getThreshold()")

EXECUTE_SELECTORS = frozenset(
    {
        function_selector(
            "execTransaction(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,bytes)"
        ),
        function_selector("executeTransaction(uint256)"),
    }
)


class MultisigProtectionDetector(GatewayDetector):
    """Detects risky configurations and anomalous use of multisig wallets.

    Args:
        gateway: Chain data gateway for bytecode and read-only calls.
        settings: Detector thresholds.
        multisig_check: Decides which touched addresses are multisigs.
            Defaults to the bytecode selector heuristic.
    """

    name = "multisig"

    def __init__(
        self,
        gateway: ChainDataGateway,
        settings: DetectorSettings | None = None,
        multisig_check: MultisigCapabilityCheck | None = None,
    ) -> None:
        super().__init__(gateway, settings)
        self.multisig_check = multisig_check or BytecodeMultisigHeuristic()
        self.cache: dict[str, MultisigConfiguration] = {}

    def reset(self) -> None:
        """Drop every cached wallet configuration."""
        self.cache.clear()

    def remember_configuration(self, address: str, owners, threshold: int) -> None:
        """Seed the cache with a known configuration."""
        self.cache[address.lower()] = MultisigConfiguration(
            owners=frozenset(owner.lower() for owner in owners),
            threshold=threshold,
        )

    def cached_configuration(self, address: str) -> MultisigConfiguration | None:
        return self.cache.get(address.lower())

    async def handle_transaction(self, tx: TransactionEvent) -> list[Finding]:
        findings: list[Finding] = []

        revocations = tx.filter_log(REVOKE_CONFIRMATION_EVENT)
        additions = tx.filter_log(OWNER_ADDITION_EVENT)
        removals = tx.filter_log(OWNER_REMOVAL_EVENT)
        requirement_changes = tx.filter_log(REQUIREMENT_CHANGE_EVENT)

        for address in tx.addresses:
            if not await self._is_multisig(address):
                continue

            previous = self.cache.get(address)
            fresh = await self._refresh_configuration(address)

            if fresh is not None:
                self._check_configuration(address, fresh, findings)
            self._check_activity(tx, address, len(revocations), findings)
            self._check_ownership_changes(
                tx, address, previous, len(additions), len(removals), requirement_changes, findings
            )

        return findings

    async def _is_multisig(self, address: str) -> bool:
        try:
            return await self.multisig_check.is_multisig(self.gateway, address)
        except Exception as exc:
            logger.warning("Multisig check failed for %s: %s", address, exc)
            return False

    async def _refresh_configuration(self, address: str) -> MultisigConfiguration | None:
        """Read owners and threshold from chain and overwrite the cache entry.

        Returns the fresh configuration, or None if either read failed.
        """
        try:
            raw_owners = await self.gateway.call_read_only(address, hex_to_bytes(GET_OWNERS))
            raw_threshold = await self.gateway.call_read_only(address, hex_to_bytes(GET_THRESHOLD))
        except Exception as exc:
            logger.warning("Multisig configuration read failed for %s: %s", address, exc)
            return None

        owners = decode_address_list(raw_owners)
        threshold = decode_uint(raw_threshold)
        if not owners.ok or not threshold.ok:
            logger.debug(
                "Undecodable multisig configuration for %s: %s",
                address,
                owners.error or threshold.error,
            )
            return None

        config = MultisigConfiguration(owners=frozenset(owners.value), threshold=threshold.value)
        self.cache[address] = config
        return config

    def _check_configuration(
        self, address: str, config: MultisigConfiguration, findings: list[Finding]
    ) -> None:
        if config.owner_count == 0 or config.threshold == 0:
            return
        metadata = {
            "multisigAddress": address,
            "threshold": config.threshold,
            "ownerCount": config.owner_count,
        }

        if config.threshold == 1 and config.owner_count > 2:
            findings.append(
                Finding(
                    name="Risky Multisig Configuration",
                    description=(
                        f"Multisig wallet has a low threshold ({config.threshold}) "
                        f"compared to owner count ({config.owner_count})"
                    ),
                    alert_id="MULTISIG-CONFIG-1",
                    severity=FindingSeverity.MEDIUM,
                    type=FindingType.SUSPICIOUS,
                    metadata=metadata,
                )
            )

        if config.owner_count > self.settings.large_owner_count:
            findings.append(
                Finding(
                    name="Complex Multisig Configuration",
                    description=f"Multisig wallet has a high number of owners ({config.owner_count})",
                    alert_id="MULTISIG-CONFIG-2",
                    severity=FindingSeverity.INFO,
                    type=FindingType.INFO,
                    metadata=metadata,
                )
            )

    def _check_activity(
        self, tx: TransactionEvent, address: str, revocation_count: int, findings: list[Finding]
    ) -> None:
        if revocation_count > self.settings.revocation_limit:
            findings.append(
                Finding(
                    name="Unusual Multisig Activity",
                    description=f"Multiple confirmation revocations ({revocation_count}) in a single transaction",
                    alert_id="MULTISIG-ACTIVITY-1",
                    severity=FindingSeverity.MEDIUM,
                    type=FindingType.SUSPICIOUS,
                    metadata={
                        "multisigAddress": address,
                        "revocationCount": revocation_count,
                        "transactionHash": tx.hash,
                    },
                )
            )

        if tx.recipient != address or tx.selector not in EXECUTE_SELECTORS:
            return
        # Without a known owner set there is nothing to compare against
        config = self.cache.get(address)
        if config is None or config.is_owner(tx.sender):
            return
        findings.append(
            Finding(
                name="Unauthorized Multisig Access Attempt",
                description="Transaction to multisig from non-owner address",
                alert_id="MULTISIG-SECURITY-1",
                severity=FindingSeverity.HIGH,
                type=FindingType.SUSPICIOUS,
                metadata={
                    "multisigAddress": address,
                    "sender": tx.sender,
                    "transactionHash": tx.hash,
                },
            )
        )

    def _check_ownership_changes(
        self,
        tx: TransactionEvent,
        address: str,
        previous: MultisigConfiguration | None,
        addition_count: int,
        removal_count: int,
        requirement_changes,
        findings: list[Finding],
    ) -> None:
        if addition_count and removal_count:
            findings.append(
                Finding(
                    name="Suspicious Multisig Ownership Changes",
                    description="Both owner addition and removal in a single transaction",
                    alert_id="MULTISIG-OWNERSHIP-1",
                    severity=FindingSeverity.HIGH,
                    type=FindingType.SUSPICIOUS,
                    metadata={
                        "multisigAddress": address,
                        "additionsCount": addition_count,
                        "removalsCount": removal_count,
                        "transactionHash": tx.hash,
                    },
                )
            )

        if previous is None:
            return
        for log in requirement_changes:
            new_threshold = to_int(log.args.get("required", log.args.get("requirement")))
            if new_threshold is None or new_threshold >= previous.threshold:
                continue
            findings.append(
                Finding(
                    name="Multisig Security Reduction",
                    description=f"Threshold decreased from {previous.threshold} to {new_threshold}",
                    alert_id="MULTISIG-THRESHOLD-1",
                    severity=FindingSeverity.HIGH,
                    type=FindingType.SUSPICIOUS,
                    metadata={
                        "multisigAddress": address,
                        "oldThreshold": previous.threshold,
                        "newThreshold": new_threshold,
                        "transactionHash": tx.hash,
                    },
                )
            )


__all__ = [
    "MultisigProtectionDetector",
    "EXECUTE_SELECTORS",
    "GET_OWNERS",
    "GET_THRESHOLD",
]
