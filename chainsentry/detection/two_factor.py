"""Two-factor authentication gate.

Tracks authentication events emitted by 2FA-aware wallets, enforces 2FA for
enrolled users and recommends it to users moving significant value without
it.

Pending authentications are only removed when a matching success event is
seen. Requests that never complete stay in memory for the life of the
detector (see ``pending_count``); call ``reset`` to clear them.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import replace

from chainsentry.config import DetectorSettings
from chainsentry.decoding.abi import function_selector, to_int
from chainsentry.detection.base import BaseDetector
from chainsentry.models.finding import Finding, FindingSeverity, FindingType
from chainsentry.models.state import PendingAuthentication, TwoFactorSettings
from chainsentry.models.transaction import TransactionEvent

logger = logging.getLogger(__name__)

AUTHENTICATION_REQUIRED_EVENT = "AuthenticationRequired(address,bytes32,uint256)"
AUTHENTICATION_SUCCESSFUL_EVENT = "AuthenticationSuccessful(address,bytes32)"
AUTHENTICATION_FAILED_EVENT = "AuthenticationFailed(address,bytes32,string)"

ETH_TRANSFER = "eth_transfer"
UNKNOWN_OPERATION = "unknown"

# Operation type tag -> function signature
HIGH_RISK_OPERATIONS: dict[str, str] = {
    "token_transfer": "transfer(address,uint256)",
    "token_approve": "approve(address,uint256)",
    "nft_transfer": "transferFrom(address,address,uint256)",
    "nft_approve_all": "setApprovalForAll(address,bool)",
    "swap_exact_eth_for_tokens": "swapExactETHForTokens(uint256,address[],address,uint256)",
    "swap_exact_tokens_for_eth": "swapExactTokensForETH(uint256,uint256,address[],address,uint256)",
    "send_transaction": "sendTransaction((address,uint256,bytes,uint8,bytes,bytes))",
    "execute_transaction": (
        "execTransaction(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,bytes)"
    ),
    "delegate": "delegate(address)",
    "protocol_upgrade": "upgradeTo(address)",
}

OPERATION_TYPES_BY_SELECTOR: dict[str, str] = {
    function_selector(signature): op_type for op_type, signature in HIGH_RISK_OPERATIONS.items()
}


def identify_operation_type(tx: TransactionEvent) -> str:
    """Classify a transaction into an operation type tag."""
    if not tx.recipient or tx.data == "0x":
        return ETH_TRANSFER
    return OPERATION_TYPES_BY_SELECTOR.get(tx.selector or "", UNKNOWN_OPERATION)


def is_high_risk_operation(tx: TransactionEvent) -> bool:
    """Check whether the call data selector is in the high-risk catalogue."""
    if not tx.recipient or tx.data == "0x":
        return False
    return tx.selector in OPERATION_TYPES_BY_SELECTOR


def _format_operation_id(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value).lower() if value is not None else ""


class TwoFactorAuthDetector(BaseDetector):
    """Detects missing or failed two-factor authentication.

    Args:
        settings: Detector thresholds. ``two_factor_users`` are enrolled at
            construction with the default value threshold.
        clock: Returns the current unix time.
    """

    name = "two-factor-auth"

    def __init__(
        self,
        settings: DetectorSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(settings)
        self._clock = clock
        self.pending: dict[str, PendingAuthentication] = {}
        self.enabled_users: set[str] = set()
        self.user_settings: dict[str, TwoFactorSettings] = {}
        self._enroll_configured_users()

    def _enroll_configured_users(self) -> None:
        for address in self.settings.two_factor_users:
            self.enable_two_factor(
                address, value_threshold=self.settings.two_factor_default_threshold_wei
            )

    def _now(self) -> int:
        return int(self._clock())

    @property
    def pending_count(self) -> int:
        """Number of authentication requests still waiting for success."""
        return len(self.pending)

    def enable_two_factor(
        self,
        address: str,
        enabled_for: Iterable[str] = ("all",),
        value_threshold: int = 0,
        last_verification: int = 0,
    ) -> TwoFactorSettings:
        """Enroll a user, replacing any previous settings."""
        user = address.lower()
        settings = TwoFactorSettings(
            enabled_for=frozenset(enabled_for),
            value_threshold=value_threshold,
            last_verification=last_verification,
        )
        self.enabled_users.add(user)
        self.user_settings[user] = settings
        logger.info("2FA enabled for %s", user)
        return settings

    def disable_two_factor(self, address: str) -> None:
        user = address.lower()
        self.enabled_users.discard(user)
        self.user_settings.pop(user, None)

    def reset(self) -> None:
        """Clear pending requests and re-enroll only the configured users."""
        self.pending.clear()
        self.enabled_users.clear()
        self.user_settings.clear()
        self._enroll_configured_users()

    async def handle_transaction(self, tx: TransactionEvent) -> list[Finding]:
        findings: list[Finding] = []
        operation_type = identify_operation_type(tx)
        self._process_authentication_events(tx, operation_type, findings)
        self._check_missing_two_factor(tx, operation_type, findings)
        self._check_recommendation(tx, operation_type, findings)
        return findings

    def _process_authentication_events(
        self, tx: TransactionEvent, operation_type: str, findings: list[Finding]
    ) -> None:
        for log in tx.filter_log(AUTHENTICATION_REQUIRED_EVENT):
            user = str(log.args.get("user", "")).lower()
            operation_id = _format_operation_id(log.args.get("operationId"))
            timestamp = to_int(log.args.get("timestamp")) or 0
            self.pending[operation_id] = PendingAuthentication(
                operation_id=operation_id,
                tx_hash=tx.hash,
                requester=user,
                target=tx.recipient or "",
                value=tx.value,
                operation_type=operation_type,
                timestamp=timestamp,
            )
            findings.append(
                Finding(
                    name="2FA Authentication Required",
                    description="Two-factor authentication required for transaction",
                    alert_id="2FA-REQUIRED-1",
                    severity=FindingSeverity.INFO,
                    type=FindingType.INFO,
                    metadata={
                        "user": user,
                        "operationId": operation_id,
                        "timestamp": timestamp,
                        "txHash": tx.hash,
                    },
                )
            )

        for log in tx.filter_log(AUTHENTICATION_SUCCESSFUL_EVENT):
            user = str(log.args.get("user", "")).lower()
            operation_id = _format_operation_id(log.args.get("operationId"))
            current = self.user_settings.get(user)
            if current is not None:
                self.user_settings[user] = replace(current, last_verification=self._now())
            self.pending.pop(operation_id, None)
            findings.append(
                Finding(
                    name="2FA Authentication Successful",
                    description="Two-factor authentication successful for operation",
                    alert_id="2FA-SUCCESS-1",
                    severity=FindingSeverity.INFO,
                    type=FindingType.INFO,
                    metadata={
                        "user": user,
                        "operationId": operation_id,
                        "txHash": tx.hash,
                    },
                )
            )

        for log in tx.filter_log(AUTHENTICATION_FAILED_EVENT):
            user = str(log.args.get("user", "")).lower()
            reason = str(log.args.get("reason", ""))
            findings.append(
                Finding(
                    name="2FA Authentication Failed",
                    description=f"Two-factor authentication failed: {reason}",
                    alert_id="2FA-FAILED-1",
                    severity=FindingSeverity.MEDIUM,
                    type=FindingType.SUSPICIOUS,
                    metadata={
                        "user": user,
                        "operationId": _format_operation_id(log.args.get("operationId")),
                        "reason": reason,
                        "txHash": tx.hash,
                    },
                )
            )

    def _check_missing_two_factor(
        self, tx: TransactionEvent, operation_type: str, findings: list[Finding]
    ) -> None:
        if tx.sender not in self.enabled_users:
            return
        settings = self.user_settings.get(tx.sender)
        if settings is None:
            return
        if not settings.covers(operation_type) or tx.value < settings.value_threshold:
            return
        if self._now() - settings.last_verification <= self.settings.reauthentication_window_seconds:
            return
        if tx.filter_log(AUTHENTICATION_REQUIRED_EVENT, AUTHENTICATION_SUCCESSFUL_EVENT):
            return

        findings.append(
            Finding(
                name="Missing 2FA for High-Risk Transaction",
                description="Transaction requires 2FA but authentication was not performed",
                alert_id="2FA-MISSING-1",
                severity=FindingSeverity.HIGH,
                type=FindingType.SUSPICIOUS,
                metadata={
                    "user": tx.sender,
                    "value": tx.value,
                    "operationType": operation_type,
                    "txHash": tx.hash,
                },
            )
        )

    def _check_recommendation(
        self, tx: TransactionEvent, operation_type: str, findings: list[Finding]
    ) -> None:
        if tx.value < self.settings.high_risk_value_wei and not is_high_risk_operation(tx):
            return
        if tx.sender in self.enabled_users:
            return
        findings.append(
            Finding(
                name="2FA Recommended for User",
                description="User performed high-risk transaction without 2FA enabled",
                alert_id="2FA-RECOMMENDED-1",
                severity=FindingSeverity.MEDIUM,
                type=FindingType.INFO,
                metadata={
                    "user": tx.sender,
                    "value": tx.value,
                    "operationType": operation_type,
                    "txHash": tx.hash,
                },
            )
        )


__all__ = [
    "TwoFactorAuthDetector",
    "HIGH_RISK_OPERATIONS",
    "identify_operation_type",
    "is_high_risk_operation",
]
