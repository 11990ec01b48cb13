"""Value objects shared by the detectors: findings, transaction events and state records."""

from chainsentry.models.finding import Finding, FindingSeverity, FindingType
from chainsentry.models.state import (
    MultisigConfiguration,
    PendingAuthentication,
    PendingSwap,
    TwoFactorSettings,
)
from chainsentry.models.transaction import (
    ETH_ADDRESS_PATTERN,
    TX_HASH_PATTERN,
    CallTrace,
    FunctionCall,
    LogEvent,
    TransactionEvent,
)

__all__ = [
    "Finding",
    "FindingSeverity",
    "FindingType",
    "MultisigConfiguration",
    "PendingAuthentication",
    "PendingSwap",
    "TwoFactorSettings",
    "ETH_ADDRESS_PATTERN",
    "TX_HASH_PATTERN",
    "CallTrace",
    "FunctionCall",
    "LogEvent",
    "TransactionEvent",
]
