"""Transaction pattern detectors.

Each detector evaluates one transaction at a time and returns a list of
findings. Phishing and approval checks are stateless; the MEV, multisig and
two-factor detectors keep per-instance state between calls.
"""

from chainsentry.detection.approval import ApprovalDetector, GranteeRisk
from chainsentry.detection.base import BaseDetector, GatewayDetector
from chainsentry.detection.mev import MevDetector, paths_are_similar
from chainsentry.detection.multisig import MultisigProtectionDetector
from chainsentry.detection.phishing import PhishingDetector
from chainsentry.detection.predicates import (
    BytecodeMultisigHeuristic,
    MultisigCapabilityCheck,
    is_contract,
    is_recently_active_address,
    is_recently_deployed_contract,
)
from chainsentry.detection.two_factor import TwoFactorAuthDetector, identify_operation_type

__all__ = [
    "BaseDetector",
    "GatewayDetector",
    "PhishingDetector",
    "MevDetector",
    "MultisigProtectionDetector",
    "ApprovalDetector",
    "TwoFactorAuthDetector",
    "GranteeRisk",
    "paths_are_similar",
    "identify_operation_type",
    "is_contract",
    "is_recently_active_address",
    "is_recently_deployed_contract",
    "MultisigCapabilityCheck",
    "BytecodeMultisigHeuristic",
]
