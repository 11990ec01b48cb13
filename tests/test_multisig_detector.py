"""Unit tests for the multisig protection detector."""

from __future__ import annotations

import asyncio

import pytest
from eth_abi import encode

from chainsentry.detection import MultisigCapabilityCheck, MultisigProtectionDetector
from chainsentry.detection.multisig import GET_OWNERS, GET_THRESHOLD
from chainsentry.gateway import InMemoryGateway
from chainsentry.models import FindingSeverity, FindingType, LogEvent
from helpers import ALICE, BOB, CAROL, call_data, make_tx

MULTISIG = "0x" + "5a" * 20
OUTSIDER = "0x" + "0e" * 20
OWNERS = [ALICE, BOB, CAROL]
EXEC_TRANSACTION = (
    "execTransaction(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,bytes)"
)
SAFE_BYTECODE = b"\x60\x80\x60\x40" + bytes.fromhex(GET_OWNERS[2:]) + b"\x00" + bytes.fromhex(GET_THRESHOLD[2:])


def exec_call() -> str:
    return call_data("executeTransaction(uint256)", ["uint256"], [7])


def revocation(n: int) -> LogEvent:
    return LogEvent(
        address=MULTISIG,
        signature="RevokeConfirmation(address,bytes32)",
        args={"sender": ALICE, "transactionId": "0x" + f"{n:064x}"},
    )


def alert_ids(findings) -> list[str]:
    return [f.alert_id for f in findings]


@pytest.fixture
def safe_gateway(gateway: InMemoryGateway) -> InMemoryGateway:
    gateway.set_contract(MULTISIG, bytecode=SAFE_BYTECODE, tx_count=100)
    return gateway


def set_configuration(gateway: InMemoryGateway, owners: list[str], threshold: int) -> None:
    gateway.set_call_result(MULTISIG, GET_OWNERS, encode(["address[]"], [owners]))
    gateway.set_call_result(MULTISIG, GET_THRESHOLD, encode(["uint256"], [threshold]))


class TestConfigurationChecks:
    """Test suite for owner/threshold configuration rules."""

    def test_risky_threshold(self, safe_gateway: InMemoryGateway) -> None:
        set_configuration(safe_gateway, OWNERS, 1)
        detector = MultisigProtectionDetector(safe_gateway)

        findings = asyncio.run(detector.detect(make_tx(sender=ALICE, recipient=MULTISIG)))

        assert alert_ids(findings) == ["MULTISIG-CONFIG-1"]
        assert findings[0].severity == FindingSeverity.MEDIUM
        assert findings[0].metadata == {
            "multisigAddress": MULTISIG,
            "threshold": "1",
            "ownerCount": "3",
        }

    def test_cache_refreshed_on_touch(self, safe_gateway: InMemoryGateway) -> None:
        set_configuration(safe_gateway, OWNERS, 2)
        detector = MultisigProtectionDetector(safe_gateway)

        asyncio.run(detector.detect(make_tx(recipient=MULTISIG)))

        config = detector.cached_configuration(MULTISIG)
        assert config is not None
        assert config.owners == frozenset(OWNERS)
        assert config.threshold == 2

    def test_healthy_configuration(self, safe_gateway: InMemoryGateway) -> None:
        set_configuration(safe_gateway, OWNERS, 2)
        detector = MultisigProtectionDetector(safe_gateway)
        assert asyncio.run(detector.detect(make_tx(recipient=MULTISIG))) == []

    def test_many_owners(self, safe_gateway: InMemoryGateway) -> None:
        owners = ["0x" + f"{i:040x}" for i in range(1, 12)]
        set_configuration(safe_gateway, owners, 6)
        detector = MultisigProtectionDetector(safe_gateway)

        findings = asyncio.run(detector.detect(make_tx(recipient=MULTISIG)))

        assert alert_ids(findings) == ["MULTISIG-CONFIG-2"]
        assert findings[0].severity == FindingSeverity.INFO
        assert findings[0].type == FindingType.INFO

    def test_non_multisig_contract_skipped(self, gateway: InMemoryGateway) -> None:
        gateway.set_contract(MULTISIG, bytecode=b"\x60\x80\x60\x40", tx_count=100)
        set_configuration(gateway, OWNERS, 1)
        detector = MultisigProtectionDetector(gateway)

        assert asyncio.run(detector.detect(make_tx(recipient=MULTISIG))) == []
        assert detector.cache == {}

    def test_failed_reads_produce_no_configuration_findings(self, safe_gateway: InMemoryGateway) -> None:
        detector = MultisigProtectionDetector(safe_gateway)
        assert asyncio.run(detector.detect(make_tx(recipient=MULTISIG))) == []
        assert detector.cache == {}

    def test_custom_capability_check(self, gateway: InMemoryGateway) -> None:
        class OnlyKnownWallet(MultisigCapabilityCheck):
            async def is_multisig(self, gateway, address: str) -> bool:
                return address == MULTISIG

        set_configuration(gateway, OWNERS, 1)
        detector = MultisigProtectionDetector(gateway, multisig_check=OnlyKnownWallet())

        findings = asyncio.run(detector.detect(make_tx(recipient=MULTISIG)))
        assert alert_ids(findings) == ["MULTISIG-CONFIG-1"]


class TestActivityChecks:
    """Test suite for revocations and unauthorized execution."""

    @pytest.fixture
    def detector(self, safe_gateway: InMemoryGateway) -> MultisigProtectionDetector:
        set_configuration(safe_gateway, OWNERS, 2)
        return MultisigProtectionDetector(safe_gateway)

    def test_many_revocations(self, detector: MultisigProtectionDetector) -> None:
        tx = make_tx(recipient=MULTISIG, logs=[revocation(i) for i in range(3)])
        findings = asyncio.run(detector.detect(tx))

        assert alert_ids(findings) == ["MULTISIG-ACTIVITY-1"]
        assert findings[0].metadata["revocationCount"] == "3"
        assert findings[0].metadata["transactionHash"] == tx.hash

    def test_two_revocations_ignored(self, detector: MultisigProtectionDetector) -> None:
        tx = make_tx(recipient=MULTISIG, logs=[revocation(i) for i in range(2)])
        assert asyncio.run(detector.detect(tx)) == []

    def test_execute_from_non_owner(self, detector: MultisigProtectionDetector) -> None:
        tx = make_tx(sender=OUTSIDER, recipient=MULTISIG, data=exec_call())
        findings = asyncio.run(detector.detect(tx))

        assert alert_ids(findings) == ["MULTISIG-SECURITY-1"]
        assert findings[0].severity == FindingSeverity.HIGH
        assert findings[0].metadata == {
            "multisigAddress": MULTISIG,
            "sender": OUTSIDER,
            "transactionHash": tx.hash,
        }

    def test_execute_from_owner(self, detector: MultisigProtectionDetector) -> None:
        tx = make_tx(sender=BOB, recipient=MULTISIG, data=exec_call())
        assert asyncio.run(detector.detect(tx)) == []

    def test_cached_owners_used_when_reads_fail(self, gateway: InMemoryGateway) -> None:
        gateway.set_contract(MULTISIG, bytecode=SAFE_BYTECODE, tx_count=100)
        detector = MultisigProtectionDetector(gateway)
        detector.remember_configuration(MULTISIG, OWNERS, 1)

        exec_data = call_data(EXEC_TRANSACTION, ["uint256"], [0])
        from_outsider = asyncio.run(
            detector.detect(make_tx(sender=OUTSIDER, recipient=MULTISIG, data=exec_data))
        )
        from_owner = asyncio.run(detector.detect(make_tx(sender=ALICE, recipient=MULTISIG, data=exec_data)))

        assert [f.alert_id for f in from_outsider if f.severity == FindingSeverity.HIGH] == [
            "MULTISIG-SECURITY-1"
        ]
        assert "MULTISIG-SECURITY-1" not in alert_ids(from_owner)

    def test_no_cache_suppresses_access_check(self, safe_gateway: InMemoryGateway) -> None:
        detector = MultisigProtectionDetector(safe_gateway)
        tx = make_tx(sender=OUTSIDER, recipient=MULTISIG, data=exec_call())
        assert asyncio.run(detector.detect(tx)) == []


class TestOwnershipChecks:
    """Test suite for owner and threshold changes."""

    def test_addition_and_removal(self, safe_gateway: InMemoryGateway) -> None:
        set_configuration(safe_gateway, OWNERS, 2)
        detector = MultisigProtectionDetector(safe_gateway)
        tx = make_tx(
            recipient=MULTISIG,
            logs=[
                LogEvent(address=MULTISIG, signature="OwnerAddition(address)", args={"owner": OUTSIDER}),
                LogEvent(address=MULTISIG, signature="OwnerRemoval(address)", args={"owner": CAROL}),
            ],
        )
        findings = asyncio.run(detector.detect(tx))

        assert alert_ids(findings) == ["MULTISIG-OWNERSHIP-1"]
        assert findings[0].metadata["additionsCount"] == "1"
        assert findings[0].metadata["removalsCount"] == "1"

    def test_addition_only_ignored(self, safe_gateway: InMemoryGateway) -> None:
        set_configuration(safe_gateway, OWNERS, 2)
        detector = MultisigProtectionDetector(safe_gateway)
        tx = make_tx(
            recipient=MULTISIG,
            logs=[LogEvent(address=MULTISIG, signature="OwnerAddition(address)", args={"owner": OUTSIDER})],
        )
        assert asyncio.run(detector.detect(tx)) == []

    def test_threshold_decrease_compares_previous_cache(self, safe_gateway: InMemoryGateway) -> None:
        set_configuration(safe_gateway, OWNERS, 1)
        detector = MultisigProtectionDetector(safe_gateway)
        detector.remember_configuration(MULTISIG, OWNERS, 3)
        tx = make_tx(
            recipient=MULTISIG,
            logs=[LogEvent(address=MULTISIG, signature="RequirementChange(uint256)", args={"required": 1})],
        )
        findings = asyncio.run(detector.detect(tx))

        reductions = [f for f in findings if f.alert_id == "MULTISIG-THRESHOLD-1"]
        assert len(reductions) == 1
        assert reductions[0].metadata["oldThreshold"] == "3"
        assert reductions[0].metadata["newThreshold"] == "1"
        assert detector.cached_configuration(MULTISIG).threshold == 1

    def test_threshold_increase_ignored(self, safe_gateway: InMemoryGateway) -> None:
        set_configuration(safe_gateway, OWNERS, 3)
        detector = MultisigProtectionDetector(safe_gateway)
        detector.remember_configuration(MULTISIG, OWNERS, 2)
        tx = make_tx(
            recipient=MULTISIG,
            logs=[LogEvent(address=MULTISIG, signature="RequirementChange(uint256)", args={"requirement": 3})],
        )
        assert asyncio.run(detector.detect(tx)) == []

    def test_threshold_change_without_history_ignored(self, safe_gateway: InMemoryGateway) -> None:
        set_configuration(safe_gateway, OWNERS, 2)
        detector = MultisigProtectionDetector(safe_gateway)
        tx = make_tx(
            recipient=MULTISIG,
            logs=[LogEvent(address=MULTISIG, signature="RequirementChange(uint256)", args={"required": 1})],
        )
        assert asyncio.run(detector.detect(tx)) == []

    def test_reset(self, safe_gateway: InMemoryGateway) -> None:
        detector = MultisigProtectionDetector(safe_gateway)
        detector.remember_configuration(MULTISIG, OWNERS, 2)
        detector.reset()
        assert detector.cached_configuration(MULTISIG) is None
