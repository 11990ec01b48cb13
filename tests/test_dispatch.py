"""Unit tests for detector construction and dispatch."""

from __future__ import annotations

import asyncio

import pytest

from chainsentry.config import DetectorSettings
from chainsentry.detection import (
    ApprovalDetector,
    MevDetector,
    MultisigProtectionDetector,
    PhishingDetector,
    TwoFactorAuthDetector,
)
from chainsentry.dispatch import DETECTOR_NAMES, DetectionDispatcher, build_detectors
from chainsentry.gateway import InMemoryGateway
from helpers import BOB, TOKEN, call_data, make_tx, tx_hash

HONEYPOT = "0x7ea2f8c2a3c7c0850e59a8d155a7b8ed5a7cee65"


class TestBuildDetectors:
    """Test suite for build_detectors."""

    def test_one_instance_per_name(self, gateway: InMemoryGateway) -> None:
        detectors = build_detectors(gateway)

        assert tuple(detectors) == DETECTOR_NAMES
        assert isinstance(detectors["phishing"], PhishingDetector)
        assert isinstance(detectors["mev"], MevDetector)
        assert isinstance(detectors["multisig"], MultisigProtectionDetector)
        assert isinstance(detectors["approval"], ApprovalDetector)
        assert isinstance(detectors["two-factor-auth"], TwoFactorAuthDetector)

    def test_settings_are_shared(self, gateway: InMemoryGateway) -> None:
        settings = DetectorSettings(swap_window_blocks=10)
        detectors = build_detectors(gateway, settings)
        assert all(detector.settings is settings for detector in detectors.values())

    def test_gateway_is_required(self) -> None:
        with pytest.raises(ValueError):
            build_detectors(None)


class TestDetectionDispatcher:
    """Test suite for DetectionDispatcher routing."""

    @pytest.fixture
    def dispatcher(self, gateway: InMemoryGateway) -> DetectionDispatcher:
        return DetectionDispatcher(build_detectors(gateway))

    def test_routes_to_named_detector(self, dispatcher: DetectionDispatcher) -> None:
        findings = asyncio.run(dispatcher.detect("phishing", make_tx(recipient=HONEYPOT)))
        assert [f.alert_id for f in findings] == ["PHISHING-1"]

    def test_unknown_detector(self, dispatcher: DetectionDispatcher) -> None:
        with pytest.raises(KeyError, match="Unknown detector"):
            asyncio.run(dispatcher.detect("honeypot", make_tx()))

    def test_detect_all(self, dispatcher: DetectionDispatcher) -> None:
        results = asyncio.run(dispatcher.detect_all(make_tx(recipient=HONEYPOT, value=2 * 10**18)))

        assert list(results) == list(DETECTOR_NAMES)
        assert [f.alert_id for f in results["phishing"]] == ["PHISHING-1"]
        assert [f.alert_id for f in results["two-factor-auth"]] == ["2FA-RECOMMENDED-1"]
        assert results["approval"] == []

    def test_concurrent_calls_on_one_detector(self, dispatcher: DetectionDispatcher) -> None:
        async def _run():
            txs = [make_tx(hash=tx_hash(n), recipient=HONEYPOT) for n in range(10)]
            return await asyncio.gather(*(dispatcher.detect("phishing", tx) for tx in txs))

        results = asyncio.run(_run())
        assert all([f.alert_id for f in findings] == ["PHISHING-1"] for findings in results)

    def test_requires_detectors(self) -> None:
        with pytest.raises(ValueError):
            DetectionDispatcher({})

    def test_names(self, dispatcher: DetectionDispatcher) -> None:
        assert dispatcher.names == list(DETECTOR_NAMES)


class _SlowGateway(InMemoryGateway):
    """Gateway whose bytecode reads yield to the event loop."""

    async def get_bytecode(self, address: str) -> bytes:
        await asyncio.sleep(0.01)
        return await super().get_bytecode(address)


class TestDetectorLock:
    """Test suite for the per-instance detection lock."""

    def test_contended_calls_across_event_loops(self) -> None:
        gateway = _SlowGateway()
        gateway.set_contract(TOKEN, tx_count=1)
        detector = PhishingDetector(gateway)
        tx = make_tx(
            recipient=TOKEN,
            data=call_data("transfer(address,uint256)", ["address", "uint256"], [BOB, 1]),
        )

        async def _run():
            return await asyncio.gather(detector.detect(tx), detector.detect(tx))

        for _ in range(2):
            results = asyncio.run(_run())
            assert [[f.alert_id for f in findings] for findings in results] == [
                ["PHISHING-7"],
                ["PHISHING-7"],
            ]
