"""Construction and routing of the detector set.

One instance of each detector is built at process start and handed to the
dispatcher; the outer request layer maps each inbound request to a detector
name and a transaction event.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from chainsentry.config import DetectorSettings
from chainsentry.detection import (
    ApprovalDetector,
    BaseDetector,
    MevDetector,
    MultisigProtectionDetector,
    PhishingDetector,
    TwoFactorAuthDetector,
)
from chainsentry.gateway.base import ChainDataGateway
from chainsentry.models.finding import Finding
from chainsentry.models.transaction import TransactionEvent

logger = logging.getLogger(__name__)

DETECTOR_NAMES: tuple[str, ...] = (
    PhishingDetector.name,
    MevDetector.name,
    MultisigProtectionDetector.name,
    ApprovalDetector.name,
    TwoFactorAuthDetector.name,
)


def build_detectors(
    gateway: ChainDataGateway,
    settings: DetectorSettings | None = None,
) -> dict[str, BaseDetector]:
    """Build one instance of every detector, keyed by name."""
    settings = settings or DetectorSettings()
    detectors: dict[str, BaseDetector] = {
        PhishingDetector.name: PhishingDetector(gateway, settings),
        MevDetector.name: MevDetector(gateway, settings),
        MultisigProtectionDetector.name: MultisigProtectionDetector(gateway, settings),
        ApprovalDetector.name: ApprovalDetector(gateway, settings),
        TwoFactorAuthDetector.name: TwoFactorAuthDetector(settings),
    }
    logger.info("Built %d detectors: %s", len(detectors), ", ".join(detectors))
    return detectors


class DetectionDispatcher:
    """Routes transaction events to named detectors.

    Example:
        >>> dispatcher = DetectionDispatcher(build_detectors(gateway))
        >>> findings = await dispatcher.detect("mev", tx)
    """

    def __init__(self, detectors: Mapping[str, BaseDetector]) -> None:
        if not detectors:
            raise ValueError("DetectionDispatcher needs at least one detector")
        self._detectors = dict(detectors)

    @property
    def names(self) -> list[str]:
        return list(self._detectors)

    def get(self, name: str) -> BaseDetector:
        """Return the detector registered under ``name``.

        Raises:
            KeyError: If no detector has that name.
        """
        try:
            return self._detectors[name]
        except KeyError:
            raise KeyError(
                f"Unknown detector '{name}'. Available: {', '.join(self._detectors)}"
            ) from None

    async def detect(self, name: str, tx: TransactionEvent) -> list[Finding]:
        """Run one detector on one transaction."""
        return await self.get(name).detect(tx)

    async def detect_all(self, tx: TransactionEvent) -> dict[str, list[Finding]]:
        """Run every detector on the same transaction, in registration order."""
        results: dict[str, list[Finding]] = {}
        for name, detector in self._detectors.items():
            results[name] = await detector.detect(tx)
        return results


__all__ = [
    "DETECTOR_NAMES",
    "build_detectors",
    "DetectionDispatcher",
]
