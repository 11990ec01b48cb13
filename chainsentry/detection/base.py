"""Base class shared by all detectors."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import ClassVar

from chainsentry.config import DetectorSettings
from chainsentry.gateway.base import ChainDataGateway
from chainsentry.models.finding import Finding
from chainsentry.models.transaction import TransactionEvent

logger = logging.getLogger(__name__)


class BaseDetector(ABC):
    """A rule evaluator invoked once per transaction.

    Subclasses implement ``handle_transaction``. ``detect`` holds a
    per-instance lock so concurrent callers on one instance are serialised
    and state mutations never interleave. The lock belongs to the running
    event loop and is replaced when the detector is driven from a new one.
    """

    name: ClassVar[str]

    def __init__(self, settings: DetectorSettings | None = None) -> None:
        self.settings = settings or DetectorSettings()
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    async def detect(self, tx: TransactionEvent) -> list[Finding]:
        """Analyse one transaction and return its findings (possibly empty)."""
        async with self._loop_lock():
            findings = await self.handle_transaction(tx)
        logger.debug("%s: %d finding(s) for %s", self.name, len(findings), tx.hash)
        return findings

    def _loop_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    @abstractmethod
    async def handle_transaction(self, tx: TransactionEvent) -> list[Finding]:
        """Run the ordered rule checks and accumulate findings."""


class GatewayDetector(BaseDetector):
    """Detector that reads chain state through a gateway."""

    def __init__(self, gateway: ChainDataGateway, settings: DetectorSettings | None = None) -> None:
        if gateway is None:
            raise ValueError(f"{type(self).__name__} requires a chain data gateway")
        super().__init__(settings)
        self.gateway = gateway


__all__ = [
    "BaseDetector",
    "GatewayDetector",
]
