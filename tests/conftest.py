"""Shared fixtures for detector tests."""

from __future__ import annotations

import pytest

from chainsentry.gateway import InMemoryGateway


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway(gas_price=10 * 10**9)
