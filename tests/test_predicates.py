"""Tests for the shared address predicates."""

from __future__ import annotations

import asyncio

from chainsentry.decoding.abi import function_selector
from chainsentry.detection.predicates import (
    BytecodeMultisigHeuristic,
    is_contract,
    is_recently_active_address,
    is_recently_deployed_contract,
)
from chainsentry.gateway import InMemoryGateway
from helpers import ALICE, CAROL


class TestAddressPredicates:
    """Test suite for contract and recency predicates."""

    def test_is_contract(self, gateway: InMemoryGateway) -> None:
        gateway.set_contract(CAROL)
        assert asyncio.run(is_contract(gateway, CAROL)) is True
        assert asyncio.run(is_contract(gateway, ALICE)) is False

    def test_is_contract_unknown_on_failure(self, gateway: InMemoryGateway) -> None:
        gateway.fail_for(CAROL)
        assert asyncio.run(is_contract(gateway, CAROL)) is None

    def test_recently_deployed_contract(self, gateway: InMemoryGateway) -> None:
        gateway.set_contract(CAROL, tx_count=4)
        assert asyncio.run(is_recently_deployed_contract(gateway, CAROL))
        gateway.set_tx_count(CAROL, 5)
        assert not asyncio.run(is_recently_deployed_contract(gateway, CAROL))

    def test_eoa_is_never_recently_deployed(self, gateway: InMemoryGateway) -> None:
        assert not asyncio.run(is_recently_deployed_contract(gateway, ALICE))

    def test_recently_active_address(self, gateway: InMemoryGateway) -> None:
        gateway.set_tx_count(ALICE, 2)
        assert asyncio.run(is_recently_active_address(gateway, ALICE))
        gateway.set_tx_count(ALICE, 3)
        assert not asyncio.run(is_recently_active_address(gateway, ALICE))

    def test_failed_read_is_not_recent(self, gateway: InMemoryGateway) -> None:
        gateway.fail_for(ALICE)
        assert not asyncio.run(is_recently_active_address(gateway, ALICE))


class TestBytecodeMultisigHeuristic:
    def test_selector_in_bytecode(self, gateway: InMemoryGateway) -> None:
        code = b"\x60\x80" + bytes.fromhex(function_selector("getOwners()")[2:]) + b"\x00"
        gateway.set_contract(CAROL, bytecode=code)
        assert asyncio.run(BytecodeMultisigHeuristic().is_multisig(gateway, CAROL))

    def test_plain_contract(self, gateway: InMemoryGateway) -> None:
        gateway.set_contract(CAROL, bytecode=b"\x60\x80\x60\x40")
        assert not asyncio.run(BytecodeMultisigHeuristic().is_multisig(gateway, CAROL))
