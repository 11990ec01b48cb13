"""Tests for the web3-backed chain data gateway."""

from __future__ import annotations

import asyncio

import pytest
from eth_utils import to_checksum_address
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from chainsentry.gateway import ChainGatewayError, RpcChainGateway
from helpers import CAROL


class _FakeEth:
    """Answers the ``w3.eth`` reads from a dict; exception values are raised."""

    def __init__(self, answers: dict) -> None:
        self.answers = answers
        self.requests: list[tuple] = []

    def _answer(self, name: str, *args):
        self.requests.append((name, *args))
        value = self.answers[name]
        if isinstance(value, Exception):
            raise value
        return value

    async def get_code(self, address, block_identifier):
        return self._answer("get_code", address, block_identifier)

    async def get_transaction_count(self, address, block_identifier):
        return self._answer("get_transaction_count", address, block_identifier)

    async def call(self, transaction, block_identifier):
        return self._answer("call", transaction, block_identifier)

    @property
    def gas_price(self):
        async def _read():
            return self._answer("gas_price")

        return _read()


class _FakeWeb3:
    def __init__(self, answers: dict) -> None:
        self.eth = _FakeEth(answers)


class TestRpcChainGateway:
    """Test suite for RpcChainGateway conversions and error mapping."""

    @pytest.fixture
    def answers(self) -> dict:
        return {
            "get_code": b"\x60\x80",
            "get_transaction_count": 5,
            "gas_price": 10**9,
            "call": b"\x00" * 31 + b"\x02",
        }

    @pytest.fixture
    def w3(self, answers: dict) -> _FakeWeb3:
        return _FakeWeb3(answers)

    @pytest.fixture
    def rpc_gateway(self, w3: _FakeWeb3) -> RpcChainGateway:
        return RpcChainGateway(w3)

    def test_reads(self, rpc_gateway: RpcChainGateway) -> None:
        async def _run():
            return (
                await rpc_gateway.get_bytecode(CAROL),
                await rpc_gateway.get_outbound_transaction_count(CAROL),
                await rpc_gateway.get_current_average_gas_price(),
                await rpc_gateway.call_read_only(CAROL, bytes.fromhex("e75235b8")),
            )

        code, count, gas_price, result = asyncio.run(_run())
        assert code == b"\x60\x80"
        assert count == 5
        assert gas_price == 10**9
        assert int.from_bytes(result, "big") == 2

    def test_addresses_are_checksummed(self, rpc_gateway: RpcChainGateway, w3: _FakeWeb3) -> None:
        asyncio.run(rpc_gateway.get_bytecode(CAROL))
        asyncio.run(rpc_gateway.call_read_only(CAROL, bytes.fromhex("a0e67e2b")))

        assert w3.eth.requests[0] == ("get_code", to_checksum_address(CAROL), "latest")
        assert w3.eth.requests[1] == (
            "call",
            {"to": to_checksum_address(CAROL), "data": "0xa0e67e2b"},
            "latest",
        )

    def test_empty_code_is_eoa(self, rpc_gateway: RpcChainGateway, answers: dict) -> None:
        answers["get_code"] = b""
        assert asyncio.run(rpc_gateway.get_bytecode(CAROL)) == b""

    @pytest.mark.parametrize(
        "error",
        [Web3Exception("execution reverted"), TimeoutError("read timed out"), ValueError("bad")],
    )
    def test_errors_become_gateway_errors(
        self, rpc_gateway: RpcChainGateway, answers: dict, error: Exception
    ) -> None:
        answers["gas_price"] = error
        with pytest.raises(ChainGatewayError, match="eth_gasPrice failed") as exc_info:
            asyncio.run(rpc_gateway.get_current_average_gas_price())
        assert exc_info.value.__cause__ is error

    def test_call_failure(self, rpc_gateway: RpcChainGateway, answers: dict) -> None:
        answers["call"] = Web3Exception("execution reverted")
        with pytest.raises(ChainGatewayError, match="eth_call"):
            asyncio.run(rpc_gateway.call_read_only(CAROL, b"\x00\x00\x00\x00"))

    def test_requires_web3(self) -> None:
        with pytest.raises(ValueError):
            RpcChainGateway(None)


class TestFromEndpoint:
    def test_builds_async_web3(self) -> None:
        gateway = RpcChainGateway.from_endpoint("https://node.example", timeout=5, max_retries=2)

        assert isinstance(gateway.w3, AsyncWeb3)
        assert gateway.w3.provider.endpoint_uri == "https://node.example"

    def test_requires_endpoint(self) -> None:
        with pytest.raises(ValueError):
            RpcChainGateway.from_endpoint("")
