"""Chain data gateway backed by a JSON-RPC node through web3.py."""

from __future__ import annotations

import logging

from eth_utils import to_checksum_address
from web3 import AsyncWeb3
from web3.providers import AsyncHTTPProvider
from web3.providers.rpc.utils import ExceptionRetryConfiguration

from chainsentry.gateway.base import ChainDataGateway, ChainGatewayError

logger = logging.getLogger(__name__)


class RpcChainGateway(ChainDataGateway):
    """Implements the gateway reads with ``AsyncWeb3``.

    Every web3 or transport exception is re-raised as ``ChainGatewayError``.
    Timeouts and retries are the provider's policy.

    Example:
        >>> gateway = RpcChainGateway.from_endpoint("https://eth.example.org")
        >>> code = await gateway.get_bytecode("0x7a25...2488d")
        >>> await gateway.close()
    """

    def __init__(self, w3: AsyncWeb3, block_identifier: str = "latest") -> None:
        if w3 is None:
            raise ValueError("AsyncWeb3 instance is required")
        self.w3 = w3
        self.block_identifier = block_identifier

    @classmethod
    def from_endpoint(
        cls, endpoint: str, timeout: float = 30.0, max_retries: int = 3
    ) -> RpcChainGateway:
        """Build a gateway on an HTTP provider for ``endpoint``."""
        if not endpoint:
            raise ValueError("RPC endpoint is required")
        provider = AsyncHTTPProvider(
            endpoint,
            request_kwargs={"timeout": timeout},
            exception_retry_configuration=ExceptionRetryConfiguration(retries=max_retries),
        )
        return cls(AsyncWeb3(provider))

    async def get_bytecode(self, address: str) -> bytes:
        try:
            code = await self.w3.eth.get_code(to_checksum_address(address), self.block_identifier)
        except Exception as exc:
            raise _gateway_error("eth_getCode", exc) from exc
        return bytes(code)

    async def get_outbound_transaction_count(self, address: str) -> int:
        try:
            count = await self.w3.eth.get_transaction_count(
                to_checksum_address(address), self.block_identifier
            )
        except Exception as exc:
            raise _gateway_error("eth_getTransactionCount", exc) from exc
        return int(count)

    async def get_current_average_gas_price(self) -> int:
        try:
            gas_price = await self.w3.eth.gas_price
        except Exception as exc:
            raise _gateway_error("eth_gasPrice", exc) from exc
        return int(gas_price)

    async def call_read_only(self, address: str, data: bytes) -> bytes:
        try:
            result = await self.w3.eth.call(
                {"to": to_checksum_address(address), "data": "0x" + data.hex()},
                self.block_identifier,
            )
        except Exception as exc:
            raise _gateway_error("eth_call", exc) from exc
        return bytes(result)

    async def close(self) -> None:
        """Close the provider's cached HTTP sessions."""
        await self.w3.provider.disconnect()


def _gateway_error(method: str, exc: Exception) -> ChainGatewayError:
    if isinstance(exc, ChainGatewayError):
        return exc
    logger.debug("%s failed: %r", method, exc)
    return ChainGatewayError(f"{method} failed: {exc}")


__all__ = ["RpcChainGateway"]
