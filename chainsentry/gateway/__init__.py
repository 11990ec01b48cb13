"""Chain data gateway: the narrow read-only interface detectors consume."""

from chainsentry.gateway.base import ChainDataGateway, ChainGatewayError
from chainsentry.gateway.memory import InMemoryGateway
from chainsentry.gateway.rpc_gateway import RpcChainGateway

__all__ = [
    "ChainDataGateway",
    "ChainGatewayError",
    "InMemoryGateway",
    "RpcChainGateway",
]
