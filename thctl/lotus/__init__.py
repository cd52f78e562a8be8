"""
Lotus JSON-RPC client: endpoint resolution, transport, retries, typed calls
and miner aggregation
"""

from .endpoint import parse_api_info, resolve_endpoint, resolve_multiaddr
from .transport import HttpTransport
from .retry import RetryingTransport
from .client import LotusClient
from .aggregator import MinerInfoAggregator

__all__ = [
    "parse_api_info",
    "resolve_endpoint",
    "resolve_multiaddr",
    "HttpTransport",
    "RetryingTransport",
    "LotusClient",
    "MinerInfoAggregator",
]
