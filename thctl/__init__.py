"""
THCTL: command-line client for Filecoin storage-provider data served by a Lotus node
"""

__version__ = "1.0.0"
__author__ = "THCloud Team"

from .config import ClientConfig, load_config
from .context import CallContext
from .lotus import LotusClient, MinerInfoAggregator, resolve_endpoint
from .models import MinerAggregate, SectorRecord
from .utils import format_bytes, format_fixed_point, setup_logging
from .exceptions import *

__all__ = [
    "ClientConfig",
    "load_config",
    "CallContext",
    "LotusClient",
    "MinerInfoAggregator",
    "resolve_endpoint",
    "MinerAggregate",
    "SectorRecord",
    "format_bytes",
    "format_fixed_point",
    "setup_logging",
    "ThctlException",
    "ConfigError",
    "ClientError",
    "ErrorKind",
    "AuthenticationError",
    "NotFoundError",
    "NodeConnectionError",
    "InvalidParamsError",
    "RPCTimeoutError",
    "RequestCancelledError",
]
