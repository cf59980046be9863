"""lightningrpc - JSON-RPC 2.0 over Unix domain sockets

This module provides an asyncio JSON-RPC 2.0 client for daemons that
listen on a Unix socket, plus a typed binding for a Lightning node.
"""

from lightningrpc.catalog import MethodCatalog, MethodSpec
from lightningrpc.client import Client, ClientConfig, ConnectionPolicy
from lightningrpc.error import (
    CallTimeout,
    ConnectError,
    ConnectionLost,
    ErrorKind,
    MalformedResponse,
    RemoteError,
    RpcError,
    TransportError,
    UnknownId,
)
from lightningrpc.ids import RequestIdAllocator
from lightningrpc.lightning import LIGHTNING_CATALOG, LightningRpc
from lightningrpc.observer import CallObserver, LoggingObserver
from lightningrpc.transport import Transport, UnixSocketTransport
from lightningrpc.wire import Named, ParamStyle, Positional

__version__ = "0.1.0"

__all__ = [
    # Client
    "Client",
    "ClientConfig",
    "ConnectionPolicy",
    "CallObserver",
    "LoggingObserver",
    # Transport
    "Transport",
    "UnixSocketTransport",
    # Wire
    "Named",
    "Positional",
    "ParamStyle",
    "RequestIdAllocator",
    # Catalog
    "MethodCatalog",
    "MethodSpec",
    "LIGHTNING_CATALOG",
    "LightningRpc",
    # Errors
    "RpcError",
    "ErrorKind",
    "ConnectError",
    "TransportError",
    "ConnectionLost",
    "RemoteError",
    "MalformedResponse",
    "UnknownId",
    "CallTimeout",
]
