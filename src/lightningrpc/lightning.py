"""Typed access to a Lightning node daemon.

Example:
    async with LightningRpc("/home/user/.lightning/lightning-rpc") as ln:
        info = await ln.get_info()
        route = await ln.get_route(destination, 100_000, 1.0)
        await ln.send_payment(route.hops, payment_hash)
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from typing import Any, Self

from lightningrpc.catalog import MethodCatalog, MethodSpec
from lightningrpc.client import Client, ClientConfig, ConnectionPolicy
from lightningrpc.models import (
    Empty,
    GetChannelsResponse,
    GetInfoResponse,
    GetNodesResponse,
    GetPeersResponse,
    Invoice,
    NewAddressResponse,
    Route,
    RouteHop,
    SendPaymentResponse,
)
from lightningrpc.observer import CallObserver
from lightningrpc.wire import ParamStyle

POSITIONAL = ParamStyle.POSITIONAL
NAMED = ParamStyle.NAMED

LIGHTNING_CATALOG = MethodCatalog(
    [
        MethodSpec("new_address", "newaddr", NAMED, NewAddressResponse),
        MethodSpec("get_info", "getinfo", NAMED, GetInfoResponse),
        MethodSpec("get_peers", "getpeers", NAMED, GetPeersResponse),
        MethodSpec("get_channels", "getchannels", NAMED, GetChannelsResponse),
        MethodSpec(
            "connect", "connect", POSITIONAL, Empty, ("host", "port", "funding_tx")
        ),
        MethodSpec("close", "close", POSITIONAL, Empty, ("peer_id",)),
        MethodSpec(
            "get_route",
            "getroute",
            POSITIONAL,
            Route,
            ("destination", "amount", "risk_factor"),
        ),
        MethodSpec(
            "send_payment",
            "sendpay",
            POSITIONAL,
            SendPaymentResponse,
            ("route", "payment_hash"),
        ),
        MethodSpec("get_nodes", "getnodes", NAMED, GetNodesResponse),
        MethodSpec("invoice", "invoice", POSITIONAL, Invoice, ("amount", "label")),
        # The daemon answers stop with a bare string.
        MethodSpec("stop", "stop", POSITIONAL, None),
    ]
)


class LightningRpc:
    """Lightning daemon operations as typed async methods.

    Dials the socket per call by default, like a CLI would; pass
    ConnectionPolicy.PERSISTENT for long-lived callers with many calls.
    """

    def __init__(
        self,
        socket_path: str | os.PathLike[str],
        *,
        connection_policy: ConnectionPolicy = ConnectionPolicy.PER_CALL,
        timeout: float | None = 30.0,
        observer: CallObserver | None = None,
        catalog: MethodCatalog = LIGHTNING_CATALOG,
    ) -> None:
        config = ClientConfig(
            socket_path=socket_path,
            connection_policy=connection_policy,
            timeout=timeout,
        )
        self.client = Client(config, observer=observer)
        self.catalog = catalog

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.client.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.client.close()

    async def close_connection(self) -> None:
        """Close the underlying client connection."""
        await self.client.close()

    async def _invoke(self, name: str, *args: Any) -> Any:
        return await self.catalog.invoke(self.client, name, *args)

    async def new_address(self) -> NewAddressResponse:
        return await self._invoke("new_address")

    async def get_info(self) -> GetInfoResponse:
        return await self._invoke("get_info")

    async def get_peers(self) -> GetPeersResponse:
        return await self._invoke("get_peers")

    async def get_channels(self) -> GetChannelsResponse:
        return await self._invoke("get_channels")

    async def connect(self, host: str, port: int, funding_tx: str) -> None:
        """Connect to a peer and fund a channel with the given transaction."""
        await self._invoke("connect", host, port, funding_tx)

    async def close(self, peer_id: str) -> None:
        """Close the channel with a peer."""
        await self._invoke("close", peer_id)

    async def get_route(
        self, destination: str, amount: int, risk_factor: float
    ) -> Route:
        """Compute a route to ``destination`` for ``amount`` millisatoshi."""
        return await self._invoke("get_route", destination, amount, risk_factor)

    async def send_payment(
        self, route: Sequence[RouteHop], payment_hash: str
    ) -> SendPaymentResponse:
        """Send a payment along a route computed by get_route."""
        return await self._invoke("send_payment", list(route), payment_hash)

    async def get_nodes(self) -> GetNodesResponse:
        return await self._invoke("get_nodes")

    async def invoice(self, amount: int, label: str) -> Invoice:
        """Create an invoice for ``amount`` millisatoshi."""
        return await self._invoke("invoice", amount, label)

    async def stop(self) -> None:
        """Ask the daemon to shut down."""
        await self._invoke("stop")
