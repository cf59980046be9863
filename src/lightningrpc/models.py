"""Pydantic models for the Lightning daemon's results.

Attribute names are Pythonic; aliases carry the daemon's JSON keys. Unknown
keys are ignored so newer daemons that add fields still decode.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class DaemonModel(BaseModel):
    """Base for every result model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Empty(DaemonModel):
    """Result of methods that return nothing of interest."""


class NewAddressResponse(DaemonModel):
    address: str


class GetInfoResponse(DaemonModel):
    id: str
    port: int
    testnet: bool
    version: str
    block_height: int = Field(alias="blockheight")


class Peer(DaemonModel):
    state: str
    peer_id: str = Field(alias="peerid")
    connected: bool
    our_amount: int
    their_amount: int
    our_fee: int
    their_fee: int


class GetPeersResponse(DaemonModel):
    peers: list[Peer] = Field(default_factory=list)


class Channel(DaemonModel):
    source: str = Field(alias="from")
    destination: str = Field(alias="to")
    base_fee: int
    proportional_fee: int


class GetChannelsResponse(DaemonModel):
    channels: list[Channel] = Field(default_factory=list)


class RouteHop(DaemonModel):
    """One hop of a route, as returned by getroute and accepted by sendpay."""

    node_id: str = Field(alias="id")
    amount_msat: int = Field(alias="msatoshi")
    delay: int
    channel: str


class Route(DaemonModel):
    hops: list[RouteHop] = Field(default_factory=list, alias="route")


class SendPaymentResponse(DaemonModel):
    payment_key: str = Field(alias="preimage")


class NodeAddress(DaemonModel):
    type: str
    address: str
    port: int


class Node(DaemonModel):
    id: str = Field(alias="nodeid")
    addresses: list[NodeAddress] = Field(default_factory=list)


class GetNodesResponse(DaemonModel):
    nodes: list[Node] = Field(default_factory=list)


class Invoice(DaemonModel):
    payment_hash: str = Field(alias="rhash")
    payment_key: str = Field(alias="paymentKey")
