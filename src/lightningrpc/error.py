"""Error types for the lightningrpc client."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar


class ErrorKind(Enum):
    """Categories of failure a call can end in."""

    CONNECT = "connect"
    TRANSPORT = "transport"
    CONNECTION_LOST = "connection_lost"
    REMOTE = "remote"
    MALFORMED_RESPONSE = "malformed_response"
    UNKNOWN_ID = "unknown_id"
    TIMEOUT = "timeout"

    def __str__(self) -> str:
        return self.value


class RpcError(Exception):
    """Base class for every error raised by the client."""

    kind: ClassVar[ErrorKind]
    message: str

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


@dataclass(frozen=True)
class ConnectError(RpcError):
    """The daemon socket could not be reached."""

    kind: ClassVar[ErrorKind] = ErrorKind.CONNECT

    message: str
    endpoint: str | None = None


@dataclass(frozen=True)
class TransportError(RpcError):
    """Reading from or writing to an open connection failed."""

    kind: ClassVar[ErrorKind] = ErrorKind.TRANSPORT

    message: str


@dataclass(frozen=True)
class ConnectionLost(TransportError):
    """The connection went away while calls were outstanding."""

    kind: ClassVar[ErrorKind] = ErrorKind.CONNECTION_LOST


@dataclass(frozen=True)
class RemoteError(RpcError):
    """The daemon answered with a JSON-RPC error object.

    Propagated verbatim; never retried.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.REMOTE

    code: int
    message: str
    data: Any | None = None

    def __str__(self) -> str:
        return f"{self.kind} {self.code}: {self.message}"


@dataclass(frozen=True)
class MalformedResponse(RpcError):
    """The daemon sent something that is not a valid JSON-RPC response."""

    kind: ClassVar[ErrorKind] = ErrorKind.MALFORMED_RESPONSE

    message: str
    payload: Any | None = None


@dataclass(frozen=True)
class UnknownId(MalformedResponse):
    """A response carried an id that matches no outstanding call."""

    kind: ClassVar[ErrorKind] = ErrorKind.UNKNOWN_ID

    request_id: int | str | None = None


@dataclass(frozen=True)
class CallTimeout(RpcError):
    """No response arrived before the call deadline."""

    kind: ClassVar[ErrorKind] = ErrorKind.TIMEOUT

    message: str
    method: str | None = None
    timeout: float | None = None
