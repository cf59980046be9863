"""Tests for error types."""

import dataclasses

import pytest

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


class TestErrorKind:
    """Tests for ErrorKind enum."""

    def test_error_kinds(self) -> None:
        """Test all error kind values."""
        assert str(ErrorKind.CONNECT) == "connect"
        assert str(ErrorKind.TRANSPORT) == "transport"
        assert str(ErrorKind.CONNECTION_LOST) == "connection_lost"
        assert str(ErrorKind.REMOTE) == "remote"
        assert str(ErrorKind.MALFORMED_RESPONSE) == "malformed_response"
        assert str(ErrorKind.UNKNOWN_ID) == "unknown_id"
        assert str(ErrorKind.TIMEOUT) == "timeout"


class TestRemoteError:
    """Tests for RemoteError."""

    def test_fields(self) -> None:
        """Test code, message and data are kept verbatim."""
        error = RemoteError(-1, "no route found", {"hint": "fund a channel"})
        assert error.code == -1
        assert error.message == "no route found"
        assert error.data == {"hint": "fund a channel"}
        assert error.kind is ErrorKind.REMOTE

    def test_data_defaults_to_none(self) -> None:
        """Test data is optional."""
        assert RemoteError(-32601, "Unknown command").data is None

    def test_str_representation(self) -> None:
        """Test string representation."""
        error_str = str(RemoteError(-1, "no route found"))
        assert "remote" in error_str
        assert "-1" in error_str
        assert "no route found" in error_str

    def test_equality(self) -> None:
        """Test errors compare by value."""
        assert RemoteError(-1, "x") == RemoteError(-1, "x")
        assert RemoteError(-1, "x") != RemoteError(-2, "x")

    def test_frozen(self) -> None:
        """Test errors are immutable."""
        error = RemoteError(-1, "x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            error.code = 5  # type: ignore[misc]


class TestTaxonomy:
    """Tests for the error hierarchy."""

    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (ConnectError("refused", "/tmp/rpc"), ErrorKind.CONNECT),
            (TransportError("broken pipe"), ErrorKind.TRANSPORT),
            (ConnectionLost("eof"), ErrorKind.CONNECTION_LOST),
            (MalformedResponse("no id", {}), ErrorKind.MALFORMED_RESPONSE),
            (UnknownId("stray", {}, 9), ErrorKind.UNKNOWN_ID),
            (CallTimeout("slow", "getroute", 1.0), ErrorKind.TIMEOUT),
        ],
    )
    def test_kinds(self, error: RpcError, kind: ErrorKind) -> None:
        """Test each error reports its kind and is an RpcError."""
        assert error.kind is kind
        assert isinstance(error, RpcError)
        assert str(kind) in str(error)

    def test_connection_lost_is_transport_error(self) -> None:
        """Test ConnectionLost can be caught as TransportError."""
        with pytest.raises(TransportError):
            raise ConnectionLost("daemon went away")

    def test_unknown_id_is_malformed_response(self) -> None:
        """Test UnknownId can be caught as MalformedResponse."""
        error = UnknownId("stray response", {"id": 42, "result": 1}, 42)
        assert isinstance(error, MalformedResponse)
        assert error.request_id == 42
        assert error.payload == {"id": 42, "result": 1}

    def test_connect_error_keeps_endpoint(self) -> None:
        """Test ConnectError records the socket path."""
        error = ConnectError("No daemon socket", "/run/lightning/rpc")
        assert error.endpoint == "/run/lightning/rpc"

    def test_exception_behavior(self) -> None:
        """Test errors can be raised and chained."""
        with pytest.raises(ConnectError) as exc_info:
            try:
                raise FileNotFoundError("rpc")
            except FileNotFoundError as e:
                msg = "No daemon socket at rpc"
                raise ConnectError(msg, "rpc") from e

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)
