"""Client implementation for the daemon's JSON-RPC interface."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Self

from pydantic import TypeAdapter, ValidationError

from lightningrpc.correlator import Correlator
from lightningrpc.error import (
    CallTimeout,
    ConnectionLost,
    MalformedResponse,
    RpcError,
    TransportError,
)
from lightningrpc.ids import RequestIdAllocator
from lightningrpc.observer import CallObserver, LoggingObserver, notify
from lightningrpc.transport import Transport, UnixSocketTransport
from lightningrpc.wire import (
    DEFAULT_MAX_FRAME_SIZE,
    Params,
    WireNotification,
    encode_request,
    parse_message,
    to_params,
)

logger = logging.getLogger(__name__)


class ConnectionPolicy(Enum):
    """How long a connection to the daemon lives."""

    # Open, send, await the response, close. One call per connection.
    PER_CALL = "per_call"
    # One long-lived connection with many calls in flight, matched by id.
    PERSISTENT = "persistent"

    def __str__(self) -> str:
        return self.value


@dataclass
class ClientConfig:
    """Configuration for the client."""

    socket_path: str | os.PathLike[str]
    connection_policy: ConnectionPolicy
    timeout: float | None = 30.0
    max_frame_size: int = DEFAULT_MAX_FRAME_SIZE


@lru_cache(maxsize=128)
def _type_adapter(shape: Any) -> TypeAdapter[Any]:
    return TypeAdapter(shape)


def _coerce_result(method: str, result: Any, result_shape: Any) -> Any:
    if result_shape is None:
        return result
    try:
        return _type_adapter(result_shape).validate_python(result)
    except ValidationError as e:
        msg = f"Result of {method} does not match {getattr(result_shape, '__name__', result_shape)}: {e}"
        raise MalformedResponse(msg, result) from e


class Client:
    """JSON-RPC 2.0 client for a daemon listening on a Unix socket.

    With ConnectionPolicy.PER_CALL every call dials the socket, sends one
    request, waits for the matching response and hangs up. With
    ConnectionPolicy.PERSISTENT the client keeps one connection open and a
    reader task resolves outstanding calls as their responses arrive; if
    the connection dies every outstanding call fails with ConnectionLost
    and the next call reconnects.

    Calls are never retried.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        observer: CallObserver | None = None,
        transport_factory: Callable[[], Transport] | None = None,
    ) -> None:
        self.config = config
        self.observer: CallObserver = observer or LoggingObserver()
        self._transport_factory = transport_factory or self._default_transport
        self._ids = RequestIdAllocator()
        self._correlator = Correlator()
        self._transport: Transport | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._connect_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    def _default_transport(self) -> Transport:
        return UnixSocketTransport(
            self.config.socket_path, max_frame_size=self.config.max_frame_size
        )

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        if self.config.connection_policy is ConnectionPolicy.PERSISTENT:
            await self.connect()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self._transport is not None

    @property
    def pending_calls(self) -> int:
        """Number of calls waiting for a response on the persistent connection."""
        return len(self._correlator)

    async def connect(self) -> None:
        """Open the persistent connection and start its reader task.

        Raises:
            ConnectError: If the daemon cannot be reached
        """
        if self.config.connection_policy is not ConnectionPolicy.PERSISTENT:
            msg = f"connect() needs a persistent client, policy is {self.config.connection_policy}"
            raise RuntimeError(msg)

        async with self._connect_lock:
            if self._transport is not None:
                return
            transport = self._transport_factory()
            await transport.open()
            self._transport = transport
            self._reader_task = asyncio.create_task(self._read_loop(transport))

    async def close(self) -> None:
        """Close the connection; outstanding calls fail with ConnectionLost."""
        if self._reader_task and not self._reader_task.done():
            self._reader_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._reader_task
        self._reader_task = None

        transport = self._transport
        self._transport = None
        self._correlator.fail_all(ConnectionLost("Client closed"))
        if transport is not None:
            await transport.close()

    async def call(
        self,
        method: str,
        params: Any = None,
        result_shape: Any = None,
    ) -> Any:
        """Call a method on the daemon.

        Args:
            method: The wire method name
            params: A sequence (positional), a mapping (named), a Positional
                or Named value, or None for no parameters
            result_shape: Optional type the result is validated into
                (a pydantic model, a dataclass, ``list[Model]``, ...)

        Returns:
            The result of the method call

        Raises:
            ConnectError: If the daemon cannot be reached
            TransportError: If the connection fails mid-call
            ConnectionLost: If the connection closes before the response
            RemoteError: If the daemon answers with an error object
            MalformedResponse: If the response violates the protocol
            CallTimeout: If no response arrives within the configured timeout
        """
        wire_params = to_params(params)
        request_id = self._ids.allocate()

        if self.config.connection_policy is ConnectionPolicy.PERSISTENT:
            exchange = self._call_multiplexed(request_id, method, wire_params)
        else:
            exchange = self._call_once(request_id, method, wire_params)

        timeout = self.config.timeout
        try:
            result = await asyncio.wait_for(exchange, timeout)
        except TimeoutError:
            msg = f"No response to {method} (id={request_id}) within {timeout}s"
            raise CallTimeout(msg, method, timeout) from None

        return _coerce_result(method, result, result_shape)

    def _dispatch(self, correlator: Correlator, frame: bytes) -> None:
        """Route one incoming frame to its call or to the observer."""
        try:
            message = parse_message(frame)
            if isinstance(message, WireNotification):
                notify(self.observer, "notification_received", message)
                return
            pending = correlator.resolve(message)
        except MalformedResponse as e:
            notify(self.observer, "protocol_error", e)
            raise

        if pending is not None:
            notify(
                self.observer,
                "response_received",
                pending.request_id,
                pending.method,
                message,
                pending.elapsed,
            )

    async def _call_once(self, request_id: int, method: str, params: Params) -> Any:
        correlator = Correlator()
        pending = correlator.register(request_id, method)

        transport = self._transport_factory()
        await transport.open()
        try:
            await transport.send(encode_request(request_id, method, params))
            notify(self.observer, "request_sent", request_id, method, params)
            while not pending.future.done():
                self._dispatch(correlator, await transport.receive())
        finally:
            await transport.close()

        return await pending.future

    async def _call_multiplexed(self, request_id: int, method: str, params: Params) -> Any:
        if self._transport is None:
            await self.connect()
        transport = self._transport
        if transport is None:
            msg = "Connection closed before the request could be sent"
            raise ConnectionLost(msg)

        pending = self._correlator.register(request_id, method)
        try:
            try:
                async with self._write_lock:
                    await transport.send(encode_request(request_id, method, params))
            except TransportError as e:
                self._correlator.abandon(request_id)
                await self._drop_connection(transport, ConnectionLost(e.message))
                raise
            notify(self.observer, "request_sent", request_id, method, params)
            return await pending.future
        except asyncio.CancelledError:
            self._correlator.abandon(request_id)
            raise

    async def _read_loop(self, transport: Transport) -> None:
        """Drain the persistent connection until it fails or is cancelled."""
        error: RpcError
        try:
            while True:
                frame = await transport.receive()
                try:
                    self._dispatch(self._correlator, frame)
                except MalformedResponse as e:
                    # The frame itself was intact; only a call it names can fail.
                    self._fail_named_call(e)
        except ConnectionLost as e:
            error = e
        except TransportError as e:
            error = ConnectionLost(e.message)
        except MalformedResponse as e:
            # The stream can no longer be framed; the violation itself is
            # what outstanding callers see.
            error = e
        except Exception as e:
            logger.exception("Reader for %s failed", self.config.socket_path)
            error = ConnectionLost(f"Reader failed: {e}")

        await self._drop_connection(transport, error)

    def _fail_named_call(self, error: MalformedResponse) -> None:
        payload = error.payload
        if not isinstance(payload, dict):
            return
        request_id = payload.get("id")
        if isinstance(request_id, bool) or not isinstance(request_id, int | str):
            return
        if self._correlator.fail(request_id, error):
            logger.debug("Failed call %s with %s", request_id, error)

    async def _drop_connection(self, transport: Transport, error: RpcError) -> None:
        if self._transport is not transport:
            # Already replaced or closed; its calls were failed back then.
            await transport.close()
            return

        reader = self._reader_task
        self._transport = None
        self._reader_task = None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
        failed = self._correlator.fail_all(error)
        if failed:
            logger.warning(
                "Connection to %s dropped with %d call(s) outstanding: %s",
                self.config.socket_path,
                failed,
                error,
            )
        else:
            logger.debug("Connection to %s dropped: %s", self.config.socket_path, error)
        await transport.close()
