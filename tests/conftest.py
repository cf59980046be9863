"""Shared fixtures: a scriptable fake daemon on a Unix socket."""

from __future__ import annotations

import asyncio
import inspect
import json
import os
import tempfile
from collections.abc import Callable
from contextlib import suppress
from typing import Any

import pytest

from lightningrpc.wire import FrameDecoder

# Handler return value that makes the daemon hang up instead of answering.
CLOSE = object()

Handler = Callable[[dict[str, Any]], Any]


def result(value: Any) -> Handler:
    """Handler answering with a result."""
    return lambda request: {"jsonrpc": "2.0", "id": request["id"], "result": value}


def error(code: int, message: str, data: Any = None) -> Handler:
    """Handler answering with an error object."""

    def handler(request: dict[str, Any]) -> dict[str, Any]:
        err: dict[str, Any] = {"code": code, "message": message}
        if data is not None:
            err["data"] = data
        return {"jsonrpc": "2.0", "id": request["id"], "error": err}

    return handler


def delayed(seconds: float, handler: Handler) -> Handler:
    """Handler answering after a delay."""

    async def wrapper(request: dict[str, Any]) -> Any:
        await asyncio.sleep(seconds)
        return handler(request)

    return wrapper


def silent(request: dict[str, Any]) -> None:
    """Handler that never answers."""
    return None


class FakeDaemon:
    """A JSON-RPC daemon stand-in listening on a Unix socket.

    Each request is answered by the handler registered for its method.
    A handler returns a response dict, raw bytes written as-is, None for
    no answer, or CLOSE to drop the connection. Requests are answered
    concurrently so slow handlers do not hold up fast ones.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self.handlers: dict[str, Handler] = {}
        self.requests: list[dict[str, Any]] = []
        self.connections = 0
        self._server: asyncio.Server | None = None
        self._writers: set[asyncio.StreamWriter] = set()
        self._tasks: set[asyncio.Task[None]] = set()

    def on(self, method: str, handler: Handler) -> None:
        self.handlers[method] = handler

    async def start(self) -> None:
        self._server = await asyncio.start_unix_server(self._serve, path=self.path)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for writer in list(self._writers):
            writer.close()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def _serve(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        self.connections += 1
        self._writers.add(writer)
        decoder = FrameDecoder()
        try:
            while True:
                chunk = await reader.read(65536)
                if not chunk:
                    break
                for frame in decoder.feed(chunk):
                    request = json.loads(frame)
                    self.requests.append(request)
                    task = asyncio.create_task(self._answer(request, writer))
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
        except (ConnectionError, asyncio.CancelledError):
            pass
        finally:
            self._writers.discard(writer)
            writer.close()

    async def _answer(self, request: dict[str, Any], writer: asyncio.StreamWriter) -> None:
        handler = self.handlers.get(request.get("method", ""))
        if handler is None:
            reply: Any = {
                "jsonrpc": "2.0",
                "id": request.get("id"),
                "error": {"code": -32601, "message": f"Unknown command '{request.get('method')}'"},
            }
        else:
            reply = handler(request)
            if inspect.isawaitable(reply):
                reply = await reply

        if reply is None:
            return
        if reply is CLOSE:
            writer.close()
            return
        data = reply if isinstance(reply, bytes) else json.dumps(reply).encode("utf-8")
        with suppress(ConnectionError, RuntimeError):
            writer.write(data)
            await writer.drain()


@pytest.fixture
def socket_path():
    """A socket path short enough for AF_UNIX."""
    with tempfile.TemporaryDirectory(prefix="lnrpc-") as directory:
        yield os.path.join(directory, "rpc.sock")


@pytest.fixture
async def daemon(socket_path: str):
    """Start a fake daemon on socket_path."""
    fake = FakeDaemon(socket_path)
    await fake.start()

    yield fake

    await fake.stop()
