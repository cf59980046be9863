"""Matching responses to the calls that issued them.

Every outstanding call owns a PendingCall whose future is its wait-handle.
The future is resolved exactly once: with the result, with the daemon's
RemoteError, or with whatever error ended the connection.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Final

from lightningrpc.error import RpcError, UnknownId
from lightningrpc.wire import WireResponse

logger = logging.getLogger(__name__)

DEFAULT_MAX_ABANDONED = 1024


@dataclass
class PendingCall:
    """An issued call waiting for its response."""

    request_id: int | str
    method: str
    future: asyncio.Future[Any]
    issued_at: float = field(default_factory=time.monotonic)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.issued_at


class Correlator:
    """Table of outstanding calls on one connection, keyed by request id.

    Callers that give up on a call (timeout, cancellation) abandon it; the
    late response for an abandoned id is then accepted once and dropped.
    Only the most recent ``max_abandoned`` ids are remembered; a response
    for an older one counts as unknown.
    """

    def __init__(self, max_abandoned: int = DEFAULT_MAX_ABANDONED) -> None:
        self.max_abandoned = max_abandoned
        self._pending: dict[int | str, PendingCall] = {}
        self._abandoned: OrderedDict[int | str, None] = OrderedDict()
        self._lock: Final = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._pending

    def register(self, request_id: int | str, method: str) -> PendingCall:
        """Create the wait-handle for a call about to be sent.

        Raises:
            ValueError: If the id is already outstanding
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if request_id in self._pending:
                msg = f"Request id {request_id!r} is already outstanding"
                raise ValueError(msg)
            pending = PendingCall(request_id, method, loop.create_future())
            self._pending[request_id] = pending
            return pending

    def resolve(self, response: WireResponse) -> PendingCall | None:
        """Hand a response to the call it answers.

        Returns the resolved PendingCall, or None if the response answered
        an abandoned call.

        Raises:
            UnknownId: If no outstanding or abandoned call has this id
        """
        request_id = response.request_id
        with self._lock:
            pending = self._pending.pop(request_id, None) if request_id is not None else None
            if pending is None:
                if request_id in self._abandoned:
                    del self._abandoned[request_id]
                    logger.debug("Dropping late response for abandoned call %s", request_id)
                    return None
                msg = f"Response id {request_id!r} matches no outstanding call"
                raise UnknownId(msg, response.to_json(), request_id)

        if not pending.future.done():
            if response.error is not None:
                pending.future.set_exception(response.error.to_exception())
            else:
                pending.future.set_result(response.result)
        return pending

    def fail(self, request_id: int | str, error: BaseException) -> bool:
        """Fail one outstanding call. Returns False if it was not outstanding."""
        with self._lock:
            pending = self._pending.pop(request_id, None)
        if pending is None:
            return False
        if not pending.future.done():
            pending.future.set_exception(error)
        return True

    def abandon(self, request_id: int | str) -> None:
        """Forget a call whose caller stopped waiting.

        A response that arrives later for this id is treated as a no-op.
        """
        with self._lock:
            pending = self._pending.pop(request_id, None)
            if pending is None:
                return
            self._abandoned[request_id] = None
            while len(self._abandoned) > self.max_abandoned:
                self._abandoned.popitem(last=False)
        if not pending.future.done():
            pending.future.cancel()

    def fail_all(self, error: RpcError) -> int:
        """Fail every outstanding call with the same error.

        Abandoned ids are forgotten too since no response can follow on a
        dead connection. Returns the number of calls failed.
        """
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
            self._abandoned.clear()

        for call in pending:
            if not call.future.done():
                call.future.set_exception(error)
        return len(pending)
