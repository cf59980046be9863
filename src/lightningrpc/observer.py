"""Hooks for watching calls as they go out and come back.

The client reports every request it sends and every response it receives
to a CallObserver. The default LoggingObserver writes them to the
``lightningrpc`` logger at debug level; pass your own observer to feed
metrics or tracing instead.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from lightningrpc.error import RpcError
    from lightningrpc.wire import Params, WireNotification, WireResponse


class CallObserver(Protocol):
    """Receives call lifecycle events from a Client."""

    def request_sent(self, request_id: int | str, method: str, params: Params) -> None:
        """A request was written to the socket."""
        ...

    def response_received(
        self,
        request_id: int | str,
        method: str,
        response: WireResponse,
        elapsed: float,
    ) -> None:
        """A response for an outstanding call arrived."""
        ...

    def notification_received(self, notification: WireNotification) -> None:
        """The daemon sent a message that is not a response."""
        ...

    def protocol_error(self, error: RpcError) -> None:
        """The daemon violated the protocol (bad frame, unknown id)."""
        ...


class LoggingObserver:
    """CallObserver that logs every event."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("lightningrpc")

    def request_sent(self, request_id: int | str, method: str, params: Params) -> None:
        self.logger.debug(
            "Calling %s (id=%s) with params %r", method, request_id, params.to_json()
        )

    def response_received(
        self,
        request_id: int | str,
        method: str,
        response: WireResponse,
        elapsed: float,
    ) -> None:
        if response.error is not None:
            self.logger.debug(
                "Error calling %s (id=%s) after %.3fs: %s",
                method,
                request_id,
                elapsed,
                response.error.to_exception(),
            )
        else:
            self.logger.debug(
                "Method %s (id=%s) returned after %.3fs: %r",
                method,
                request_id,
                elapsed,
                response.result,
            )

    def notification_received(self, notification: WireNotification) -> None:
        self.logger.debug(
            "Notification %s: %r", notification.method, notification.params
        )

    def protocol_error(self, error: RpcError) -> None:
        self.logger.warning("Protocol error from daemon: %s", error)


def notify(observer: CallObserver, event: str, *args: Any) -> None:
    """Invoke an observer hook; a failing observer never breaks a call."""
    hook = getattr(observer, event, None)
    if hook is None:
        return
    try:
        hook(*args)
    except Exception:
        logging.getLogger(__name__).exception("Observer %s hook failed", event)
