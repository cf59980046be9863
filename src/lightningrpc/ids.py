"""Request id allocation.

Ids are positive integers handed out in increasing order (1, 2, 3, ...).
A client keeps one allocator for its whole lifetime so that ids are never
reused across reconnects; a delayed response from an earlier connection
can therefore never be mistaken for an answer to a newer call.
"""

from __future__ import annotations

import threading
from typing import Final


class RequestIdAllocator:
    """Thread-safe monotonic allocator for JSON-RPC request ids."""

    def __init__(self, start: int = 1) -> None:
        if start < 1:
            msg = f"Request ids start at 1 or above, got {start}"
            raise ValueError(msg)
        self._next: int = start
        self._lock: Final = threading.Lock()

    def allocate(self) -> int:
        """Allocate the next request id."""
        with self._lock:
            request_id = self._next
            self._next += 1
            return request_id

    def peek(self) -> int:
        """Return the id the next call to allocate() will hand out."""
        with self._lock:
            return self._next
