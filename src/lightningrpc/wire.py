"""JSON-RPC 2.0 wire codec.

Requests are encoded as::

    {"jsonrpc": "2.0", "id": 7, "method": "getroute", "params": [...]}

and responses carry exactly one of ``result`` or ``error``::

    {"jsonrpc": "2.0", "id": 7, "result": {...}}
    {"jsonrpc": "2.0", "id": 7, "error": {"code": -1, "message": "...", "data": ...}}

A stream socket has no message delimiter, so incoming bytes go through a
FrameDecoder that cuts the stream at JSON value boundaries. Newline or
blank-line separated daemons decode the same way since inter-frame
whitespace is skipped.
"""

from __future__ import annotations

import codecs
import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from pydantic_core import to_jsonable_python

from lightningrpc.error import MalformedResponse, RemoteError

JSONRPC_VERSION = "2.0"

DEFAULT_MAX_FRAME_SIZE = 16 * 1024 * 1024

_WHITESPACE = " \t\r\n"
_FRAME_OPENERS = "{["

# What may be left at the end of a buffer cut inside a number or a literal.
_PARTIAL_TAIL = re.compile(
    r"[ \t\r\n]*(?:-?[0-9]*\.?[0-9]*(?:[eE][-+]?[0-9]*)?|t(?:r(?:u)?)?|f(?:a(?:l(?:s)?)?)?|n(?:u(?:l)?)?)"
)


class ParamStyle(Enum):
    """How a method expects its parameters on the wire."""

    POSITIONAL = "positional"
    NAMED = "named"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Positional:
    """Parameters sent as an ordered JSON array."""

    style: ClassVar[ParamStyle] = ParamStyle.POSITIONAL

    values: tuple[Any, ...] = ()

    def to_json(self) -> list[Any]:
        """Convert to JSON array."""
        return list(self.values)


@dataclass(frozen=True)
class Named:
    """Parameters sent as a JSON object.

    Entries whose value is None are omitted so optional arguments fall
    back to the daemon's defaults instead of being sent as null.
    """

    style: ClassVar[ParamStyle] = ParamStyle.NAMED

    values: Mapping[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        """Convert to JSON object."""
        return {k: v for k, v in self.values.items() if v is not None}


Params = Positional | Named


def to_params(value: Any) -> Params:
    """Coerce a caller-supplied parameter value into a Params variant."""
    if isinstance(value, Positional | Named):
        return value
    if value is None:
        return Named()
    if isinstance(value, Mapping):
        return Named(dict(value))
    if isinstance(value, Sequence) and not isinstance(value, str | bytes):
        return Positional(tuple(value))
    msg = f"Params must be a sequence or a mapping, got {type(value).__name__}"
    raise TypeError(msg)


@dataclass(frozen=True)
class WireRequest:
    """A JSON-RPC request that expects a response."""

    request_id: int | str
    method: str
    params: Params = field(default_factory=Named)

    def to_json(self) -> dict[str, Any]:
        """Convert to JSON object."""
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": self.request_id,
            "method": self.method,
            "params": self.params.to_json(),
        }


@dataclass(frozen=True)
class WireErrorObject:
    """The ``error`` member of a failed response."""

    code: int
    message: str
    data: Any | None = None

    def to_json(self) -> dict[str, Any]:
        """Convert to JSON object."""
        result: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            result["data"] = self.data
        return result

    @staticmethod
    def from_json(obj: Any) -> WireErrorObject:
        """Parse from JSON object."""
        if not isinstance(obj, dict):
            msg = "Error member must be an object"
            raise MalformedResponse(msg, obj)
        code = obj.get("code")
        message = obj.get("message")
        if not isinstance(code, int) or isinstance(code, bool):
            msg = f"Error code must be an integer, got {code!r}"
            raise MalformedResponse(msg, obj)
        if not isinstance(message, str):
            msg = f"Error message must be a string, got {message!r}"
            raise MalformedResponse(msg, obj)
        return WireErrorObject(code, message, obj.get("data"))

    def to_exception(self) -> RemoteError:
        """Build the RemoteError raised to the caller."""
        return RemoteError(self.code, self.message, self.data)


@dataclass(frozen=True)
class WireResponse:
    """A decoded JSON-RPC response.

    Exactly one of ``result`` / ``error`` is meaningful; ``error`` is None
    for a successful response.
    """

    request_id: int | str | None
    result: Any = None
    error: WireErrorObject | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def unwrap(self) -> Any:
        """Return the result, or raise the remote error."""
        if self.error is not None:
            raise self.error.to_exception()
        return self.result

    def to_json(self) -> dict[str, Any]:
        """Convert to JSON object."""
        result: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": self.request_id}
        if self.error is not None:
            result["error"] = self.error.to_json()
        else:
            result["result"] = self.result
        return result


@dataclass(frozen=True)
class WireNotification:
    """A daemon-originated message that is not a response (no result/error)."""

    method: str
    params: Any = None
    request_id: int | str | None = None


WireMessage = WireResponse | WireNotification


def _json_default(obj: Any) -> Any:
    return to_jsonable_python(obj, by_alias=True)


def encode_request(request_id: int | str, method: str, params: Any = None) -> bytes:
    """Serialize a request to UTF-8 JSON bytes, newline terminated."""
    request = WireRequest(request_id, method, to_params(params))
    text = json.dumps(request.to_json(), ensure_ascii=False, default=_json_default)
    return (text + "\n").encode("utf-8")


def _load(data: bytes | bytearray | str | Any) -> Any:
    if isinstance(data, bytes | bytearray):
        try:
            data = bytes(data).decode("utf-8")
        except UnicodeDecodeError as e:
            msg = "Response is not valid UTF-8"
            raise MalformedResponse(msg, bytes(data)[:200]) from e
    if isinstance(data, str):
        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            msg = f"Response is not valid JSON: {e}"
            raise MalformedResponse(msg, data[:200]) from e
    return data


def _check_id(obj: dict[str, Any]) -> int | str | None:
    if "id" not in obj:
        msg = "Response is missing 'id'"
        raise MalformedResponse(msg, obj)
    request_id = obj["id"]
    if request_id is None or isinstance(request_id, str):
        return request_id
    if isinstance(request_id, int) and not isinstance(request_id, bool):
        return request_id
    msg = f"Response id must be a string or an integer, got {request_id!r}"
    raise MalformedResponse(msg, obj)


def _response_from_json(obj: dict[str, Any]) -> WireResponse:
    request_id = _check_id(obj)
    has_result = "result" in obj
    # Some daemons send "error": null next to a result.
    has_error = obj.get("error") is not None
    if has_result and has_error:
        msg = "Response carries both 'result' and 'error'"
        raise MalformedResponse(msg, obj)
    if has_error:
        try:
            error = WireErrorObject.from_json(obj["error"])
        except MalformedResponse as e:
            raise MalformedResponse(e.message, obj) from e
        return WireResponse(request_id, error=error)
    if has_result:
        return WireResponse(request_id, result=obj["result"])
    msg = "Response has neither 'result' nor 'error'"
    raise MalformedResponse(msg, obj)


def decode_response(data: bytes | bytearray | str | dict[str, Any]) -> WireResponse:
    """Decode one JSON-RPC response.

    Raises:
        MalformedResponse: If the value is not a response object, lacks an
            id, or does not carry exactly one of result/error
    """
    obj = _load(data)
    if not isinstance(obj, dict):
        msg = f"Response must be a JSON object, got {type(obj).__name__}"
        raise MalformedResponse(msg, obj)
    return _response_from_json(obj)


def parse_message(data: bytes | bytearray | str | dict[str, Any]) -> WireMessage:
    """Decode one incoming message, which may be a response or a notification."""
    obj = _load(data)
    if not isinstance(obj, dict):
        msg = f"Message must be a JSON object, got {type(obj).__name__}"
        raise MalformedResponse(msg, obj)
    if "method" in obj and "result" not in obj and "error" not in obj:
        method = obj["method"]
        if not isinstance(method, str):
            msg = f"Notification method must be a string, got {method!r}"
            raise MalformedResponse(msg, obj)
        return WireNotification(method, obj.get("params"), obj.get("id"))
    return _response_from_json(obj)


def _utf8_size(text: str) -> int:
    return len(text.encode("utf-8"))


def _is_truncated(text: str, error: json.JSONDecodeError) -> bool:
    """Tell a value cut off by the end of the buffer from an invalid one."""
    if error.msg.startswith("Unterminated string"):
        return True
    if error.msg.startswith("Invalid \\uXXXX escape"):
        return len(text) - error.pos <= 6
    return _PARTIAL_TAIL.fullmatch(text, error.pos) is not None


class FrameDecoder:
    """Splits a byte stream into complete JSON values.

    Feed it whatever the socket returns; it hands back each complete
    top-level value as its own bytes frame and keeps any trailing partial
    value for the next feed. A frame must start with ``{`` or ``[`` and
    may not exceed ``max_frame_size`` bytes of UTF-8.
    """

    def __init__(self, max_frame_size: int = DEFAULT_MAX_FRAME_SIZE) -> None:
        self.max_frame_size = max_frame_size
        self._utf8 = codecs.getincrementaldecoder("utf-8")()
        self._decoder = json.JSONDecoder()
        self._text = ""

    @property
    def has_partial(self) -> bool:
        """True if part of a frame is buffered."""
        return bool(self._text.strip(_WHITESPACE))

    def _check_size(self, text: str) -> None:
        # A character is at most 4 bytes, so short text skips the encode.
        if len(text) * 4 > self.max_frame_size and _utf8_size(text) > self.max_frame_size:
            msg = f"Frame exceeds {self.max_frame_size} bytes"
            raise MalformedResponse(msg, text[:200])

    def feed(self, data: bytes) -> list[bytes]:
        """Consume a chunk and return every frame it completes.

        Raises:
            MalformedResponse: If the stream is not UTF-8, is not valid
                JSON, contains data that cannot start a frame, or a frame
                exceeds max_frame_size
        """
        try:
            self._text += self._utf8.decode(data)
        except UnicodeDecodeError as e:
            msg = "Stream is not valid UTF-8"
            raise MalformedResponse(msg, data[:200]) from e

        frames: list[bytes] = []
        while True:
            text = self._text.lstrip(_WHITESPACE)
            self._text = text
            if not text:
                return frames
            if text[0] not in _FRAME_OPENERS:
                msg = f"Unexpected data between frames: {text[:40]!r}"
                raise MalformedResponse(msg, text[:200])
            try:
                _, end = self._decoder.raw_decode(text)
            except json.JSONDecodeError as e:
                if not _is_truncated(text, e):
                    msg = f"Stream is not valid JSON: {e}"
                    raise MalformedResponse(msg, text[:200]) from e
                self._check_size(text)
                return frames
            self._check_size(text[:end])
            frames.append(text[:end].encode("utf-8"))
            self._text = text[end:]
