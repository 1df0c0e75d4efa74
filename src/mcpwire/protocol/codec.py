"""Message codec — newline-delimited JSON frames to and from protocol models.

``decode(encode(m)) == m`` holds for every valid message.  Malformed input
always surfaces as :class:`DecodeError` carrying the offending bytes.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from mcpwire.protocol.errors import DecodeError
from mcpwire.protocol.models import (
    JSONRPC_VERSION,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
)

FRAME_DELIMITER = b"\n"


def encode(message: Message) -> bytes:
    """Serialise *message* as compact UTF-8 JSON terminated by a newline."""
    text = json.dumps(message.to_wire(), separators=(",", ":"), ensure_ascii=False)
    return text.encode("utf-8") + FRAME_DELIMITER


def decode(frame: bytes) -> Message:
    """Parse one frame into a Request, Response or Notification.

    Raises:
        DecodeError: On invalid UTF-8/JSON, a non-object payload, a wrong
            ``jsonrpc`` version, or a shape that matches no message type.
    """
    raw = frame.rstrip(b"\r\n")
    try:
        data: Any = json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise DecodeError(frame, f"invalid UTF-8: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise DecodeError(frame, f"invalid JSON: {exc.msg}") from exc

    if not isinstance(data, dict):
        raise DecodeError(frame, "frame is not a JSON object")

    request_id = _request_id(data)
    if data.get("jsonrpc") != JSONRPC_VERSION:
        reason = f"unsupported jsonrpc version: {data.get('jsonrpc')!r}"
        raise DecodeError(frame, reason, request_id)

    model = _classify(data)
    if model is None:
        raise DecodeError(frame, "frame matches no request, response or notification shape", request_id)

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise DecodeError(frame, str(exc), request_id) from exc


def _request_id(data: dict[str, Any]) -> int | str | None:
    """Return the id of a frame meant as a request, if it can be answered."""
    if "result" in data or "error" in data:
        return None
    request_id = data.get("id")
    if isinstance(request_id, bool) or not isinstance(request_id, (int, str)):
        return None
    return request_id


def _classify(
    data: dict[str, Any],
) -> type[JsonRpcRequest] | type[JsonRpcResponse] | type[JsonRpcNotification] | None:
    has_method = "method" in data
    has_id = "id" in data
    if has_method and has_id:
        return JsonRpcRequest
    if has_method:
        return JsonRpcNotification
    if has_id and ("result" in data or "error" in data):
        return JsonRpcResponse
    return None
