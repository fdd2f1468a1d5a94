"""
trust_gateway.jsonrpc — JSON-RPC 2.0 envelope parsing for ``POST /a2a``.

Parsing never raises past this module: every failure becomes a
``JSONRPCError`` that the route renders inside an HTTP 200 envelope.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
TASK_NOT_FOUND = -32001
TASK_NOT_CANCELABLE = -32002
PUSH_NOTIFICATION_NOT_SUPPORTED = -32003
UNSUPPORTED_OPERATION = -32004

_JSON_CONTENT_TYPE_RE = re.compile(r"(^|;)\s*application/(?:[\w.+-]+\+)?json\s*(;|$)", re.IGNORECASE)
_TEXT_CONTENT_TYPE_RE = re.compile(r"(^|;)\s*text/plain\s*(;|$)", re.IGNORECASE)


class JSONRPCError(Exception):
    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message)

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            d["data"] = self.data
        return d


def invalid_request() -> JSONRPCError:
    return JSONRPCError(INVALID_REQUEST, "Invalid JSON-RPC Request.")


def error_response(request_id: Any, error: JSONRPCError) -> dict:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error.to_dict()}


def success_response(request_id: Any, result: Any) -> dict:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def accepts_as_json(content_type: Optional[str]) -> bool:
    """Absent, ``application/json``, ``application/*+json`` or ``text/plain``."""
    if not content_type:
        return True
    return bool(_JSON_CONTENT_TYPE_RE.search(content_type) or _TEXT_CONTENT_TYPE_RE.search(content_type))


def parse_envelope(raw: bytes, content_type: Optional[str] = None) -> Optional[dict]:
    """Parse a raw request body into a JSON-RPC request object.

    Returns None for an empty body. Raises JSONRPCError for an unsupported
    content type (-32600), invalid JSON (-32700) or a body that is not a
    JSON object (-32600).
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, (bytes, bytearray)) else str(raw)
    if not text.strip():
        return None
    if not accepts_as_json(content_type):
        raise invalid_request()
    try:
        body = json.loads(text)
    except ValueError:
        raise JSONRPCError(PARSE_ERROR, "Parse error") from None
    if not isinstance(body, dict):
        raise invalid_request()
    return body


def peek_method(raw: bytes, content_type: Optional[str] = None) -> Optional[str]:
    """Best-effort method name for payment classification; None if unparsable."""
    try:
        body = parse_envelope(raw, content_type)
    except JSONRPCError:
        return None
    if body is None:
        return None
    method = body.get("method")
    return method if isinstance(method, str) else None


def request_id_of(body: Any) -> Any:
    """The request id to echo, or None when the body carries no usable id."""
    if not isinstance(body, dict):
        return None
    rid = body.get("id")
    if isinstance(rid, bool) or not isinstance(rid, (str, int, type(None))):
        return None
    return rid
