"""JSON response helpers shared by handlers and middleware."""

from __future__ import annotations

import dataclasses
import datetime
import json
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any

from werkzeug.wrappers import Request, Response

_SUCCESS_STATUS: dict[str, tuple[int, str]] = {
    "GET": (HTTPStatus.OK, "Ok"),
    "POST": (HTTPStatus.CREATED, "Item created"),
    "PUT": (HTTPStatus.OK, "Item updated"),
    "DELETE": (HTTPStatus.OK, "Item deleted"),
    "PATCH": (HTTPStatus.OK, "Item patched"),
}
_METHOD_NOT_ALLOWED = (HTTPStatus.METHOD_NOT_ALLOWED, "Method not allowed")

_ERROR_MESSAGES: dict[int, str] = {
    HTTPStatus.NOT_FOUND: "Not found",
    HTTPStatus.BAD_REQUEST: "Bad request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal server error",
}
_GENERIC_ERROR = "Error"

# Characters escaped inside JSON strings so the body is safe to embed in HTML.
_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass(frozen=True)
class ResponseBody:
    """The envelope every JSON response is wrapped in."""

    message: str = ""
    data: Any = None


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    raise TypeError(f"object of type {type(value).__name__} is not JSON serializable")


def _encode(body: ResponseBody) -> str:
    fields: dict[str, Any] = {}
    if body.message:
        fields["message"] = body.message
    fields["data"] = body.data
    text = json.dumps(fields, separators=(",", ":"), ensure_ascii=False, default=_json_default)
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    return text + "\n"


def _json_response(status: int, body: ResponseBody) -> Response:
    return Response(_encode(body), status=int(status), mimetype="application/json")


def success_status(method: str) -> tuple[int, str]:
    """Return the status code and default message for a successful request."""
    status, message = _SUCCESS_STATUS.get(method, _METHOD_NOT_ALLOWED)
    return int(status), message


def error_message(status: int) -> str:
    """Return the default message for an error status code."""
    return _ERROR_MESSAGES.get(status, _GENERIC_ERROR)


def success(request: Request, message: str = "", data: Any = None) -> Response:
    """Build a success response whose status depends on the request method."""
    status, default_message = success_status(request.method)
    return _json_response(status, ResponseBody(message or default_message, data))


def error(request: Request, status: int, message: str = "") -> Response:
    """Build an error response with the given status and no data."""
    return _json_response(status, ResponseBody(message or error_message(status), None))