"""Parsing of requests and building of responses for the static web server."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_ROOT = "myweb"

OK = "200 ok"
FORBIDDEN = "403 forbidden"
NOT_FOUND = "404 Not Found"

SERVER_HEADER = b"server:zlj\r\n"
DEFAULT_PAGE = b"welcome to default page\n"

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


class BadRequest(ValueError):
    """The request cannot be parsed or answered."""


@dataclass(frozen=True)
class Request:
    """A parsed request: request line, headers and body.

    ``body`` is None when the header block was not terminated by a blank line.
    """

    method: str
    target: str
    version: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None

    @property
    def path(self) -> str:
        """The target without its query string."""
        return self.target.partition("?")[0]


def _encode(text: str) -> bytes:
    return text.encode(_ENCODING, _ERRORS)


def parse_request(data: bytes) -> Request:
    """Parse raw request bytes into a Request."""
    head, separator, body = data.partition(b"\r\n\r\n")
    lines = head.split(b"\r\n")
    request_line = lines[0].decode(_ENCODING, _ERRORS)

    method, space, rest = request_line.partition(" ")
    if not space or not method:
        raise BadRequest(f"malformed request line: {request_line!r}")
    marker = rest.find(" HTTP")
    if marker < 0:
        raise BadRequest(f"no protocol version in request line: {request_line!r}")
    target = rest[:marker]
    version = rest[marker + 1:].strip()

    headers: dict[str, str] = {}
    for raw in lines[1:]:
        name, colon, value = raw.decode(_ENCODING, _ERRORS).partition(":")
        if colon:
            headers[name] = value.strip()

    return Request(method, target, version, headers, body if separator else None)


def resolve_path(target: str, root: str | os.PathLike[str]) -> Path:
    """Map a request target to a path under ``root``, ignoring any query string."""
    path = target.partition("?")[0]
    return Path(root) / path.lstrip("/")


def status_line(version: str, status: str) -> bytes:
    """Build the status line, e.g. ``HTTP/1.1 200 ok``."""
    return _encode(f"{version} {status}\r\n")


def header_block(content_length: int) -> bytes:
    """Build the header block, blank line included, for a body of the given size."""
    return SERVER_HEADER + _encode(f"content-length:{content_length}\r\n") + b"\r\n"


def _bodiless(request: Request, status: str) -> bytes:
    return status_line(request.version, status) + header_block(0)


def get_response(request: Request, root: str | os.PathLike[str]) -> bytes:
    """Answer a GET request from the files under ``root``."""
    if not resolve_path(request.target, root).exists():
        return _bodiless(request, NOT_FOUND)
    path = request.path
    if "/security/" in path:
        return _bodiless(request, FORBIDDEN)
    if path == "/":
        body = DEFAULT_PAGE
    else:
        name = path.rsplit("/", 1)[-1]
        body = _encode(f"welcome to visit {name}\n")
    return status_line(request.version, OK) + header_block(len(body)) + body


def post_response(request: Request, root: str | os.PathLike[str]) -> bytes:
    """Answer a POST request by echoing its Content-Length header and body."""
    if not resolve_path(request.target, root).exists():
        return _bodiless(request, NOT_FOUND)
    if "/security/" in request.path:
        return _bodiless(request, FORBIDDEN)
    length = request.headers.get("Content-Length")
    if length is None:
        raise BadRequest("POST request without Content-Length header")
    if request.body is None:
        raise BadRequest("POST request without end of headers")
    return (
        status_line(request.version, OK)
        + SERVER_HEADER
        + _encode(f"Content-Length: {length}\r\n")
        + b"\r\n"
        + request.body
    )


def handle_request(data: bytes, root: str | os.PathLike[str]) -> bytes:
    """Parse a request and build its response; any method but GET is served as POST."""
    request = parse_request(data)
    if request.method == "GET":
        return get_response(request, root)
    return post_response(request, root)