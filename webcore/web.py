"""Minimal request, response and exchange objects for the HTTP layer."""

from __future__ import annotations

import io
from dataclasses import dataclass, field, replace
from http import HTTPStatus
from typing import Any, BinaryIO

import httpx

from .context import Context


def _split_host(address: str) -> str:
    if address.startswith("["):
        end = address.find("]")
        if end < 0 or address[end + 1 : end + 2] != ":":
            return ""
        return address[1:end]
    if address.count(":") != 1:
        return ""
    return address.split(":", 1)[0]


@dataclass
class Request:
    """An incoming HTTP request."""

    method: str = "GET"
    uri: str = "/"
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: BinaryIO | None = None
    context: Context = field(default_factory=Context)
    remote_addr: str = ""

    def __post_init__(self) -> None:
        self.headers = httpx.Headers(self.headers)

    def clone(self, context: Context) -> Request:
        """Return a copy of the request bound to another context."""
        return replace(self, headers=httpx.Headers(self.headers), context=context)

    def real_ip(self) -> str:
        """Return the client address, preferring proxy headers."""
        forwarded = self.headers.get("X-Forwarded-For", "")
        if forwarded:
            comma = forwarded.find(",")
            if comma > 0:
                return forwarded[:comma].strip().removeprefix("[").removesuffix("]")
            return forwarded
        real = self.headers.get("X-Real-Ip", "")
        if real:
            return real.removeprefix("[").removesuffix("]")
        return _split_host(self.remote_addr)


@dataclass
class ResponseWriter:
    """Collects the status, headers and body of an outgoing response."""

    headers: httpx.Headers = field(default_factory=httpx.Headers)
    status: int | None = None
    _body: bytearray = field(default_factory=bytearray, repr=False)

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    def write_header(self, status: int) -> None:
        """Commit the status code; later calls are ignored."""
        if self.status is None:
            self.status = status

    def write(self, data: bytes) -> int:
        if self.status is None:
            self.write_header(HTTPStatus.OK)
        self._body.extend(data)
        return len(data)


@dataclass
class Exchange:
    """A request together with the response being produced for it."""

    request: Request = field(default_factory=Request)
    response: ResponseWriter = field(default_factory=ResponseWriter)

    def set_request(self, request: Request) -> None:
        self.request = request


class HTTPError(Exception):
    """An error that carries an HTTP status code and an optional message."""

    def __init__(self, code: int, message: Any = None) -> None:
        super().__init__(code, message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"code={self.code}, message={self.message}"


def get_copy_payload_from_request(request: Request) -> bytes | None:
    """Read the whole body and put back an equivalent one; None without a body."""
    if request.body is None:
        return None
    data = request.body.read()
    request.body = io.BytesIO(data)
    return data