# === NAVMAP v1 ===
# {
#   "module": "tests.fixtures.http_mocking",
#   "purpose": "HTTPX MockTransport fixtures mirroring the reference test server",
#   "sections": [
#     {
#       "id": "mockresponsebuilder",
#       "name": "MockResponseBuilder",
#       "anchor": "class-mockresponsebuilder",
#       "kind": "class"
#     },
#     {
#       "id": "reflectingserver",
#       "name": "ReflectingServer",
#       "anchor": "class-reflectingserver",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""
HTTP mocking fixtures for hermetic network testing.

Provides an HTTPX MockTransport that behaves like the small test server the
client is validated against: a hello-world root that honours
``Accept-Encoding``, redirect endpoints (plain, loop, missing Location),
header and path reflection, and failure injection for DNS and TLS errors.
All responses are deterministic and reproducible.
"""

from __future__ import annotations

import gzip
import socket
import ssl
import zlib
from typing import Callable, Dict, List

import httpx
import pytest

HELLO_WORLD = b"Hello World"
PORT = 42890
BASE_URL = f"http://127.0.0.1:{PORT}"
SECURE_BASE_URL = f"https://127.0.0.1:{PORT + 1}"


class MockResponseBuilder:
    """Builder for constructing mock HTTP responses with fluent API."""

    def __init__(self, status_code: int = 200, content: bytes = b""):
        """Initialize response builder with defaults."""
        self.status_code = status_code
        self.content = content
        self.headers: dict[str, str] = {}

    def with_status(self, code: int) -> MockResponseBuilder:
        """Set response status code."""
        self.status_code = code
        return self

    def with_content(self, content: bytes | str) -> MockResponseBuilder:
        """Set response content."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.content = content
        return self

    def with_header(self, name: str, value: str) -> MockResponseBuilder:
        """Add response header."""
        self.headers[name] = value
        return self

    def with_encoding(self, encoding: str) -> MockResponseBuilder:
        """Compress the current content and label it with ``encoding``."""
        if encoding == "gzip":
            self.content = gzip.compress(self.content)
        elif encoding == "deflate":
            self.content = zlib.compress(self.content)
        elif encoding == "raw-deflate":
            compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
            self.content = compressor.compress(self.content) + compressor.flush()
            encoding = "deflate"
        self.headers["content-encoding"] = encoding
        return self

    def build(self) -> httpx.Response:
        """Build the final response object."""
        return httpx.Response(
            status_code=self.status_code,
            content=self.content,
            headers=self.headers,
        )


def _negotiate(request: httpx.Request) -> str | None:
    accepted = request.headers.get("accept-encoding", "")
    for coding in (item.strip() for item in accepted.split(",")):
        if coding in {"gzip", "deflate"}:
            return coding
    return None


class ReflectingServer:
    """Route table served through ``httpx.MockTransport``.

    Every request is recorded in :attr:`requests`. Extra routes can be
    registered with :meth:`route`.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {
            "/": self._hello,
            "/redirect": lambda request: httpx.Response(301, headers={"location": "/"}),
            "/redirect-without-location": lambda request: httpx.Response(301),
            "/redirect-loop": lambda request: httpx.Response(
                301, headers={"location": "/redirect-loop"}
            ),
            "/header-reflect": self._header_reflect,
            "/path-reflect": self._path_reflect,
            "/broken-gzip": lambda request: httpx.Response(
                200, headers={"content-encoding": "gzip"}, content=b"definitely not gzip"
            ),
        }

    def route(self, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self._routes[path] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self._routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, content=b"Not Found")
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def _hello(self, request: httpx.Request) -> httpx.Response:
        builder = MockResponseBuilder(200, HELLO_WORLD).with_header("content-type", "text/plain")
        coding = _negotiate(request)
        if coding:
            builder.with_encoding(coding)
        response = builder.build()
        if request.method == "HEAD":
            return httpx.Response(200, headers=response.headers)
        return response

    def _header_reflect(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"foo": request.headers.get("foo", "")})

    def _path_reflect(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"path": request.url.raw_path.decode("ascii")})


def dns_not_found(request: httpx.Request) -> httpx.Response:
    """Handler failing the way a resolver miss surfaces through httpcore."""
    try:
        raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")
    except socket.gaierror as exc:
        raise httpx.ConnectError("[Errno -2] Name or service not known", request=request) from exc


def untrusted_certificate(request: httpx.Request) -> httpx.Response:
    """Handler failing the way an unknown issuer surfaces through httpcore."""
    try:
        raise ssl.SSLCertVerificationError(
            1, "[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed: self-signed certificate"
        )
    except ssl.SSLCertVerificationError as exc:
        raise httpx.ConnectError(str(exc), request=request) from exc


def connection_refused(request: httpx.Request) -> httpx.Response:
    try:
        raise ConnectionRefusedError(111, "Connection refused")
    except ConnectionRefusedError as exc:
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request) from exc


@pytest.fixture
def reflecting_server() -> ReflectingServer:
    """Fresh reflecting server per test."""
    return ReflectingServer()
