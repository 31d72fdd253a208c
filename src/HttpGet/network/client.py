# === NAVMAP v1 ===
# {
#   "module": "HttpGet.network.client",
#   "purpose": "Transport adapter: one HTTPX exchange per hop under a TLS policy.",
#   "sections": [
#     {
#       "id": "rawresponse",
#       "name": "RawResponse",
#       "anchor": "class-rawresponse",
#       "kind": "class"
#     },
#     {
#       "id": "transportadapter",
#       "name": "TransportAdapter",
#       "anchor": "class-transportadapter",
#       "kind": "class"
#     },
#     {
#       "id": "is-valid-hostname",
#       "name": "is_valid_hostname",
#       "anchor": "function-is-valid-hostname",
#       "kind": "function"
#     },
#     {
#       "id": "create-ssl-context",
#       "name": "_create_ssl_context",
#       "anchor": "function-create-ssl-context",
#       "kind": "function"
#     },
#     {
#       "id": "create-http-client",
#       "name": "_create_http_client",
#       "anchor": "function-create-http-client",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTPX transport adapter.

Issues exactly one request/response exchange per call. The adapter knows
nothing about redirects: httpx auto-redirect is disabled and every hop is
driven by :mod:`HttpGet.network.redirect`. Responses are returned streamed
and undecoded so that content decoding stays under the orchestrator's control.

Key design:
- **One client per trust policy**: ``httpx.AsyncClient`` instances are keyed by
  :meth:`TLSPolicy.fingerprint` (plus proxy) and reused for the adapter's
  lifetime, so equal policies share a connection pool.
- **Hostname precheck**: syntactically invalid hosts are rejected with
  ``EBADNAME`` before any socket is opened.
- **No retries**: connect errors surface immediately.

Example:
    >>> async with TransportAdapter(ClientSettings()) as adapter:
    ...     raw = await adapter.execute("HEAD", "https://example.org/", headers, descriptor)
    ...     await raw.aclose()
"""

from __future__ import annotations

import ipaddress
import logging
import re
import ssl
from typing import AsyncIterator, Dict, Optional, Tuple

import certifi
import httpx

from HttpGet.descriptor import RequestDescriptor
from HttpGet.errors import NameResolutionError
from HttpGet.network.instrumentation import create_http_event_hooks
from HttpGet.network.policy import FOLLOW_REDIRECTS
from HttpGet.settings import ClientSettings, TLSPolicy

logger = logging.getLogger(__name__)

_LABEL_PATTERN = re.compile(r"^[A-Za-z0-9_](?:[A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?$")


# ============================================================================
# Raw Response
# ============================================================================


class RawResponse:
    """Undecoded, streamed response for one hop.

    The body has not been read yet; callers iterate :meth:`iter_raw` once
    and must :meth:`aclose` the response either way.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def status(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    @property
    def url(self) -> str:
        return str(self._response.request.url)

    @property
    def http_version(self) -> str:
        return self._response.http_version

    async def iter_raw(self) -> AsyncIterator[bytes]:
        """Yield body bytes exactly as received (content coding intact)."""

        async for chunk in self._response.aiter_raw():
            yield chunk

    async def aclose(self) -> None:
        await self._response.aclose()

    def __repr__(self) -> str:
        return f"<RawResponse [{self.status}] {self.url}>"


# ============================================================================
# Hostname Validation
# ============================================================================


def is_valid_hostname(host: str) -> bool:
    """Return True when ``host`` is an IP literal or a well-formed DNS name.

    Empty labels (``.foo.bar``), labels longer than 63 octets and names longer
    than 253 octets are rejected. Non-ASCII names must already be IDNA-encoded.
    """

    if not host:
        return False
    try:
        ipaddress.ip_address(host.strip("[]"))
        return True
    except ValueError:
        pass

    name = host[:-1] if host.endswith(".") else host
    if not name or len(name) > 253:
        return False
    return all(_LABEL_PATTERN.match(label) for label in name.split("."))


def _sni_hostname(host_header: str) -> str:
    if host_header.startswith("["):
        return host_header[1 : host_header.find("]")]
    return host_header.split(":", 1)[0]


# ============================================================================
# Client Construction
# ============================================================================


def _create_ssl_context(tls: TLSPolicy, default_ca_bundle: Optional[str] = None) -> ssl.SSLContext:
    """Create the SSL context for a trust policy.

    - bypass: no certificate or hostname validation at all (wins over ``ca``)
    - explicit ``ca``: only certificates chaining to those authorities
    - otherwise: the configured bundle, falling back to certifi

    Returns:
        Configured ssl.SSLContext for use with HTTPX
    """
    if tls.bypass:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        logger.warning("TLS verification DISABLED for this request policy")
        return ctx

    if tls.ca:
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        for entry in tls.ca:
            if "-----BEGIN" in entry:
                ctx.load_verify_locations(cadata=entry)
            else:
                ctx.load_verify_locations(cafile=entry)
    else:
        ctx = ssl.create_default_context(cafile=default_ca_bundle or certifi.where())

    ctx.minimum_version = ssl.TLSVersion.TLSv1_2
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


def _create_http_client(
    settings: ClientSettings,
    tls: TLSPolicy,
    *,
    proxy: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an HTTPX async client for one trust policy.

    Configuration:
    - Timeouts: per-phase budgets from settings
    - Connection pooling: bounded by settings
    - Redirects: disabled (followed by the resolver)
    - Hooks: per-hop instrumentation

    Returns:
        Fully configured httpx.AsyncClient ready for use
    """
    ca_bundle = str(settings.default_ca_bundle) if settings.default_ca_bundle else None
    ssl_ctx = _create_ssl_context(tls, ca_bundle)

    client = httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(
            connect=settings.connect_timeout,
            read=settings.read_timeout,
            write=settings.write_timeout,
            pool=settings.pool_timeout,
        ),
        limits=httpx.Limits(
            max_connections=settings.max_connections,
            max_keepalive_connections=settings.max_keepalive_connections,
            keepalive_expiry=settings.keepalive_expiry,
        ),
        http2=settings.http2,
        follow_redirects=FOLLOW_REDIRECTS,
        verify=ssl_ctx,
        # an injected transport is mounted as the default; a proxy mount would bypass it
        proxy=None if transport is not None else proxy,
        event_hooks=create_http_event_hooks(),
    )

    logger.debug(
        "HTTPX client created",
        extra={
            "tls_policy": tls.fingerprint(),
            "proxy": bool(proxy),
            "http2": settings.http2,
            "max_connections": settings.max_connections,
        },
    )
    return client


# ============================================================================
# Transport Adapter
# ============================================================================


class TransportAdapter:
    """Thin asynchronous interface over HTTPX for single exchanges.

    Args:
        settings: Client settings (timeouts, pooling, default CA bundle).
        transport: Optional HTTPX transport used by every client; tests inject
            ``httpx.MockTransport`` here.
    """

    def __init__(
        self,
        settings: ClientSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._clients: Dict[Tuple[str, Optional[str]], httpx.AsyncClient] = {}
        self._closed = False

    async def __aenter__(self) -> "TransportAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def closed(self) -> bool:
        return self._closed

    def client_for(self, tls: TLSPolicy, proxy: Optional[str] = None) -> httpx.AsyncClient:
        """Return the shared client for a trust policy, creating it on first use."""

        if self._closed:
            raise RuntimeError("TransportAdapter has been closed")
        key = (tls.fingerprint(), proxy)
        client = self._clients.get(key)
        if client is None:
            client = _create_http_client(
                self._settings, tls, proxy=proxy, transport=self._transport
            )
            self._clients[key] = client
        return client

    async def execute(
        self,
        method: str,
        url: str,
        headers: httpx.Headers,
        descriptor: RequestDescriptor,
        *,
        body: Optional[bytes] = None,
        auth: Optional[Tuple[str, str]] = None,
    ) -> RawResponse:
        """Perform one exchange and return the streamed, undecoded response.

        Args:
            method: Method for this hop (may differ from the descriptor after
                a 303 redirect).
            url: Absolute URL for this hop.
            headers: Request headers for this hop.
            descriptor: Source descriptor providing TLS, proxy, timeout and
                negotiation flags.
            body: Payload for this hop.
            auth: Basic credentials for this hop.

        Raises:
            NameResolutionError: If the host fails syntactic validation.
            httpx.HTTPError: For any transport, TLS or resolver failure; the
                caller classifies it.
        """
        parsed = httpx.URL(url)
        host = parsed.raw_host.decode("ascii")
        if not is_valid_hostname(host):
            raise NameResolutionError(
                f"Invalid hostname '{host}'", code="EBADNAME", url=url
            )

        client = self.client_for(descriptor.tls, descriptor.proxy)

        extensions = {}
        host_header = headers.get("host")
        if parsed.scheme == "https" and host_header:
            extensions["sni_hostname"] = _sni_hostname(host_header)

        request = client.build_request(
            method,
            parsed,
            headers=headers,
            content=body,
            timeout=(
                httpx.Timeout(descriptor.timeout)
                if descriptor.timeout is not None
                else httpx.USE_CLIENT_DEFAULT
            ),
            extensions=extensions,
        )
        if descriptor.omit_user_agent and "user-agent" not in headers:
            del request.headers["user-agent"]
        if not descriptor.compression and "accept-encoding" in request.headers:
            del request.headers["accept-encoding"]

        response = await client.send(request, stream=True, auth=auth)
        return RawResponse(response)

    async def aclose(self) -> None:
        """Close every client and release pooled connections.

        Safe to call multiple times.
        """
        self._closed = True
        clients, self._clients = list(self._clients.values()), {}
        for client in clients:
            try:
                await client.aclose()
            except Exception as e:
                logger.error(f"Error closing HTTP client: {e}")
        if clients:
            logger.debug("HTTP clients closed", extra={"count": len(clients)})


__all__ = [
    "RawResponse",
    "TransportAdapter",
    "is_valid_hostname",
]
