"""Network subsystem: transport adapter, redirect resolution and decoding.

This package is built on HTTPX (async client, HTTP/1.1 with optional HTTP/2):

Modules:
- client: transport adapter issuing one exchange per hop under a TLS policy
- redirect: iterative redirect following with a hop ceiling
- decoding: incremental gzip/deflate body decoding
- policy: timeout, pooling, redirect and negotiation constants
- instrumentation: per-hop HTTPX event hooks

Exports are resolved lazily so that :mod:`HttpGet.network.policy` can be
imported by the settings layer without pulling in the transport.

Example:
    >>> from HttpGet.network import TransportAdapter, RedirectResolver
    >>> async with TransportAdapter(settings) as adapter:
    ...     response, chain = await RedirectResolver(adapter).resolve(descriptor)
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS = {
    # Transport
    "TransportAdapter": "HttpGet.network.client",
    "RawResponse": "HttpGet.network.client",
    "is_valid_hostname": "HttpGet.network.client",
    # Decoding
    "ContentDecoder": "HttpGet.network.decoding",
    "negotiated_encoding": "HttpGet.network.decoding",
    "gzip_inflate": "HttpGet.network.decoding",
    "deflate_inflate": "HttpGet.network.decoding",
    # Instrumentation
    "create_http_event_hooks": "HttpGet.network.instrumentation",
    # Policy
    "DEFAULT_ACCEPT_ENCODING": "HttpGet.network.policy",
    "MAX_REDIRECT_HOPS": "HttpGet.network.policy",
    "REDIRECT_STATUS_CODES": "HttpGet.network.policy",
    # Redirects
    "RedirectResolver": "HttpGet.network.redirect",
    "RedirectChainState": "HttpGet.network.redirect",
    "RedirectPolicy": "HttpGet.network.redirect",
    "ResolverState": "HttpGet.network.redirect",
    "redirect_method": "HttpGet.network.redirect",
    "format_audit_trail": "HttpGet.network.redirect",
}

__all__ = list(_EXPORTS)


def __getattr__(name: str) -> Any:
    """Lazily import network exports on first access."""

    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    value = getattr(import_module(module_name), name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))
