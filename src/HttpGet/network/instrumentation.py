# === NAVMAP v1 ===
# {
#   "module": "HttpGet.network.instrumentation",
#   "purpose": "Per-hop HTTPX event hooks emitting structured log records.",
#   "sections": [
#     {
#       "id": "create-http-event-hooks",
#       "name": "create_http_event_hooks",
#       "anchor": "function-create-http-event-hooks",
#       "kind": "function"
#     },
#     {
#       "id": "redact-url",
#       "name": "_redact_url",
#       "anchor": "function-redact-url",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Per-hop telemetry for the HTTPX clients built by the transport adapter.

Every exchange, redirects included, produces one ``http.hop`` debug record
with the method, a redacted URL, the status, the negotiated coding and the
time until the response headers arrived. Bodies are streamed afterwards, so
sizes are reported by the orchestrator instead.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, Dict, List, Union

import httpx

from HttpGet.network.policy import REDIRECT_STATUS_CODES

logger = logging.getLogger(__name__)

_STARTED_AT = "httpget.started_at"

EventHooks = Dict[str, List[Callable[..., Awaitable[None]]]]


def create_http_event_hooks() -> EventHooks:
    """Return ``event_hooks`` for :class:`httpx.AsyncClient`.

    The request hook stamps the start time into the request extensions; the
    response hook reads it back, so no state is shared between requests.
    """

    async def on_request(request: httpx.Request) -> None:
        request.extensions[_STARTED_AT] = time.perf_counter()

    async def on_response(response: httpx.Response) -> None:
        request = response.request
        started = request.extensions.get(_STARTED_AT)
        extra = {
            "method": request.method,
            "url_redacted": _redact_url(request.url),
            "status": response.status_code,
            "http_version": response.http_version,
            "content_encoding": response.headers.get("content-encoding"),
        }
        if started is not None:
            extra["elapsed_ms"] = round((time.perf_counter() - started) * 1000, 3)
        if response.status_code in REDIRECT_STATUS_CODES:
            extra["location"] = response.headers.get("location")
        logger.debug("http.hop", extra=extra)

    return {"request": [on_request], "response": [on_response]}


def _redact_url(url: Union[str, httpx.URL]) -> str:
    """Drop userinfo, query and fragment; keep scheme, host, port and path."""

    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL:
        return "[URL_REDACTION_FAILED]"
    host = parsed.host
    if ":" in host:
        host = f"[{host}]"
    if parsed.port:
        host = f"{host}:{parsed.port}"
    return f"{parsed.scheme}://{host}{parsed.path}"


__all__ = ["create_http_event_hooks", "EventHooks"]
