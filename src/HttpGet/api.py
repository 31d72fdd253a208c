# === NAVMAP v1 ===
# {
#   "module": "HttpGet.api",
#   "purpose": "Module-level shortcuts: one call per HTTP method",
#   "sections": [
#     {
#       "id": "request",
#       "name": "request",
#       "anchor": "function-request",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Module-level request shortcuts.

Each shortcut builds a short-lived :class:`~HttpGet.orchestrator.RequestOrchestrator`
for one logical request, so no configuration or connection pool is shared
implicitly between calls. Long-running callers should hold their own
orchestrator to reuse connections.

Input is normalised while the shortcut is being called: an options mapping
without ``url`` raises :class:`~HttpGet.errors.InvalidInputError` right away.

Example:
    >>> import asyncio
    >>> from HttpGet import head
    >>> result = asyncio.run(head("example.org"))
    >>> def done(error, result):
    ...     print(error or result.code)
    >>> asyncio.run(head({"url": "example.org", "noCompress": True}, callback=done))
    200
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, Union

import httpx

from HttpGet.descriptor import RequestDescriptor, RequestSource, normalize_request
from HttpGet.errors import ClassifiedError, RequestCancelled
from HttpGet.orchestrator import (
    Completion,
    CompletionCallback,
    RequestOrchestrator,
    ResponseResult,
)
from HttpGet.settings import ClientSettings

__all__ = [
    "request",
    "head",
    "get",
    "post",
    "put",
    "delete",
    "patch",
    "options",
]


async def _run(
    descriptor: RequestDescriptor,
    settings: ClientSettings,
    transport: Optional[httpx.AsyncBaseTransport],
    callback: Optional[CompletionCallback],
) -> Union[ResponseResult, Completion]:
    if callback is None:
        async with RequestOrchestrator(settings, transport=transport) as orchestrator:
            return await orchestrator.execute(descriptor)

    delivered = False

    def deliver(error: Optional[BaseException], result: Optional[ResponseResult]) -> None:
        nonlocal delivered
        if not delivered:
            delivered = True
            callback(error, result)

    try:
        async with RequestOrchestrator(settings, transport=transport) as orchestrator:
            result = await orchestrator.execute(descriptor)
    except asyncio.CancelledError:
        # the caller gave up (wait_for, task.cancel); the callback still hears about it
        deliver(RequestCancelled(url=descriptor.url), None)
        raise
    except ClassifiedError as error:
        deliver(error, None)
        return Completion(error, None)
    except Exception as error:
        deliver(error, None)
        raise
    deliver(None, result)
    return Completion(None, result)


def request(
    method: str,
    source: RequestSource,
    *,
    settings: Optional[ClientSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    callback: Optional[CompletionCallback] = None,
) -> Awaitable[Union[ResponseResult, Completion]]:
    """Issue one request.

    Args:
        method: HTTP method name.
        source: URL string, options mapping or :class:`~HttpGet.settings.RequestOptions`.
        settings: Client settings (read from the environment when omitted).
        transport: Optional HTTPX transport override.
        callback: Optional ``callback(error, result)``; when given the
            awaitable never raises a classified error and resolves to a
            :class:`~HttpGet.orchestrator.Completion` instead. The callback
            fires exactly once: a cancelled awaitable reports
            :class:`~HttpGet.errors.RequestCancelled`, and an unclassified
            exception is delivered before it propagates.

    Returns:
        Awaitable resolving to a :class:`~HttpGet.orchestrator.ResponseResult`.

    Raises:
        InvalidInputError: Synchronously, for malformed input.
    """
    settings = settings or ClientSettings()
    descriptor = normalize_request(method, source, settings)
    return _run(descriptor, settings, transport, callback)


def head(source: RequestSource, **kwargs) -> Awaitable[Union[ResponseResult, Completion]]:
    """Issue a HEAD request (see :func:`request`)."""
    return request("HEAD", source, **kwargs)


def get(source: RequestSource, **kwargs) -> Awaitable[Union[ResponseResult, Completion]]:
    """Issue a GET request (see :func:`request`)."""
    return request("GET", source, **kwargs)


def post(source: RequestSource, **kwargs) -> Awaitable[Union[ResponseResult, Completion]]:
    return request("POST", source, **kwargs)


def put(source: RequestSource, **kwargs) -> Awaitable[Union[ResponseResult, Completion]]:
    return request("PUT", source, **kwargs)


def delete(source: RequestSource, **kwargs) -> Awaitable[Union[ResponseResult, Completion]]:
    return request("DELETE", source, **kwargs)


def patch(source: RequestSource, **kwargs) -> Awaitable[Union[ResponseResult, Completion]]:
    return request("PATCH", source, **kwargs)


def options(source: RequestSource, **kwargs) -> Awaitable[Union[ResponseResult, Completion]]:
    return request("OPTIONS", source, **kwargs)
