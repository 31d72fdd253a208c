# === NAVMAP v1 ===
# {
#   "module": "HttpGet.orchestrator",
#   "purpose": "Request orchestration: normalise, follow redirects, decode, complete once",
#   "sections": [
#     {
#       "id": "responseresult",
#       "name": "ResponseResult",
#       "anchor": "class-responseresult",
#       "kind": "class"
#     },
#     {
#       "id": "completion",
#       "name": "Completion",
#       "anchor": "class-completion",
#       "kind": "class"
#     },
#     {
#       "id": "requestorchestrator",
#       "name": "RequestOrchestrator",
#       "anchor": "class-requestorchestrator",
#       "kind": "class"
#     },
#     {
#       "id": "completion-callback",
#       "name": "completion_callback",
#       "anchor": "function-completion-callback",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Request orchestration.

:class:`RequestOrchestrator` is the single entry point per HTTP method. A call
normalises its input synchronously (input errors are raised immediately, before
anything is scheduled), then asynchronously runs the redirect resolver and the
content decoder and produces exactly one outcome: a :class:`ResponseResult`
or a :class:`~HttpGet.errors.ClassifiedError`.

Two delivery styles are offered:

- ``await orchestrator.get(url)`` resolves to the result or raises the error.
- ``orchestrator.submit("GET", url, callback)`` schedules a task on the running
  loop and invokes ``callback(error, result)`` exactly once when it settles,
  including when the task is cancelled.

Example:
    >>> async with RequestOrchestrator() as client:
    ...     result = await client.head("example.org")
    ...     result.code
    200
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from email.message import Message
from pathlib import Path
from typing import Awaitable, Callable, NamedTuple, Optional, Tuple

import httpx

from HttpGet.cancellation import CancellationScope, CancellationToken
from HttpGet.descriptor import RequestDescriptor, RequestSource, normalize_request
from HttpGet.errors import (
    CLASSIFIABLE_EXCEPTIONS,
    ClassifiedError,
    RequestCancelled,
    classify_exception,
)
from HttpGet.network.client import RawResponse, TransportAdapter
from HttpGet.network.decoding import ContentDecoder
from HttpGet.network.redirect import (
    RedirectChainState,
    RedirectPolicy,
    RedirectResolver,
    ResolverState,
    format_audit_trail,
)
from HttpGet.settings import ClientSettings

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Optional[BaseException], Optional["ResponseResult"]], None]


@dataclass(frozen=True)
class ResponseResult:
    """Success value delivered to the caller.

    Attributes:
        code: Status code of the final hop.
        headers: Response headers as received on the final hop.
        url: URL that produced this response (after redirects).
        body: Decoded payload; empty when saved to ``file`` or for HEAD.
        method: Method used on the final hop.
        redirects: Hops followed as ``(url, status)``, final hop included.
        file: Destination path when the body was written to disk.
    """

    code: int
    headers: httpx.Headers
    url: str
    body: bytes = b""
    method: str = "GET"
    redirects: Tuple[Tuple[str, int], ...] = ()
    file: Optional[Path] = None

    @property
    def charset(self) -> str:
        message = Message()
        message["content-type"] = self.headers.get("content-type", "")
        return message.get_content_charset() or "utf-8"

    @property
    def text(self) -> str:
        """Body decoded with the response charset (UTF-8 fallback)."""

        try:
            return self.body.decode(self.charset, errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")


class Completion(NamedTuple):
    """``(error, result)`` pair; exactly one member is set."""

    error: Optional[BaseException]
    result: Optional[ResponseResult]


def completion_callback(
    callback: CompletionCallback, url: Optional[str] = None
) -> Callable[["asyncio.Future[ResponseResult]"], None]:
    """Adapt ``callback(error, result)`` to a future done-callback.

    The adapter fires at most once per future; a cancelled future is reported
    as :class:`~HttpGet.errors.RequestCancelled`.
    """
    delivered = False

    def _on_done(future: "asyncio.Future[ResponseResult]") -> None:
        nonlocal delivered
        if delivered:
            return
        delivered = True
        if future.cancelled():
            callback(RequestCancelled(url=url), None)
            return
        error = future.exception()
        if error is not None:
            callback(error, None)
        else:
            callback(None, future.result())

    return _on_done


class RequestOrchestrator:
    """Compose normalisation, redirect resolution and decoding.

    Args:
        settings: Explicit client configuration (defaults read the
            environment once, at construction).
        transport: Optional HTTPX transport for every hop (tests inject
            ``httpx.MockTransport``).
        redirect_policy: Policy used to resolve and vet redirect targets.
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        redirect_policy: Optional[RedirectPolicy] = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self._adapter = TransportAdapter(self.settings, transport=transport)
        self._redirect_policy = redirect_policy or RedirectPolicy()
        self._scope = CancellationScope()

    async def __aenter__(self) -> "RequestOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Cancel in-flight chains and close pooled connections."""
        self._scope.cancel_all("orchestrator closed")
        await self._adapter.aclose()

    def cancel_all(self, reason: Optional[str] = None) -> None:
        """Stop every in-flight request before its next hop."""
        self._scope.cancel_all(reason)

    @property
    def in_flight(self) -> int:
        return len(self._scope)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def request(
        self,
        method: str,
        source: RequestSource,
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Awaitable[ResponseResult]:
        """Normalise ``source`` now and return an awaitable for the outcome.

        Raises:
            InvalidInputError: Synchronously, before any I/O is scheduled.
        """
        descriptor = normalize_request(method, source, self.settings)
        return self.execute(descriptor, cancel_token)

    def submit(
        self,
        method: str,
        source: RequestSource,
        callback: Optional[CompletionCallback] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> "asyncio.Task[ResponseResult]":
        """Schedule a request on the running loop.

        Input errors are still raised synchronously. ``callback`` receives
        ``(error, result)`` exactly once.
        """
        descriptor = normalize_request(method, source, self.settings)
        loop = asyncio.get_running_loop()
        task = loop.create_task(self.execute(descriptor, cancel_token))
        if callback is not None:
            task.add_done_callback(completion_callback(callback, descriptor.url))
        return task

    def head(self, source: RequestSource, **kwargs) -> Awaitable[ResponseResult]:
        return self.request("HEAD", source, **kwargs)

    def get(self, source: RequestSource, **kwargs) -> Awaitable[ResponseResult]:
        return self.request("GET", source, **kwargs)

    def post(self, source: RequestSource, **kwargs) -> Awaitable[ResponseResult]:
        return self.request("POST", source, **kwargs)

    def put(self, source: RequestSource, **kwargs) -> Awaitable[ResponseResult]:
        return self.request("PUT", source, **kwargs)

    def delete(self, source: RequestSource, **kwargs) -> Awaitable[ResponseResult]:
        return self.request("DELETE", source, **kwargs)

    def patch(self, source: RequestSource, **kwargs) -> Awaitable[ResponseResult]:
        return self.request("PATCH", source, **kwargs)

    def options(self, source: RequestSource, **kwargs) -> Awaitable[ResponseResult]:
        return self.request("OPTIONS", source, **kwargs)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def execute(
        self,
        descriptor: RequestDescriptor,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ResponseResult:
        """Run an already-normalised descriptor through the pipeline.

        States: fetching → evaluating redirect (repeat) → decoding → done;
        any failure exit moves the chain to failed and raises a classified
        error carrying the URL active at that point.
        """
        chain = RedirectChainState.start(descriptor)
        with self._scope.track(cancel_token) as token:
            try:
                result = await self._run_chain(descriptor, chain, token)
            except ClassifiedError as exc:
                logger.info(
                    "request failed",
                    extra={
                        "method": descriptor.method,
                        "error": exc.to_dict(),
                        "trail": format_audit_trail(chain.hops),
                    },
                )
                raise
        logger.info(
            "request complete",
            extra={
                "method": descriptor.method,
                "url": chain.original_url,
                "final_url": chain.current_url,
                "status": result.code,
                "redirects": chain.hop_count,
                "bytes": len(result.body),
            },
        )
        return result

    async def _run_chain(
        self,
        descriptor: RequestDescriptor,
        chain: RedirectChainState,
        token: CancellationToken,
    ) -> ResponseResult:
        resolver = RedirectResolver(
            self._adapter, policy=self._redirect_policy, cancel_token=token
        )
        response, chain = await resolver.resolve(descriptor, chain)

        chain.state = ResolverState.DECODING
        try:
            body, saved_to = await self._read_body(response, descriptor, chain)
        except ClassifiedError:
            chain.state = ResolverState.FAILED
            raise
        except CLASSIFIABLE_EXCEPTIONS as exc:
            chain.state = ResolverState.FAILED
            raise classify_exception(exc, chain.current_url) from exc
        finally:
            await response.aclose()

        chain.state = ResolverState.DONE
        return ResponseResult(
            code=response.status,
            headers=httpx.Headers(response.headers),
            url=chain.current_url,
            body=body,
            method=chain.method,
            redirects=tuple(chain.hops),
            file=saved_to,
        )

    async def _read_body(
        self,
        response: RawResponse,
        descriptor: RequestDescriptor,
        chain: RedirectChainState,
    ) -> Tuple[bytes, Optional[Path]]:
        decoder = ContentDecoder.for_response(
            response.headers,
            compression=descriptor.compression,
            max_body=descriptor.max_body,
            url=chain.current_url,
        )

        if descriptor.file is not None:
            return b"", await self._save_body(response, decoder, descriptor.file)

        chunks = []
        async for raw in response.iter_raw():
            chunks.append(decoder.decode(raw))
        chunks.append(decoder.flush())
        return b"".join(chunks), None

    async def _save_body(
        self, response: RawResponse, decoder: ContentDecoder, destination: Path
    ) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        part_path = destination.with_name(destination.name + ".part")
        try:
            with part_path.open("wb") as handle:
                async for raw in response.iter_raw():
                    handle.write(decoder.decode(raw))
                handle.write(decoder.flush())
            os.replace(part_path, destination)
        except BaseException:
            part_path.unlink(missing_ok=True)
            raise
        logger.debug(
            "response body saved",
            extra={"path": str(destination), "bytes": decoder.decoded_bytes},
        )
        return destination


__all__ = [
    "ResponseResult",
    "Completion",
    "CompletionCallback",
    "RequestOrchestrator",
    "completion_callback",
]
