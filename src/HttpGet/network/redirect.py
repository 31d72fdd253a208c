# === NAVMAP v1 ===
# {
#   "module": "HttpGet.network.redirect",
#   "purpose": "Redirect resolution: iterative hop state machine with a hop ceiling.",
#   "sections": [
#     {
#       "id": "resolverstate",
#       "name": "ResolverState",
#       "anchor": "class-resolverstate",
#       "kind": "class"
#     },
#     {
#       "id": "redirectchainstate",
#       "name": "RedirectChainState",
#       "anchor": "class-redirectchainstate",
#       "kind": "class"
#     },
#     {
#       "id": "redirectpolicy",
#       "name": "RedirectPolicy",
#       "anchor": "class-redirectpolicy",
#       "kind": "class"
#     },
#     {
#       "id": "redirectresolver",
#       "name": "RedirectResolver",
#       "anchor": "class-redirectresolver",
#       "kind": "class"
#     },
#     {
#       "id": "redirect-method",
#       "name": "redirect_method",
#       "anchor": "function-redirect-method",
#       "kind": "function"
#     },
#     {
#       "id": "format-audit-trail",
#       "name": "format_audit_trail",
#       "anchor": "function-format-audit-trail",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Redirect handling: manual redirect following with a hard hop ceiling.

HTTPX auto-redirect is disabled on every client. This module drives the
transport adapter across a redirect chain, one hop at a time, until a
terminal (non-redirect) response arrives, a redirect is malformed, or the
hop ceiling is exceeded.

Design:
- **Iterative**: an explicit loop over :class:`RedirectChainState`; no
  recursion, so chain length never grows the call stack.
- **Strictly sequential**: hop N+1 is issued only after hop N is classified.
- **Count-based loop detection**: more than ``max_redirects`` followed hops
  fails with :class:`~HttpGet.errors.MaxRedirectsExceeded`; no visited set.
- **Audit trail**: every hop is recorded as ``(url, status)``.

Example:
    >>> resolver = RedirectResolver(adapter)
    >>> response, chain = await resolver.resolve(descriptor)
    >>> format_audit_trail(chain.hops)
    'http://a/ (301) → http://b/ (200)'
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import httpx

from HttpGet.cancellation import CancellationToken
from HttpGet.descriptor import RequestDescriptor
from HttpGet.errors import (
    CLASSIFIABLE_EXCEPTIONS,
    ClassifiedError,
    MaxRedirectsExceeded,
    MissingLocationHeader,
    RequestCancelled,
    UnsafeRedirectTarget,
    classify_exception,
)
from HttpGet.network.client import RawResponse, TransportAdapter
from HttpGet.network.policy import (
    METHOD_PRESERVING_REDIRECTS,
    REDIRECT_STATUS_CODES,
    SUPPORTED_SCHEMES,
)

logger = logging.getLogger(__name__)

_BODY_HEADERS = ("content-type", "content-length", "transfer-encoding")


# ============================================================================
# Chain State
# ============================================================================


class ResolverState(str, Enum):
    """States of one logical request."""

    FETCHING = "fetching"
    EVALUATING_REDIRECT = "evaluating_redirect"
    DECODING = "decoding"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RedirectChainState:
    """Mutable accumulator for one redirect chain; never shared across requests."""

    original_url: str
    current_url: str
    method: str
    headers: httpx.Headers
    body: Optional[bytes] = None
    auth: Optional[Tuple[str, str]] = None
    hop_count: int = 0
    state: ResolverState = ResolverState.FETCHING
    hops: List[Tuple[str, int]] = field(default_factory=list)

    @classmethod
    def start(cls, descriptor: RequestDescriptor) -> "RedirectChainState":
        return cls(
            original_url=descriptor.url,
            current_url=descriptor.url,
            method=descriptor.method,
            headers=httpx.Headers(descriptor.headers),
            body=descriptor.body,
            auth=descriptor.auth,
        )


# ============================================================================
# Redirect Validation
# ============================================================================


class RedirectPolicy:
    """Policy for resolving and validating redirect targets.

    The default policy accepts any ``http``/``https`` target. Subclass and
    override :meth:`validate_target` to restrict hosts or schemes further.
    """

    def resolve_target(self, source_url: str, location: str) -> str:
        """Resolve a Location value against the current URL, dropping fragments.

        Raises:
            UnsafeRedirectTarget: If the location cannot be parsed.
        """
        try:
            target = httpx.URL(source_url).join(location.strip())
        except httpx.InvalidURL as exc:
            raise UnsafeRedirectTarget(
                source_url, location, f"Invalid redirect location: {exc}"
            ) from exc
        return str(target.copy_with(fragment=None))

    def validate_target(self, source_url: str, target_url: str) -> bool:
        """Validate a redirect target URL.

        Raises:
            UnsafeRedirectTarget: If target fails validation
        """
        scheme = httpx.URL(target_url).scheme
        if scheme not in SUPPORTED_SCHEMES:
            raise UnsafeRedirectTarget(source_url, target_url, f"Scheme not allowed: {scheme}")
        return True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def redirect_method(method: str, status: int) -> str:
    """Return the method for the next hop.

    - 307/308 → keep method and body
    - 303 → GET (HEAD stays HEAD)
    - 301/302 → GET for methods carrying a body, otherwise unchanged
    """
    if status in METHOD_PRESERVING_REDIRECTS:
        return method
    if status == 303:
        return "HEAD" if method == "HEAD" else "GET"
    if method in {"POST", "PUT", "PATCH", "DELETE"}:
        return "GET"
    return method


# ============================================================================
# Redirect Following
# ============================================================================


class RedirectResolver:
    """Drive a :class:`TransportAdapter` across a redirect chain.

    Args:
        adapter: Transport used for every hop.
        policy: Redirect target policy (default: :class:`RedirectPolicy`).
        cancel_token: Checked before every hop; once cancelled no further
            exchange is issued.
    """

    def __init__(
        self,
        adapter: TransportAdapter,
        *,
        policy: Optional[RedirectPolicy] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> None:
        self._adapter = adapter
        self._policy = policy or RedirectPolicy()
        self._cancel_token = cancel_token

    async def resolve(
        self,
        descriptor: RequestDescriptor,
        chain: Optional[RedirectChainState] = None,
    ) -> Tuple[RawResponse, RedirectChainState]:
        """Follow redirects until a terminal response.

        Args:
            descriptor: Normalised request.
            chain: Optional pre-built chain state (the orchestrator keeps a
                reference to report the active URL on failure).

        Returns:
            Tuple of (terminal_response, chain). The response body is unread
            and must be closed by the caller.

        Raises:
            MissingLocationHeader: Redirect status without ``Location``.
            MaxRedirectsExceeded: More than ``descriptor.max_redirects`` hops.
            UnsafeRedirectTarget: Redirect target rejected by the policy.
            RequestCancelled: Cancellation requested between hops.
            ClassifiedError: Any transport failure, already classified.
        """
        chain = chain or RedirectChainState.start(descriptor)

        while True:
            chain.state = ResolverState.FETCHING
            if self._cancel_token is not None:
                try:
                    self._cancel_token.raise_if_cancelled(chain.current_url)
                except RequestCancelled:
                    chain.state = ResolverState.FAILED
                    raise

            try:
                response = await self._adapter.execute(
                    chain.method,
                    chain.current_url,
                    chain.headers,
                    descriptor,
                    body=chain.body,
                    auth=chain.auth,
                )
            except ClassifiedError:
                chain.state = ResolverState.FAILED
                raise
            except CLASSIFIABLE_EXCEPTIONS as exc:
                chain.state = ResolverState.FAILED
                raise classify_exception(exc, chain.current_url) from exc

            chain.hops.append((chain.current_url, response.status))
            chain.state = ResolverState.EVALUATING_REDIRECT

            if response.status not in REDIRECT_STATUS_CODES:
                logger.debug(
                    "Redirect following complete",
                    extra={"final_status": response.status, "hops": chain.hop_count},
                )
                return response, chain

            location = response.headers.get("location")
            await response.aclose()
            try:
                self._follow(chain, response.status, location, descriptor.max_redirects)
            except ClassifiedError:
                chain.state = ResolverState.FAILED
                raise

    def _follow(
        self,
        chain: RedirectChainState,
        status: int,
        location: Optional[str],
        max_redirects: int,
    ) -> None:
        if not location:
            raise MissingLocationHeader(chain.current_url, status)

        chain.hop_count += 1
        if chain.hop_count > max_redirects:
            logger.warning(
                "Redirect loop detected",
                extra={"url": chain.original_url, "hops": chain.hop_count - 1, "status": status},
            )
            raise MaxRedirectsExceeded(chain.original_url, status, max_redirects)

        target_url = self._policy.resolve_target(chain.current_url, location)
        try:
            self._policy.validate_target(chain.current_url, target_url)
        except UnsafeRedirectTarget as e:
            logger.warning(
                "Unsafe redirect detected",
                extra={
                    "source": chain.current_url,
                    "target": target_url,
                    "reason": e.reason,
                    "hops": chain.hop_count,
                },
            )
            raise

        next_method = redirect_method(chain.method, status)
        if next_method != chain.method and status not in METHOD_PRESERVING_REDIRECTS:
            chain.body = None
            for name in _BODY_HEADERS:
                if name in chain.headers:
                    del chain.headers[name]

        if httpx.URL(target_url).host != httpx.URL(chain.current_url).host:
            # credentials and Host overrides stay with the origin that received them
            for name in ("host", "authorization"):
                if name in chain.headers:
                    del chain.headers[name]
            chain.auth = None

        logger.debug(
            "Following redirect",
            extra={
                "from": chain.current_url,
                "to": target_url,
                "status": status,
                "hop": chain.hop_count,
                "method": next_method,
            },
        )
        chain.method = next_method
        chain.current_url = target_url


def format_audit_trail(audit_trail: List[Tuple[str, int]]) -> str:
    """Format audit trail for logging/display.

    Returns:
        Formatted string like "http://a (301) → http://b (200)"
    """
    return " → ".join(f"{url} ({status})" for url, status in audit_trail)


__all__ = [
    "ResolverState",
    "RedirectChainState",
    "RedirectPolicy",
    "RedirectResolver",
    "redirect_method",
    "format_audit_trail",
]
