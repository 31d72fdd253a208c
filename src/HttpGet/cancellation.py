# === NAVMAP v1 ===
# {
#   "module": "HttpGet.cancellation",
#   "purpose": "Cooperative cancellation for in-flight redirect chains",
#   "sections": [
#     {
#       "id": "cancellationtoken",
#       "name": "CancellationToken",
#       "anchor": "class-cancellationtoken",
#       "kind": "class"
#     },
#     {
#       "id": "cancellationscope",
#       "name": "CancellationScope",
#       "anchor": "class-cancellationscope",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Cooperative cancellation primitives for request orchestration.

A caller that abandons a request (a surrounding timeout, a shutdown) flips a
:class:`CancellationToken`; the redirect resolver calls
:meth:`CancellationToken.raise_if_cancelled` before every hop and stops
issuing new exchanges. :class:`CancellationScope` tracks the tokens of every
request an orchestrator has in flight so they can be stopped together.

Tokens are safe to flip from another thread, so a synchronous supervisor can
stop requests running on an event loop it does not own.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Set

from HttpGet.errors import RequestCancelled


class CancellationToken:
    """Thread-safe flag checked between redirect hops.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel("shutting down")
        >>> token.is_cancelled(), token.reason
        (True, 'shutting down')
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        """Request cancellation; the first reason given is kept."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self, url: Optional[str] = None) -> None:
        """Raise :class:`~HttpGet.errors.RequestCancelled` once cancelled.

        Args:
            url: URL of the hop that would have been issued next.
        """
        if self._event.is_set():
            raise RequestCancelled(url=url, reason=self._reason)


class CancellationScope:
    """Set of tokens belonging to the requests one orchestrator runs."""

    def __init__(self) -> None:
        self._tokens: Set[CancellationToken] = set()
        self._lock = threading.Lock()

    @contextmanager
    def track(self, token: Optional[CancellationToken] = None) -> Iterator[CancellationToken]:
        """Register ``token`` (or a fresh one) for the duration of a request."""

        token = token or CancellationToken()
        with self._lock:
            self._tokens.add(token)
        try:
            yield token
        finally:
            with self._lock:
                self._tokens.discard(token)

    def cancel_all(self, reason: Optional[str] = None) -> None:
        """Cancel every tracked token."""
        with self._lock:
            tokens = list(self._tokens)
        for token in tokens:
            token.cancel(reason)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)


__all__ = ["CancellationToken", "CancellationScope"]
