# === NAVMAP v1 ===
# {
#   "module": "HttpGet.errors",
#   "purpose": "Classified error hierarchy and exception-to-error mapping",
#   "sections": [
#     {
#       "id": "errorkind",
#       "name": "ErrorKind",
#       "anchor": "class-errorkind",
#       "kind": "class"
#     },
#     {
#       "id": "classifiederror",
#       "name": "ClassifiedError",
#       "anchor": "class-classifiederror",
#       "kind": "class"
#     },
#     {
#       "id": "classify-exception",
#       "name": "classify_exception",
#       "anchor": "function-classify-exception",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared by request normalisation, redirects and transport.

A request can fail for reasons that originate in very different layers: the
caller handed over a malformed options structure, the resolver could not find
the host, the remote server sent a broken redirect, or the socket/TLS layer
gave up. This module folds all of them into one shape, :class:`ClassifiedError`,
carrying a ``kind``, a ``code`` and the ``url`` active when the failure
happened, so callers can react to the category without caring which library
raised the underlying exception.
"""

from __future__ import annotations

import errno
import socket
import ssl
import zlib
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Union

import httpx

__all__ = [
    "ErrorKind",
    "HttpGetError",
    "ClassifiedError",
    "InvalidInputError",
    "NameResolutionError",
    "RedirectError",
    "MissingLocationHeader",
    "MaxRedirectsExceeded",
    "TransportFailure",
    "ContentDecodingError",
    "BodyTooLarge",
    "RequestCancelled",
    "UnsafeRedirectTarget",
    "CLASSIFIABLE_EXCEPTIONS",
    "classify_exception",
    "MISSING_URL_MESSAGE",
]

#: Message raised when an options structure lacks a ``url`` field
MISSING_URL_MESSAGE = "The options object requires an input URL value."

ErrorCode = Union[int, str, None]


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""

    INVALID_INPUT = "InvalidInput"
    NAME_RESOLUTION_FAILURE = "NameResolutionFailure"
    REDIRECT_WITHOUT_LOCATION = "RedirectWithoutLocation"
    REDIRECT_LOOP = "RedirectLoop"
    TRANSPORT_FAILURE = "TransportFailure"


class HttpGetError(RuntimeError):
    """Base exception for every failure raised by the package."""


class ClassifiedError(HttpGetError):
    """Uniform failure value carrying a kind, a code and the active URL."""

    kind: ErrorKind = ErrorKind.TRANSPORT_FAILURE

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode = None,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.url = url

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly view used by logging and the CLI."""

        return {
            "kind": self.kind.value,
            "code": self.code,
            "url": self.url,
            "message": self.message,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(kind={self.kind.value!r}, code={self.code!r}, "
            f"url={self.url!r}, message={self.message!r})"
        )


class InvalidInputError(ClassifiedError, ValueError):
    """Raised synchronously when caller input cannot form a request."""

    kind = ErrorKind.INVALID_INPUT


class NameResolutionError(ClassifiedError):
    """Raised when a hostname is malformed or cannot be resolved."""

    kind = ErrorKind.NAME_RESOLUTION_FAILURE


class RedirectError(ClassifiedError):
    """Base exception for redirect handling errors."""


class MissingLocationHeader(RedirectError):
    """Redirect response missing Location header."""

    kind = ErrorKind.REDIRECT_WITHOUT_LOCATION

    def __init__(self, url: str, status: int) -> None:
        super().__init__(
            f"Redirect response from {url} (status {status}) missing Location header",
            code=status,
            url=url,
        )


class MaxRedirectsExceeded(RedirectError):
    """Redirect chain exceeds maximum allowed hops."""

    kind = ErrorKind.REDIRECT_LOOP

    def __init__(self, url: str, status: int, max_hops: int) -> None:
        super().__init__(
            f"Redirect loop detected after {max_hops} requests.",
            code=status,
            url=url,
        )
        self.max_hops = max_hops


class TransportFailure(ClassifiedError):
    """Raised for network, TLS and payload failures below the redirect layer."""

    kind = ErrorKind.TRANSPORT_FAILURE


class ContentDecodingError(TransportFailure):
    """Raised when a compressed response body cannot be inflated."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message, code="EDECODE", url=url)


class BodyTooLarge(TransportFailure):
    """Raised when the decoded body grows past the configured ceiling."""

    def __init__(self, limit: int, *, url: Optional[str] = None) -> None:
        super().__init__(
            f"Response body exceeded the maximum allowed size of {limit} bytes.",
            code="EMAXBODY",
            url=url,
        )
        self.limit = limit


class RequestCancelled(TransportFailure):
    """Raised when the caller abandons a request mid-chain."""

    def __init__(self, *, url: Optional[str] = None, reason: Optional[str] = None) -> None:
        message = f"The request was cancelled: {reason}" if reason else "The request was cancelled."
        super().__init__(message, code="ECANCELED", url=url)
        self.reason = reason


class UnsafeRedirectTarget(TransportFailure):
    """Redirect target is not allowed by the redirect policy."""

    def __init__(self, source_url: str, target_url: str, reason: str) -> None:
        super().__init__(
            f"Unsafe redirect from {source_url} to {target_url}: {reason}",
            code="EUNSAFEREDIRECT",
            url=source_url,
        )
        self.target_url = target_url
        self.reason = reason


# ============================================================================
# Classification
# ============================================================================


#: Low-level failures that classify_exception knows how to map
CLASSIFIABLE_EXCEPTIONS = (httpx.HTTPError, httpx.InvalidURL, OSError, zlib.error, UnicodeError)


def _resolver_token(exc: socket.gaierror) -> str:
    not_found = {
        code
        for code in (
            getattr(socket, "EAI_NONAME", None),
            getattr(socket, "EAI_NODATA", None),
        )
        if code is not None
    }
    if exc.errno in not_found:
        return "ENOTFOUND"
    if exc.errno == getattr(socket, "EAI_AGAIN", None):
        return "EAI_AGAIN"
    return "EAI_FAIL"


def _iter_causes(exc: BaseException) -> Iterator[BaseException]:
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def classify_exception(exc: BaseException, url: Optional[str]) -> ClassifiedError:
    """Map a low-level failure onto the classified error taxonomy.

    Args:
        exc: Exception raised while performing a hop or decoding its body.
        url: URL active at the point of failure.

    Returns:
        A :class:`ClassifiedError` instance. Already-classified errors are
        returned unchanged.

    Raises:
        Exception: ``exc`` itself when it is not a network, TLS or codec
            failure (programming errors are never disguised).
    """

    if isinstance(exc, ClassifiedError):
        return exc
    if not isinstance(exc, CLASSIFIABLE_EXCEPTIONS):
        raise exc

    message = str(exc) or exc.__class__.__name__

    if isinstance(exc, httpx.TimeoutException):
        return TransportFailure(message, code="ETIMEDOUT", url=url)
    if isinstance(exc, (httpx.DecodingError, zlib.error)):
        return ContentDecodingError(message, url=url)
    if isinstance(exc, httpx.InvalidURL):
        return TransportFailure(message, code="EINVALIDURL", url=url)

    for cause in _iter_causes(exc):
        if isinstance(cause, socket.gaierror):
            return NameResolutionError(message, code=_resolver_token(cause), url=url)
        if isinstance(cause, UnicodeError):
            # the idna codec rejects empty or oversized labels
            return NameResolutionError(message, code="EBADNAME", url=url)
        if isinstance(cause, ssl.SSLCertVerificationError):
            return TransportFailure(message, code="CERT_VERIFY_FAILED", url=url)
        if isinstance(cause, ssl.SSLError):
            return TransportFailure(message, code="ESSL", url=url)
        if isinstance(cause, OSError) and cause.errno in errno.errorcode:
            return TransportFailure(message, code=errno.errorcode[cause.errno], url=url)

    if isinstance(exc, httpx.ConnectError):
        code = "ECONNECT"
    elif isinstance(exc, httpx.ReadError):
        code = "EREAD"
    elif isinstance(exc, httpx.WriteError):
        code = "EWRITE"
    elif isinstance(exc, httpx.ProtocolError):
        code = "EPROTO"
    elif isinstance(exc, httpx.ProxyError):
        code = "EPROXY"
    else:
        code = "ETRANSPORT"
    return TransportFailure(message, code=code, url=url)
