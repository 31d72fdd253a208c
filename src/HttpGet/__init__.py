"""HTTP(S) request orchestration over HTTPX.

Accepts a bare URL or an options structure, normalises it, follows redirects
with loop detection, decodes gzip/deflate bodies, applies TLS trust policy
and hands back a single outcome: a :class:`ResponseResult` or a
:class:`ClassifiedError`.

Example:
    >>> import asyncio
    >>> from HttpGet import get
    >>> result = asyncio.run(get("example.org"))
    >>> result.code, result.url
    (200, 'http://example.org')
"""

from HttpGet.api import delete, get, head, options, patch, post, put, request
from HttpGet.cancellation import CancellationToken
from HttpGet.descriptor import RequestDescriptor, normalize_request
from HttpGet.errors import (
    BodyTooLarge,
    ClassifiedError,
    ContentDecodingError,
    ErrorKind,
    HttpGetError,
    InvalidInputError,
    MaxRedirectsExceeded,
    MissingLocationHeader,
    NameResolutionError,
    RedirectError,
    RequestCancelled,
    TransportFailure,
    UnsafeRedirectTarget,
)
from HttpGet.orchestrator import Completion, RequestOrchestrator, ResponseResult
from HttpGet.settings import ClientSettings, RequestOptions, TLSPolicy
from HttpGet.version import __version__

__all__ = [
    "__version__",
    # Entry points
    "request",
    "head",
    "get",
    "post",
    "put",
    "delete",
    "patch",
    "options",
    "RequestOrchestrator",
    "CancellationToken",
    # Values
    "ResponseResult",
    "Completion",
    "RequestDescriptor",
    "normalize_request",
    # Configuration
    "ClientSettings",
    "RequestOptions",
    "TLSPolicy",
    # Errors
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
]
