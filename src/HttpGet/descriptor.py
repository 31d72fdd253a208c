# === NAVMAP v1 ===
# {
#   "module": "HttpGet.descriptor",
#   "purpose": "Request normalisation: caller input to immutable request descriptors",
#   "sections": [
#     {
#       "id": "requestdescriptor",
#       "name": "RequestDescriptor",
#       "anchor": "class-requestdescriptor",
#       "kind": "class"
#     },
#     {
#       "id": "normalize-url",
#       "name": "normalize_url",
#       "anchor": "function-normalize-url",
#       "kind": "function"
#     },
#     {
#       "id": "coerce-options",
#       "name": "coerce_options",
#       "anchor": "function-coerce-options",
#       "kind": "function"
#     },
#     {
#       "id": "normalize-request",
#       "name": "normalize_request",
#       "anchor": "function-normalize-request",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Request normalisation.

Turns a bare URL string or a partial options structure into a complete
:class:`RequestDescriptor`. Every failure here is raised synchronously as an
:class:`~HttpGet.errors.InvalidInputError`; nothing in this module touches the
network.

Example:
    >>> from HttpGet.settings import ClientSettings
    >>> descriptor = normalize_request("GET", "example.org/a#top", ClientSettings())
    >>> descriptor.url
    'http://example.org/a'
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

import httpx
from pydantic import ValidationError

from HttpGet.errors import MISSING_URL_MESSAGE, InvalidInputError
from HttpGet.network.policy import SUPPORTED_METHODS, SUPPORTED_SCHEMES
from HttpGet.settings import ClientSettings, RequestOptions, TLSPolicy

logger = logging.getLogger(__name__)

RequestSource = Union[str, Mapping[str, Any], RequestOptions]

_SCHEME_PATTERN = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*)://")


@dataclass(frozen=True)
class RequestDescriptor:
    """Normalised unit of work handed to the redirect resolver.

    Attributes:
        method: Upper-case HTTP method.
        url: Absolute URL with an explicit scheme and no fragment.
        headers: Case-insensitive request headers (caller entries verbatim).
        tls: Trust policy applied to HTTPS hops.
        compression: Whether response decompression is permitted.
        omit_user_agent: Strip the transport's default ``User-Agent``.
        timeout: Total per-hop timeout overriding the settings' phase budgets.
        max_body: Ceiling for the decoded body in bytes.
        max_redirects: Hop ceiling for this request.
        auth: Basic credentials as ``(user, password)``.
        proxy: Proxy URL for this request.
        body: Request payload.
        file: Destination path for the decoded body (GET only).
    """

    method: str
    url: str
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    tls: TLSPolicy = field(default_factory=TLSPolicy)
    compression: bool = True
    omit_user_agent: bool = False
    timeout: Optional[float] = None
    max_body: Optional[int] = None
    max_redirects: int = 10
    auth: Optional[Tuple[str, str]] = None
    proxy: Optional[str] = None
    body: Optional[bytes] = None
    file: Optional[Path] = None


def normalize_url(url: Optional[str]) -> str:
    """Return an absolute, fragment-free URL.

    A missing scheme defaults to ``http``. Only ``http`` and ``https`` are
    accepted.

    Raises:
        InvalidInputError: If the URL is empty, uses an unsupported scheme or
            does not parse.
    """

    if url is None:
        raise InvalidInputError(MISSING_URL_MESSAGE)
    candidate = url.strip().split("#", 1)[0]
    if not candidate:
        raise InvalidInputError(MISSING_URL_MESSAGE)

    match = _SCHEME_PATTERN.match(candidate)
    if match is None:
        candidate = f"http://{candidate}"
    elif match.group("scheme").lower() not in SUPPORTED_SCHEMES:
        raise InvalidInputError(
            f"Unsupported URL scheme '{match.group('scheme')}'", url=candidate
        )

    try:
        parsed = httpx.URL(candidate)
    except httpx.InvalidURL as exc:
        raise InvalidInputError(f"Invalid URL: {exc}", url=candidate) from exc
    if not parsed.host:
        raise InvalidInputError("The URL does not name a host.", url=candidate)
    return candidate


def coerce_options(source: RequestSource) -> RequestOptions:
    """Interpret a bare URL string, a mapping or a ready model as options."""

    if isinstance(source, RequestOptions):
        return source
    if isinstance(source, str):
        return RequestOptions(url=source)
    if isinstance(source, Mapping):
        try:
            return RequestOptions.model_validate(dict(source))
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid request options: {exc}") from exc
    raise InvalidInputError(
        f"Request input must be a URL string or an options mapping, not {type(source).__name__}"
    )


def normalize_request(
    method: str, source: RequestSource, settings: ClientSettings
) -> RequestDescriptor:
    """Build a :class:`RequestDescriptor` from caller input.

    Args:
        method: HTTP method name (case-insensitive).
        source: URL string, options mapping or :class:`RequestOptions`.
        settings: Client settings supplying defaults.

    Returns:
        The immutable descriptor for this call.

    Raises:
        InvalidInputError: For any caller contract violation, including an
            options structure without ``url``.
    """

    verb = method.upper()
    if verb not in SUPPORTED_METHODS:
        raise InvalidInputError(f"Unsupported HTTP method '{method}'")

    options = coerce_options(source)
    url = normalize_url(options.url)

    headers = httpx.Headers(options.headers)
    if options.no_compress:
        if "accept-encoding" in headers:
            logger.debug(
                "Dropping caller Accept-Encoding; compression disabled",
                extra={"url": url},
            )
            del headers["accept-encoding"]
    elif "accept-encoding" not in headers:
        headers["accept-encoding"] = settings.accept_encoding

    if not options.no_user_agent and "user-agent" not in headers:
        headers["user-agent"] = settings.user_agent

    if options.ca and options.no_ssl_verifier:
        logger.debug(
            "Both a CA list and noSslVerifier were supplied; verification is bypassed",
            extra={"url": url},
        )
    tls = TLSPolicy(
        ca=tuple(options.ca) if options.ca else None,
        verify=not options.no_ssl_verifier,
    )

    auth = None
    if options.auth is not None:
        user, password = options.auth.split(":", 1)
        auth = (user, password)

    body = options.body.encode("utf-8") if isinstance(options.body, str) else options.body

    if options.file is not None and verb != "GET":
        raise InvalidInputError("Saving the response to a file is only supported for GET.", url=url)

    return RequestDescriptor(
        method=verb,
        url=url,
        headers=headers,
        tls=tls,
        compression=not options.no_compress,
        omit_user_agent=options.no_user_agent,
        timeout=options.timeout,
        max_body=options.max_body if options.max_body is not None else settings.max_body_bytes,
        max_redirects=(
            options.max_redirects if options.max_redirects is not None else settings.max_redirects
        ),
        auth=auth,
        proxy=options.proxy,
        body=body,
        file=options.file,
    )


__all__ = [
    "RequestDescriptor",
    "RequestSource",
    "normalize_url",
    "coerce_options",
    "normalize_request",
]
