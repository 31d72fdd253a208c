# === NAVMAP v1 ===
# {
#   "module": "HttpGet.network.decoding",
#   "purpose": "Incremental gzip/deflate decoding of response bodies.",
#   "sections": [
#     {
#       "id": "contentdecoder",
#       "name": "ContentDecoder",
#       "anchor": "class-contentdecoder",
#       "kind": "class"
#     },
#     {
#       "id": "negotiated-encoding",
#       "name": "negotiated_encoding",
#       "anchor": "function-negotiated-encoding",
#       "kind": "function"
#     },
#     {
#       "id": "gzip-inflate",
#       "name": "gzip_inflate",
#       "anchor": "function-gzip-inflate",
#       "kind": "function"
#     },
#     {
#       "id": "deflate-inflate",
#       "name": "deflate_inflate",
#       "anchor": "function-deflate-inflate",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Content decoding for response bodies.

Bodies arrive from the transport with their content coding intact. The
decoder reverses ``gzip`` and ``deflate`` chunk by chunk, enforcing an
optional ceiling on the decoded size. Any other coding passes through
unchanged, as does every body when compression was disabled for the request.

``deflate`` is accepted both zlib-wrapped (RFC 1950)
and raw (RFC 1951, what several servers actually send).
"""

from __future__ import annotations

import logging
import zlib
from typing import Optional

import httpx

from HttpGet.errors import BodyTooLarge, ContentDecodingError
from HttpGet.network.policy import SUPPORTED_CONTENT_ENCODINGS

logger = logging.getLogger(__name__)


def negotiated_encoding(headers: httpx.Headers, *, compression: bool = True) -> Optional[str]:
    """Return the coding to reverse for a response, or None for pass-through."""

    if not compression:
        return None
    raw = headers.get("content-encoding")
    if not raw:
        return None
    codings = [item.strip().lower() for item in raw.split(",")]
    codings = [item for item in codings if item and item != "identity"]
    if len(codings) != 1:
        if codings:
            logger.debug("Stacked content codings left undecoded", extra={"codings": codings})
        return None
    coding = codings[0]
    if coding not in SUPPORTED_CONTENT_ENCODINGS:
        return None
    return "gzip" if coding == "x-gzip" else coding


class ContentDecoder:
    """Incremental decoder for one response body.

    Args:
        encoding: ``"gzip"``, ``"deflate"`` or None for pass-through.
        max_body: Optional ceiling for the decoded size in bytes.
        url: URL reported on failures.
    """

    def __init__(
        self,
        encoding: Optional[str] = None,
        *,
        max_body: Optional[int] = None,
        url: Optional[str] = None,
    ) -> None:
        self.encoding = encoding
        self.max_body = max_body
        self.url = url
        self.decoded_bytes = 0
        self._seen_data = False
        self._decompressor = self._new_decompressor()
        self._raw_deflate = False

    @classmethod
    def for_response(
        cls,
        headers: httpx.Headers,
        *,
        compression: bool = True,
        max_body: Optional[int] = None,
        url: Optional[str] = None,
    ) -> "ContentDecoder":
        return cls(negotiated_encoding(headers, compression=compression), max_body=max_body, url=url)

    @property
    def active(self) -> bool:
        return self.encoding is not None

    def _new_decompressor(self):
        if self.encoding == "gzip":
            return zlib.decompressobj(zlib.MAX_WBITS | 16)
        if self.encoding == "deflate":
            return zlib.decompressobj()
        return None

    def _account(self, data: bytes) -> bytes:
        self.decoded_bytes += len(data)
        if self.max_body is not None and self.decoded_bytes > self.max_body:
            raise BodyTooLarge(self.max_body, url=self.url)
        return data

    def _output_limit(self) -> int:
        # zlib reads 0 as unbounded; one byte past the ceiling is enough to trip it
        if self.max_body is None:
            return 0
        return max(self.max_body - self.decoded_bytes, 0) + 1

    def decode(self, chunk: bytes) -> bytes:
        """Decode one chunk of the raw body.

        Raises:
            ContentDecodingError: If the compressed stream is corrupt.
            BodyTooLarge: If the decoded size passes ``max_body``.
        """
        if not chunk:
            return b""
        if self._decompressor is None:
            return self._account(chunk)

        first_chunk = not self._seen_data
        self._seen_data = True
        decoded_before = self.decoded_bytes
        try:
            return self._inflate(chunk)
        except zlib.error as exc:
            if self.encoding == "deflate" and first_chunk and not self._raw_deflate:
                # no zlib header: fall back to a raw deflate stream
                self._raw_deflate = True
                self.decoded_bytes = decoded_before
                self._decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
                try:
                    return self._inflate(chunk)
                except zlib.error as raw_exc:
                    raise ContentDecodingError(
                        f"Failed to decode deflate body: {raw_exc}", url=self.url
                    ) from raw_exc
            raise ContentDecodingError(
                f"Failed to decode {self.encoding} body: {exc}", url=self.url
            ) from exc

    def _inflate(self, chunk: bytes) -> bytes:
        """Inflate ``chunk`` in bounded steps, accounting each step."""

        pieces = []
        data = chunk
        while data:
            pieces.append(self._account(self._decompressor.decompress(data, self._output_limit())))
            if self._decompressor.eof:
                data = self._decompressor.unused_data
                if self.encoding != "gzip" or not data:
                    break
                # concatenated gzip members
                self._decompressor = self._new_decompressor()
            else:
                data = self._decompressor.unconsumed_tail
        return b"".join(pieces)

    def flush(self) -> bytes:
        """Finish decoding; a truncated compressed stream is an error."""

        if self._decompressor is None or not self._seen_data:
            return b""
        try:
            tail = self._decompressor.flush()
        except zlib.error as exc:
            raise ContentDecodingError(
                f"Failed to decode {self.encoding} body: {exc}", url=self.url
            ) from exc
        if not self._decompressor.eof:
            raise ContentDecodingError(
                f"Truncated {self.encoding} body", url=self.url
            )
        return self._account(tail)


def gzip_inflate(data: bytes) -> bytes:
    """Inflate a complete gzip payload."""

    decoder = ContentDecoder("gzip")
    return decoder.decode(data) + decoder.flush()


def deflate_inflate(data: bytes) -> bytes:
    """Inflate a complete deflate payload (zlib-wrapped or raw)."""

    decoder = ContentDecoder("deflate")
    return decoder.decode(data) + decoder.flush()


__all__ = [
    "ContentDecoder",
    "negotiated_encoding",
    "gzip_inflate",
    "deflate_inflate",
]
