"""Error taxonomy and low-level failure classification."""

import socket
import ssl
import zlib

import httpx
import pytest

from HttpGet.errors import (
    ClassifiedError,
    ContentDecodingError,
    ErrorKind,
    InvalidInputError,
    MaxRedirectsExceeded,
    MissingLocationHeader,
    NameResolutionError,
    TransportFailure,
    classify_exception,
)
from tests.fixtures.http_mocking import (
    connection_refused,
    dns_not_found,
    untrusted_certificate,
)

URL = "http://foo.bar/"


def _raised_by(handler):
    request = httpx.Request("HEAD", URL)
    with pytest.raises(httpx.HTTPError) as excinfo:
        handler(request)
    return excinfo.value


def _chained(outer, inner):
    try:
        try:
            raise inner
        except Exception as exc:
            raise outer from exc
    except Exception as exc:
        return exc


class TestTaxonomy:
    def test_kinds(self):
        assert InvalidInputError("x").kind == ErrorKind.INVALID_INPUT
        assert NameResolutionError("x").kind == ErrorKind.NAME_RESOLUTION_FAILURE
        assert MissingLocationHeader(URL, 301).kind == ErrorKind.REDIRECT_WITHOUT_LOCATION
        assert MaxRedirectsExceeded(URL, 301, 10).kind == ErrorKind.REDIRECT_LOOP
        assert TransportFailure("x").kind == ErrorKind.TRANSPORT_FAILURE

    def test_kind_values_are_stable_names(self):
        assert [kind.value for kind in ErrorKind] == [
            "InvalidInput",
            "NameResolutionFailure",
            "RedirectWithoutLocation",
            "RedirectLoop",
            "TransportFailure",
        ]

    def test_loop_message_and_fields(self):
        error = MaxRedirectsExceeded(URL, 302, 10)
        assert error.message == "Redirect loop detected after 10 requests."
        assert error.code == 302
        assert error.url == URL

    def test_to_dict(self):
        error = MissingLocationHeader(URL, 301)
        assert error.to_dict() == {
            "kind": "RedirectWithoutLocation",
            "code": 301,
            "url": URL,
            "message": error.message,
        }
        assert "RedirectWithoutLocation" in repr(error)

    def test_invalid_input_is_value_error(self):
        assert issubclass(InvalidInputError, ValueError)
        assert issubclass(InvalidInputError, ClassifiedError)


class TestClassifyException:
    def test_dns_not_found(self):
        error = classify_exception(_raised_by(dns_not_found), URL)

        assert isinstance(error, NameResolutionError)
        assert error.code == "ENOTFOUND"
        assert error.url == URL

    @pytest.mark.parametrize(
        "errno_name,expected",
        [("EAI_AGAIN", "EAI_AGAIN"), ("EAI_FAIL", "EAI_FAIL")],
    )
    def test_other_resolver_codes(self, errno_name, expected):
        if not hasattr(socket, errno_name):
            pytest.skip(f"{errno_name} not available on this platform")
        exc = _chained(
            httpx.ConnectError("lookup failed"),
            socket.gaierror(getattr(socket, errno_name), "lookup failed"),
        )
        assert classify_exception(exc, URL).code == expected

    def test_bad_hostname_from_idna(self):
        exc = _chained(httpx.ConnectError("bad name"), UnicodeError("label empty or too long"))
        error = classify_exception(exc, "http://.foo.bar/")

        assert error.kind == ErrorKind.NAME_RESOLUTION_FAILURE
        assert error.code == "EBADNAME"
        assert error.url == "http://.foo.bar/"

    def test_untrusted_certificate(self):
        error = classify_exception(_raised_by(untrusted_certificate), "https://127.0.0.1/")

        assert error.kind == ErrorKind.TRANSPORT_FAILURE
        assert error.code == "CERT_VERIFY_FAILED"

    def test_other_ssl_error(self):
        exc = _chained(httpx.ConnectError("handshake"), ssl.SSLError(1, "wrong version number"))
        assert classify_exception(exc, URL).code == "ESSL"

    def test_connection_refused(self):
        error = classify_exception(_raised_by(connection_refused), URL)

        assert error.kind == ErrorKind.TRANSPORT_FAILURE
        assert error.code == "ECONNREFUSED"

    def test_timeout(self):
        error = classify_exception(httpx.ReadTimeout("timed out"), URL)
        assert error.code == "ETIMEDOUT"

    def test_zlib_error(self):
        error = classify_exception(zlib.error("incorrect header check"), URL)
        assert isinstance(error, ContentDecodingError)
        assert error.code == "EDECODE"

    @pytest.mark.parametrize(
        "exc,expected",
        [
            (httpx.ConnectError("nope"), "ECONNECT"),
            (httpx.ReadError("nope"), "EREAD"),
            (httpx.WriteError("nope"), "EWRITE"),
            (httpx.RemoteProtocolError("nope"), "EPROTO"),
            (httpx.ProxyError("nope"), "EPROXY"),
            (httpx.UnsupportedProtocol("nope"), "ETRANSPORT"),
        ],
    )
    def test_fallback_codes(self, exc, expected):
        assert classify_exception(exc, URL).code == expected

    def test_classified_error_passes_through(self):
        error = MissingLocationHeader(URL, 301)
        assert classify_exception(error, "http://other/") is error

    def test_programming_errors_are_not_disguised(self):
        with pytest.raises(KeyError):
            classify_exception(KeyError("missing"), URL)
