"""Tests for redirect resolution.

Tests cover:
- Terminal responses at hop 0 and after a chain
- Missing Location header
- Hop ceiling and loop detection
- Relative Location resolution and fragment stripping
- Method rewriting for 301/302/303/307/308
- Cross-host header scrubbing
- Cancellation between hops
- Unsafe redirect targets
"""

import asyncio

import httpx
import pytest

from HttpGet.cancellation import CancellationToken
from HttpGet.descriptor import normalize_request
from HttpGet.errors import (
    ErrorKind,
    MaxRedirectsExceeded,
    MissingLocationHeader,
    RequestCancelled,
    UnsafeRedirectTarget,
)
from HttpGet.network.client import TransportAdapter
from HttpGet.network.redirect import (
    RedirectChainState,
    RedirectPolicy,
    RedirectResolver,
    ResolverState,
    format_audit_trail,
    redirect_method,
)
from tests.fixtures.http_mocking import BASE_URL


def _resolve(settings, server, source, method="GET", **resolver_kwargs):
    descriptor = normalize_request(method, source, settings)
    chain = RedirectChainState.start(descriptor)

    async def _run():
        async with TransportAdapter(settings, transport=server.transport) as adapter:
            resolver = RedirectResolver(adapter, **resolver_kwargs)
            response, _ = await resolver.resolve(descriptor, chain)
            await response.aclose()
            return response

    try:
        return asyncio.run(_run()), chain
    except Exception as exc:
        exc.chain = chain
        raise


class TestTerminalResponses:
    def test_non_redirect_at_hop_zero(self, settings, reflecting_server):
        response, chain = _resolve(settings, reflecting_server, f"{BASE_URL}/")

        assert response.status == 200
        assert chain.hop_count == 0
        assert chain.current_url == f"{BASE_URL}/"
        assert chain.state == ResolverState.EVALUATING_REDIRECT

    def test_error_status_is_terminal(self, settings, reflecting_server):
        response, chain = _resolve(settings, reflecting_server, f"{BASE_URL}/nowhere")

        assert response.status == 404
        assert chain.hops == [(f"{BASE_URL}/nowhere", 404)]

    def test_not_modified_is_not_followed(self, settings, reflecting_server):
        reflecting_server.route("/cached", lambda request: httpx.Response(304))

        response, chain = _resolve(settings, reflecting_server, f"{BASE_URL}/cached")

        assert response.status == 304
        assert chain.hop_count == 0

    def test_single_redirect_updates_current_url(self, settings, reflecting_server):
        response, chain = _resolve(settings, reflecting_server, f"{BASE_URL}/redirect")

        assert response.status == 200
        assert chain.hop_count == 1
        assert chain.original_url == f"{BASE_URL}/redirect"
        assert chain.current_url == f"{BASE_URL}/"
        assert format_audit_trail(chain.hops) == (
            f"{BASE_URL}/redirect (301) → {BASE_URL}/ (200)"
        )


class TestRedirectFailures:
    def test_missing_location(self, settings, reflecting_server):
        url = f"{BASE_URL}/redirect-without-location"

        with pytest.raises(MissingLocationHeader) as excinfo:
            _resolve(settings, reflecting_server, url, method="HEAD")

        error = excinfo.value
        assert error.kind == ErrorKind.REDIRECT_WITHOUT_LOCATION
        assert error.code == 301
        assert error.url == url
        assert error.chain.state == ResolverState.FAILED

    def test_missing_location_reports_current_url_mid_chain(self, settings, reflecting_server):
        reflecting_server.route(
            "/hop", lambda request: httpx.Response(302, headers={"location": "/broken"})
        )
        reflecting_server.route("/broken", lambda request: httpx.Response(307))

        with pytest.raises(MissingLocationHeader) as excinfo:
            _resolve(settings, reflecting_server, f"{BASE_URL}/hop")

        assert excinfo.value.code == 307
        assert excinfo.value.url == f"{BASE_URL}/broken"

    def test_redirect_loop(self, settings, reflecting_server):
        url = f"{BASE_URL}/redirect-loop"

        with pytest.raises(MaxRedirectsExceeded) as excinfo:
            _resolve(settings, reflecting_server, url, method="HEAD")

        error = excinfo.value
        assert error.kind == ErrorKind.REDIRECT_LOOP
        assert str(error) == "Redirect loop detected after 10 requests."
        assert error.code == 301
        assert error.url == url
        # ten followed hops plus the one that tripped the ceiling
        assert len(reflecting_server.requests) == 11

    def test_exactly_ten_redirects_succeed(self, settings, reflecting_server):
        def countdown(request):
            remaining = int(request.url.params["n"])
            if remaining == 0:
                return httpx.Response(200)
            return httpx.Response(302, headers={"location": f"/countdown?n={remaining - 1}"})

        reflecting_server.route("/countdown", countdown)

        response, chain = _resolve(settings, reflecting_server, f"{BASE_URL}/countdown?n=10")

        assert response.status == 200
        assert chain.hop_count == 10
        assert chain.current_url == f"{BASE_URL}/countdown?n=0"

    def test_per_request_ceiling(self, settings, reflecting_server):
        with pytest.raises(MaxRedirectsExceeded) as excinfo:
            _resolve(
                settings,
                reflecting_server,
                {"url": f"{BASE_URL}/redirect-loop", "maxRedirects": 2},
            )

        assert str(excinfo.value) == "Redirect loop detected after 2 requests."
        assert len(reflecting_server.requests) == 3

    def test_zero_ceiling_refuses_any_redirect(self, settings, reflecting_server):
        with pytest.raises(MaxRedirectsExceeded):
            _resolve(settings, reflecting_server, {"url": f"{BASE_URL}/redirect", "maxRedirects": 0})

    def test_unsupported_scheme_target(self, settings, reflecting_server):
        reflecting_server.route(
            "/ftp", lambda request: httpx.Response(301, headers={"location": "ftp://example.org/"})
        )

        with pytest.raises(UnsafeRedirectTarget) as excinfo:
            _resolve(settings, reflecting_server, f"{BASE_URL}/ftp")

        assert excinfo.value.kind == ErrorKind.TRANSPORT_FAILURE
        assert excinfo.value.url == f"{BASE_URL}/ftp"

    def test_custom_policy_can_refuse_targets(self, settings, reflecting_server):
        class SameHostOnly(RedirectPolicy):
            def validate_target(self, source_url, target_url):
                if httpx.URL(source_url).host != httpx.URL(target_url).host:
                    raise UnsafeRedirectTarget(source_url, target_url, "cross-host")
                return True

        reflecting_server.route(
            "/away", lambda request: httpx.Response(302, headers={"location": "http://elsewhere/"})
        )

        with pytest.raises(UnsafeRedirectTarget):
            _resolve(settings, reflecting_server, f"{BASE_URL}/away", policy=SameHostOnly())

    def test_cancelled_token_stops_before_first_hop(self, settings, reflecting_server):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(RequestCancelled) as excinfo:
            _resolve(settings, reflecting_server, f"{BASE_URL}/", cancel_token=token)

        assert excinfo.value.code == "ECANCELED"
        assert reflecting_server.requests == []

    def test_cancellation_between_hops(self, settings, reflecting_server):
        token = CancellationToken()

        def cancel_then_redirect(request):
            token.cancel()
            return httpx.Response(301, headers={"location": "/"})

        reflecting_server.route("/cancel", cancel_then_redirect)

        with pytest.raises(RequestCancelled) as excinfo:
            _resolve(settings, reflecting_server, f"{BASE_URL}/cancel", cancel_token=token)

        assert excinfo.value.url == f"{BASE_URL}/"
        assert len(reflecting_server.requests) == 1


class TestLocationHandling:
    def test_relative_location_resolves_against_current_url(self, settings, reflecting_server):
        reflecting_server.route(
            "/a/b", lambda request: httpx.Response(302, headers={"location": "../path-reflect"})
        )

        response, chain = _resolve(settings, reflecting_server, f"{BASE_URL}/a/b")

        assert chain.current_url == f"{BASE_URL}/path-reflect"
        assert response.headers["path"] == "/path-reflect"

    def test_location_fragment_is_not_transmitted(self, settings, reflecting_server):
        reflecting_server.route(
            "/frag", lambda request: httpx.Response(302, headers={"location": "/path-reflect#x"})
        )

        response, chain = _resolve(settings, reflecting_server, f"{BASE_URL}/frag")

        assert chain.current_url == f"{BASE_URL}/path-reflect"
        assert "#" not in str(reflecting_server.requests[-1].url)

    def test_cross_host_redirect_drops_credentials(self, settings, reflecting_server):
        reflecting_server.route(
            "/leave",
            lambda request: httpx.Response(302, headers={"location": "http://other.example/"}),
        )

        _resolve(
            settings,
            reflecting_server,
            {
                "url": f"{BASE_URL}/leave",
                "headers": {"authorization": "Bearer secret", "host": "origin.example"},
                "auth": "user:pass",
            },
        )

        first, second = reflecting_server.requests
        assert first.headers["authorization"].startswith("Basic ")
        assert "authorization" not in second.headers
        assert second.headers["host"] == "other.example"

    def test_same_host_redirect_keeps_auth(self, settings, reflecting_server):
        _resolve(settings, reflecting_server, {"url": f"{BASE_URL}/redirect", "auth": "user:pass"})

        assert all("authorization" in request.headers for request in reflecting_server.requests)


class TestMethodRewriting:
    @pytest.mark.parametrize(
        "method,status,expected",
        [
            ("GET", 301, "GET"),
            ("HEAD", 302, "HEAD"),
            ("POST", 301, "GET"),
            ("POST", 302, "GET"),
            ("PUT", 303, "GET"),
            ("HEAD", 303, "HEAD"),
            ("POST", 307, "POST"),
            ("PATCH", 308, "PATCH"),
        ],
    )
    def test_redirect_method(self, method, status, expected):
        assert redirect_method(method, status) == expected

    def test_post_303_drops_body(self, settings, reflecting_server):
        reflecting_server.route(
            "/submit", lambda request: httpx.Response(303, headers={"location": "/"})
        )

        _resolve(
            settings,
            reflecting_server,
            {"url": f"{BASE_URL}/submit", "body": "a=1", "headers": {"content-type": "text/plain"}},
            method="POST",
        )

        first, second = reflecting_server.requests
        assert first.method == "POST" and first.content == b"a=1"
        assert second.method == "GET" and second.content == b""
        assert "content-type" not in second.headers

    def test_post_307_keeps_body(self, settings, reflecting_server):
        reflecting_server.route(
            "/submit", lambda request: httpx.Response(307, headers={"location": "/"})
        )

        _resolve(settings, reflecting_server, {"url": f"{BASE_URL}/submit", "body": "a=1"}, method="POST")

        second = reflecting_server.requests[1]
        assert second.method == "POST"
        assert second.content == b"a=1"
