"""
Upstream Tests
==============
Tests for the fetch state machine against mocked origins.
"""

import asyncio

import httpx
import pytest

from streamflow_core.exceptions import (
    ContentNotStreamableError,
    TooManyRedirectsError,
    UpstreamDisconnectedError,
    UpstreamError,
    UpstreamTimeoutError,
)
from streamflow_core.upstream import (
    ProxyRequest,
    UpstreamFetcher,
    build_upstream_headers,
    filter_response_headers,
    referer_for,
)

from .conftest import MEDIA_BYTES, MEDIA_URL, UpstreamRecorder, media_response


def _fetcher(handler, **kwargs) -> UpstreamFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return UpstreamFetcher(client=client, **kwargs)


def _redirect_chain(final_hop: int, location_for=None):
    """Origin where /hop/N redirects to /hop/N+1 until final_hop."""
    location_for = location_for or (lambda hop: f"/hop/{hop + 1}")

    def handler(request: httpx.Request) -> httpx.Response:
        hop = int(request.url.path.rsplit("/", 1)[-1])
        if hop < final_hop:
            return httpx.Response(302, headers={"Location": location_for(hop)})
        return media_response(200, headers={"Content-Type": "video/mp4"}, body=b"done")

    return handler


async def _read_all(response) -> bytes:
    return b"".join([chunk async for chunk in response.body])


class TestHeaders:
    """Tests for outbound and inbound header handling."""

    def test_referer_is_origin(self):
        assert referer_for("https://user:pw@cdn.example.com:8443/a/b.mp4?x=1") == "https://cdn.example.com:8443/"

    def test_outbound_headers(self):
        """Should synthesize browser-like headers and forward Range."""
        request = ProxyRequest.from_client(
            MEDIA_URL, "GET", {"user-agent": "TestPlayer/1.0", "range": "bytes=0-"}, "Default/1.0"
        )

        headers = build_upstream_headers(request)

        assert headers["User-Agent"] == "TestPlayer/1.0"
        assert headers["Accept"] == "*/*"
        assert headers["Referer"] == "http://media.example.com/"
        assert headers["Range"] == "bytes=0-"

    def test_default_user_agent(self):
        request = ProxyRequest.from_client(MEDIA_URL, "GET", {}, "Default/1.0")

        headers = build_upstream_headers(request)

        assert headers["User-Agent"] == "Default/1.0"
        assert "Range" not in headers

    def test_allow_list(self):
        """Only the four media headers should survive."""
        filtered = filter_response_headers({
            "Content-Type": "video/mp4",
            "Content-Length": "10",
            "Content-Range": "bytes 0-9/100",
            "Accept-Ranges": "bytes",
            "Set-Cookie": "a=b",
            "Server": "nginx",
        })

        assert filtered == {
            "content-type": "video/mp4",
            "content-length": "10",
            "content-range": "bytes 0-9/100",
            "accept-ranges": "bytes",
        }

    def test_method_normalization(self):
        """HEAD stays HEAD; every other method becomes GET."""
        assert ProxyRequest.from_client(MEDIA_URL, "head", {}, "UA").method == "HEAD"
        assert ProxyRequest.from_client(MEDIA_URL, "POST", {}, "UA").method == "GET"


class TestFetch:
    """Tests for UpstreamFetcher.fetch."""

    @pytest.mark.asyncio
    async def test_get_streams_body(self):
        """Should return status, filtered headers and the body stream."""
        upstream = UpstreamRecorder()
        fetcher = _fetcher(upstream)

        response = await fetcher.fetch(MEDIA_URL, "GET", {})

        assert response.status_code == 200
        assert response.headers["content-type"] == "video/mp4"
        assert "set-cookie" not in response.headers
        assert "cache-control" not in response.headers
        assert await _read_all(response) == MEDIA_BYTES
        await response.aclose()

    @pytest.mark.asyncio
    async def test_range_forwarded(self):
        """Range should reach the origin and 206 should come back as-is."""
        upstream = UpstreamRecorder()
        fetcher = _fetcher(upstream)

        response = await fetcher.fetch(MEDIA_URL, "GET", {"range": "bytes=0-99"})

        assert upstream.requests[0].headers["range"] == "bytes=0-99"
        assert response.status_code == 206
        assert response.headers["content-range"] == f"bytes 0-99/{len(MEDIA_BYTES)}"
        assert await _read_all(response) == MEDIA_BYTES[:100]
        await response.aclose()

    @pytest.mark.asyncio
    async def test_head_has_no_body(self):
        upstream = UpstreamRecorder()
        fetcher = _fetcher(upstream)

        response = await fetcher.fetch(MEDIA_URL, "HEAD", {})

        assert upstream.requests[0].method == "HEAD"
        assert response.body is None
        assert response.headers["content-length"] == str(len(MEDIA_BYTES))

    @pytest.mark.asyncio
    async def test_post_fetched_with_get(self):
        upstream = UpstreamRecorder()
        fetcher = _fetcher(upstream)

        response = await fetcher.fetch(MEDIA_URL, "POST", {})
        await response.aclose()

        assert upstream.requests[0].method == "GET"

    @pytest.mark.asyncio
    async def test_follows_five_redirects(self):
        """Exactly five redirects should still succeed."""
        upstream = UpstreamRecorder(_redirect_chain(final_hop=5))
        fetcher = _fetcher(upstream)

        response = await fetcher.fetch("http://media.example.com/hop/0", "GET", {})

        assert response.status_code == 200
        assert response.redirects == 5
        assert response.url == "http://media.example.com/hop/5"
        assert len(upstream.requests) == 6
        await response.aclose()

    @pytest.mark.asyncio
    async def test_sixth_redirect_fails(self):
        upstream = UpstreamRecorder(_redirect_chain(final_hop=6))
        fetcher = _fetcher(upstream)

        with pytest.raises(TooManyRedirectsError):
            await fetcher.fetch("http://media.example.com/hop/0", "GET", {})

        assert len(upstream.requests) == 6

    @pytest.mark.asyncio
    async def test_redirect_limit_configurable(self):
        upstream = UpstreamRecorder(_redirect_chain(final_hop=1))
        fetcher = _fetcher(upstream, max_redirects=0)

        with pytest.raises(TooManyRedirectsError):
            await fetcher.fetch("http://media.example.com/hop/0", "GET", {})

    @pytest.mark.asyncio
    async def test_redirect_updates_referer_and_keeps_range(self):
        """Each hop should carry its own referer and the original Range."""
        location = lambda hop: f"https://cdn{hop + 1}.example.net/hop/{hop + 1}"
        upstream = UpstreamRecorder(_redirect_chain(final_hop=2, location_for=location))
        fetcher = _fetcher(upstream)

        response = await fetcher.fetch(
            "http://media.example.com/hop/0", "GET", {"range": "bytes=10-"}
        )
        await response.aclose()

        referers = [request.headers["referer"] for request in upstream.requests]
        assert referers == [
            "http://media.example.com/",
            "https://cdn1.example.net/",
            "https://cdn2.example.net/",
        ]
        assert all(request.headers["range"] == "bytes=10-" for request in upstream.requests)

    @pytest.mark.asyncio
    async def test_redirect_to_non_http_rejected(self):
        upstream = UpstreamRecorder(_redirect_chain(final_hop=1, location_for=lambda hop: "ftp://x/y"))
        fetcher = _fetcher(upstream)

        with pytest.raises(UpstreamError):
            await fetcher.fetch("http://media.example.com/hop/0", "GET", {})

    @pytest.mark.asyncio
    async def test_redirect_without_location_is_final(self):
        """A 3xx without Location should be relayed like any response."""
        upstream = UpstreamRecorder(lambda request: media_response(304))
        fetcher = _fetcher(upstream)

        response = await fetcher.fetch(MEDIA_URL, "GET", {})
        await response.aclose()

        assert response.status_code == 304

    @pytest.mark.asyncio
    async def test_upstream_errors_pass_through(self):
        """4xx/5xx statuses are relayed, not raised."""
        upstream = UpstreamRecorder(
            lambda request: media_response(404, headers={"Content-Type": "video/mp4"}, body=b"")
        )
        fetcher = _fetcher(upstream)

        response = await fetcher.fetch(MEDIA_URL, "GET", {})
        await response.aclose()

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_html_blocked(self):
        upstream = UpstreamRecorder(
            lambda request: media_response(
                200, headers={"Content-Type": "text/html; charset=utf-8"}, body=b"<html>"
            )
        )
        fetcher = _fetcher(upstream)

        with pytest.raises(ContentNotStreamableError):
            await fetcher.fetch(MEDIA_URL, "GET", {})

    @pytest.mark.asyncio
    async def test_html_allowed_when_disabled(self):
        upstream = UpstreamRecorder(
            lambda request: media_response(200, headers={"Content-Type": "text/html"}, body=b"<html>")
        )
        fetcher = _fetcher(upstream, block_html=False)

        response = await fetcher.fetch(MEDIA_URL, "GET", {})

        assert await _read_all(response) == b"<html>"
        await response.aclose()

    @pytest.mark.asyncio
    async def test_timeout(self):
        """A hop that never answers should fail with UpstreamTimeoutError."""
        async def slow(request):
            await asyncio.sleep(5)
            return httpx.Response(200)

        fetcher = _fetcher(UpstreamRecorder(slow), timeout=0.05)

        with pytest.raises(UpstreamTimeoutError):
            await fetcher.fetch(MEDIA_URL, "GET", {})

    @pytest.mark.asyncio
    async def test_connect_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = _fetcher(UpstreamRecorder(refuse))

        with pytest.raises(UpstreamError) as exc_info:
            await fetcher.fetch(MEDIA_URL, "GET", {})

        assert exc_info.value.status_code == 502
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_reset_is_benign(self):
        def reset(request):
            raise httpx.RemoteProtocolError("peer closed connection", request=request)

        fetcher = _fetcher(UpstreamRecorder(reset))

        with pytest.raises(UpstreamDisconnectedError) as exc_info:
            await fetcher.fetch(MEDIA_URL, "GET", {})

        assert exc_info.value.benign is True
