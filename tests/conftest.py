"""
Shared fixtures for proxy tests.

Upstream origins are simulated with httpx.MockTransport so nothing
leaves the process. Bodies are served as unread byte streams, the way a
real transport hands them to the client.
"""

import httpx
import pytest

from streamflow_core.config import ProxyConfig

SECRET = "test-stream-secret"
MEDIA_URL = "http://media.example.com/videos/clip.mp4"
MEDIA_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"x" * 4096


class ChunkedStream(httpx.AsyncByteStream):
    """Upstream body delivered in fixed-size chunks."""

    def __init__(self, data: bytes, chunk_size: int = 1024):
        self.data = data
        self.chunk_size = chunk_size

    async def __aiter__(self):
        for start in range(0, len(self.data), self.chunk_size):
            yield self.data[start:start + self.chunk_size]


def media_response(status_code: int = 200, headers=None, body: bytes = b"") -> httpx.Response:
    """Build an upstream response whose body is still unread."""
    return httpx.Response(status_code, headers=headers, stream=ChunkedStream(body))


class UpstreamRecorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, handler=None):
        self.requests = []
        self._handler = handler or self.default_response

    @staticmethod
    def default_response(request: httpx.Request) -> httpx.Response:
        range_header = request.headers.get("range")
        if range_header == "bytes=0-99":
            return media_response(
                206,
                headers={
                    "Content-Type": "video/mp4",
                    "Content-Length": "100",
                    "Content-Range": f"bytes 0-99/{len(MEDIA_BYTES)}",
                    "Accept-Ranges": "bytes",
                    "Set-Cookie": "session=abc",
                },
                body=MEDIA_BYTES[:100],
            )
        return media_response(
            200,
            headers={
                "Content-Type": "video/mp4",
                "Content-Length": str(len(MEDIA_BYTES)),
                "Accept-Ranges": "bytes",
                "Set-Cookie": "session=abc",
                "Cache-Control": "max-age=3600",
            },
            body=MEDIA_BYTES,
        )

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self._handler(request)
        if hasattr(response, "__await__"):
            response = await response
        return response


@pytest.fixture
def upstream():
    return UpstreamRecorder()


@pytest.fixture
def http_client(upstream):
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream), follow_redirects=False)


@pytest.fixture
def config(tmp_path):
    return ProxyConfig(
        secret=SECRET,
        max_concurrent=4,
        request_timeout_ms=2000,
        static_root=str(tmp_path),
    )
