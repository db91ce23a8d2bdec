"""
Upstream Fetcher
================
Fetches a target URL, following redirects as an explicit bounded loop.
"""

import asyncio
import time
from typing import Mapping, Optional
from urllib.parse import urljoin, urlsplit

import httpx
import structlog

from ..exceptions import (
    ContentNotStreamableError,
    TooManyRedirectsError,
    UpstreamDisconnectedError,
    UpstreamError,
    UpstreamTimeoutError,
)
from ..metrics import record_redirect, record_upstream_latency
from ..signing.signature import is_valid_http_url
from .headers import build_upstream_headers, filter_response_headers
from .models import METHOD_HEAD, ProxyRequest, UpstreamResponse

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_MAX_CONNECTIONS = 500


def create_http_client(
    timeout: float = DEFAULT_TIMEOUT,
    max_connections: int = DEFAULT_MAX_CONNECTIONS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create the shared keep-alive client.

    Connections are pooled per origin, so http and https upstreams never
    share a connection. Redirects are handled by the fetcher, not httpx.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_connections,
        ),
        follow_redirects=False,
        transport=transport,
    )


def _host(url: str) -> str:
    return urlsplit(url).hostname or ""


class UpstreamFetcher:
    """
    Fetches media from arbitrary upstream origins.

    Features:
    - Bounded redirect chasing with relative Location support.
    - Fresh timeout budget per hop, covering connect and response headers.
    - Header allow-list on the way back.
    - Optional rejection of HTML interstitials (login or anti-bot pages).
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        block_html: bool = True,
        default_user_agent: str = "Mozilla/5.0",
        max_connections: int = DEFAULT_MAX_CONNECTIONS,
    ):
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.block_html = block_html
        self.default_user_agent = default_user_agent
        self._owns_client = client is None
        self.client = client or create_http_client(timeout, max_connections)

    async def aclose(self):
        """Close the underlying HTTP client if this fetcher created it."""
        if self._owns_client:
            await self.client.aclose()

    async def fetch(
        self,
        target_url: str,
        client_method: str,
        client_headers: Mapping[str, str],
    ) -> UpstreamResponse:
        """
        Fetch target_url on behalf of a client.

        Args:
            target_url: Validated absolute http(s) URL
            client_method: The inbound request method
            client_headers: The inbound request headers (case-insensitive mapping)

        Returns:
            UpstreamResponse with filtered headers and, unless HEAD, a body stream

        Raises:
            UpstreamTimeoutError: A hop did not produce headers in time
            TooManyRedirectsError: The chain exceeded max_redirects
            ContentNotStreamableError: HTML came back and block_html is on
            UpstreamError: Any other transport failure
        """
        request = ProxyRequest.from_client(
            target_url, client_method, client_headers, self.default_user_agent
        )

        while True:
            response = await self._send(request)

            location = response.headers.get("location")
            if 300 <= response.status_code < 400 and location:
                await response.aclose()
                if request.redirects_followed >= self.max_redirects:
                    logger.warning(
                        "upstream_too_many_redirects",
                        host=_host(request.target_url),
                        redirects=request.redirects_followed,
                    )
                    raise TooManyRedirectsError()

                next_url = urljoin(request.target_url, location)
                if not is_valid_http_url(next_url):
                    logger.warning(
                        "upstream_redirect_rejected",
                        host=_host(request.target_url),
                        scheme=urlsplit(next_url).scheme,
                    )
                    raise UpstreamError()

                record_redirect()
                logger.debug(
                    "upstream_redirect",
                    status=response.status_code,
                    from_host=_host(request.target_url),
                    to_host=_host(next_url),
                    hop=request.redirects_followed + 1,
                )
                request = request.follow(next_url)
                continue

            return await self._describe(request, response)

    async def _send(self, request: ProxyRequest) -> httpx.Response:
        """Issue one hop and wait for its response headers."""
        outbound = self.client.build_request(
            request.method,
            request.target_url,
            headers=build_upstream_headers(request),
        )
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self.client.send(outbound, stream=True),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning("upstream_timeout", host=_host(request.target_url), timeout=self.timeout)
            raise UpstreamTimeoutError(cause=e)
        except (httpx.RemoteProtocolError, httpx.ReadError, httpx.WriteError) as e:
            logger.info("upstream_disconnected", host=_host(request.target_url), error=str(e))
            raise UpstreamDisconnectedError(cause=e)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(
                "upstream_request_failed",
                host=_host(request.target_url),
                error_type=type(e).__name__,
                error=str(e),
            )
            raise UpstreamError(cause=e)

        record_upstream_latency(time.monotonic() - start)
        return response

    async def _describe(self, request: ProxyRequest, response: httpx.Response) -> UpstreamResponse:
        headers = filter_response_headers(response.headers)

        if self.block_html and "text/html" in headers.get("content-type", "").lower():
            await response.aclose()
            logger.warning(
                "upstream_html_blocked",
                host=_host(request.target_url),
                status=response.status_code,
            )
            raise ContentNotStreamableError()

        body = None
        if request.method == METHOD_HEAD:
            await response.aclose()
        else:
            body = response.aiter_raw()

        return UpstreamResponse(
            status_code=response.status_code,
            headers=headers,
            body=body,
            url=request.target_url,
            redirects=request.redirects_followed,
            _closer=response.aclose,
        )
