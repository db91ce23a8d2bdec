"""
Upstream Module
===============
Upstream fetch state machine: redirects, header filtering, range and HEAD.
"""

from .models import ProxyRequest, UpstreamResponse, METHOD_GET, METHOD_HEAD
from .headers import (
    FORWARDED_RESPONSE_HEADERS,
    build_upstream_headers,
    filter_response_headers,
    referer_for,
)
from .fetcher import UpstreamFetcher, create_http_client

__all__ = [
    # Models
    "ProxyRequest",
    "UpstreamResponse",
    "METHOD_GET",
    "METHOD_HEAD",
    # Headers
    "FORWARDED_RESPONSE_HEADERS",
    "build_upstream_headers",
    "filter_response_headers",
    "referer_for",
    # Fetcher
    "UpstreamFetcher",
    "create_http_client",
]
