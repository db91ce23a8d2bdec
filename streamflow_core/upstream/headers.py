"""
Header Functions
================
Outbound header synthesis and the response header allow-list.
"""

from typing import Dict, Mapping
from urllib.parse import urlsplit

from .models import ProxyRequest

# Only these upstream headers ever reach the client. Everything else
# (cookies, auth challenges, caching directives) is dropped.
FORWARDED_RESPONSE_HEADERS = (
    "content-type",
    "content-length",
    "content-range",
    "accept-ranges",
)


def referer_for(url: str) -> str:
    """Origin-style referer for a URL: scheme://host[:port]/"""
    parts = urlsplit(url)
    host = parts.netloc.rsplit("@", 1)[-1]
    return f"{parts.scheme}://{host}/"


def build_upstream_headers(request: ProxyRequest) -> Dict[str, str]:
    """
    Build headers for one upstream hop.

    The referer follows the current hop, so it changes along a redirect
    chain. Bytes are relayed untouched, hence identity encoding.
    """
    headers = {
        "User-Agent": request.user_agent,
        "Accept": "*/*",
        "Accept-Encoding": "identity",
        "Referer": referer_for(request.target_url),
    }
    if request.range_header:
        headers["Range"] = request.range_header
    return headers


def filter_response_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Keep only allow-listed upstream headers, lower-cased."""
    lowered = {key.lower(): value for key, value in headers.items()}
    return {
        name: lowered[name]
        for name in FORWARDED_RESPONSE_HEADERS
        if lowered.get(name)
    }
