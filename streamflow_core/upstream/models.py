"""
Upstream Models
===============
Per-request fetch state and the response descriptor handed to the relay.
"""

from dataclasses import dataclass, field, replace
from typing import AsyncIterator, Awaitable, Callable, Dict, Mapping, Optional

METHOD_GET = "GET"
METHOD_HEAD = "HEAD"


@dataclass(frozen=True)
class ProxyRequest:
    """One hop of an upstream fetch. Owned by a single fetch call."""
    target_url: str
    method: str
    user_agent: str
    range_header: Optional[str] = None
    redirects_followed: int = 0

    @classmethod
    def from_client(
        cls,
        target_url: str,
        client_method: str,
        client_headers: Mapping[str, str],
        default_user_agent: str,
    ) -> "ProxyRequest":
        """
        Derive the upstream request from the inbound client request.

        Only HEAD survives as-is; every other client method is fetched
        with GET since the proxy only ever relays readable media.
        """
        method = METHOD_HEAD if client_method.upper() == METHOD_HEAD else METHOD_GET
        return cls(
            target_url=target_url,
            method=method,
            user_agent=client_headers.get("user-agent") or default_user_agent,
            range_header=client_headers.get("range") or None,
        )

    def follow(self, location: str) -> "ProxyRequest":
        """Next hop of a redirect chain."""
        return replace(
            self,
            target_url=location,
            redirects_followed=self.redirects_followed + 1,
        )


@dataclass
class UpstreamResponse:
    """
    Upstream response descriptor.

    body is None for HEAD requests; the caller must then send headers only.
    aclose() aborts the upstream connection if the body was not consumed,
    and is safe to call more than once.
    """
    status_code: int
    headers: Dict[str, str]
    body: Optional[AsyncIterator[bytes]] = None
    url: str = ""
    redirects: int = 0
    _closer: Optional[Callable[[], Awaitable[None]]] = field(default=None, repr=False)
    _closed: bool = field(default=False, repr=False)

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._closer is not None:
            await self._closer()
