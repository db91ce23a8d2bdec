"""
Stream Relay
============
ASGI response that pipes an upstream body to the client.

Three tasks cooperate per relayed response:
- a reader pulls upstream chunks into a bounded queue,
- a writer sends queued chunks to the client (ASGI send awaits socket
  writability, so a slow client stalls the reader once the queue is full),
- a watcher waits for http.disconnect.

Whichever of writer or watcher finishes first decides the outcome; the
others are cancelled and the upstream connection is closed.
"""

import asyncio
from typing import Awaitable, Mapping, Optional

import httpx
import structlog
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from ..exceptions import ClientDisconnectedError
from ..metrics import record_relay_bytes
from ..upstream.models import UpstreamResponse
from .completion import CompletionSignal, RelayOutcome

logger = structlog.get_logger(__name__)

DEFAULT_BUFFER_BYTES = 256 * 1024

# httpcore reads at most 64 KiB per socket read
READ_CHUNK_HINT = 64 * 1024

# Upstream resets and premature closes end the stream without an error
BENIGN_UPSTREAM_ERRORS = (httpx.ReadError, httpx.RemoteProtocolError)

_EOF = object()


async def wait_for_disconnect(receive: Receive) -> None:
    """Return once the client has disconnected."""
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            return


async def cancel_on_disconnect(awaitable: Awaitable, receive: Receive):
    """
    Await awaitable unless the client disconnects first.

    Used while upstream headers are pending, before any response has
    started. If the client leaves, the awaitable is cancelled (aborting the
    upstream request) and ClientDisconnectedError is raised.
    """
    task = asyncio.ensure_future(awaitable)
    watcher = asyncio.ensure_future(wait_for_disconnect(receive))
    try:
        await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        watcher.cancel()
        if not task.done():
            task.cancel()
        await asyncio.gather(task, watcher, return_exceptions=True)

    if not task.cancelled():
        if watcher.cancelled() or not watcher.done() or task.exception() is not None:
            return task.result()
        # Finished in the same tick as the disconnect; nobody will read it
        result = task.result()
        if hasattr(result, "aclose"):
            await result.aclose()
    raise ClientDisconnectedError()


class RelayResponse(Response):
    """
    Streams an UpstreamResponse to the client.

    completion fires exactly once when the relay ends, whatever the path:
    body fully sent, client gone, upstream reset, or an unexpected fault.
    Attach cleanup (admission release, metrics) there.
    """

    def __init__(
        self,
        upstream: UpstreamResponse,
        headers: Optional[Mapping[str, str]] = None,
        buffer_bytes: int = DEFAULT_BUFFER_BYTES,
        completion: Optional[CompletionSignal] = None,
    ):
        self.upstream = upstream
        self.status_code = upstream.status_code
        self.media_type = None
        self.background = None
        self.buffer_bytes = buffer_bytes
        self.completion = completion or CompletionSignal()

        # Overrides replace upstream values case-insensitively
        merged = {name.lower(): value for name, value in upstream.headers.items()}
        if headers:
            merged.update({name.lower(): value for name, value in headers.items()})
        self.init_headers(merged)

    @property
    def queue_size(self) -> int:
        return max(1, self.buffer_bytes // READ_CHUNK_HINT)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        outcome = RelayOutcome.FAILED
        try:
            await send({
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.raw_headers,
            })
            if self.upstream.body is None:
                await send({"type": "http.response.body", "body": b"", "more_body": False})
                outcome = RelayOutcome.COMPLETED
            else:
                outcome = await self._relay(receive, send)
        except OSError as e:
            # Writing to a socket the client already closed
            logger.info("relay_client_write_failed", error=str(e))
            outcome = RelayOutcome.CLIENT_DISCONNECTED
        finally:
            try:
                await self.upstream.aclose()
            finally:
                self.completion.set(outcome)

    async def _relay(self, receive: Receive, send: Send) -> RelayOutcome:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        reader = asyncio.ensure_future(self._read_upstream(queue))
        writer = asyncio.ensure_future(self._write_client(queue, send))
        watcher = asyncio.ensure_future(wait_for_disconnect(receive))
        try:
            done, _ = await asyncio.wait(
                {writer, watcher}, return_when=asyncio.FIRST_COMPLETED
            )
            if writer in done:
                return writer.result()
            logger.info("relay_client_disconnected", upstream_host=self._host)
            return RelayOutcome.CLIENT_DISCONNECTED
        finally:
            for task in (reader, writer, watcher):
                task.cancel()
            await asyncio.gather(reader, writer, watcher, return_exceptions=True)

    async def _read_upstream(self, queue: asyncio.Queue) -> None:
        try:
            async for chunk in self.upstream.body:
                if chunk:
                    await queue.put(chunk)
        except Exception as e:
            # Handed to the writer, which ends the client response
            await queue.put(e)
            return
        await queue.put(_EOF)

    async def _write_client(self, queue: asyncio.Queue, send: Send) -> RelayOutcome:
        outcome = RelayOutcome.COMPLETED
        while True:
            item = await queue.get()
            if item is _EOF:
                break
            if isinstance(item, Exception):
                outcome = self._classify(item)
                break
            await send({"type": "http.response.body", "body": item, "more_body": True})
            record_relay_bytes(len(item))

        await send({"type": "http.response.body", "body": b"", "more_body": False})
        return outcome

    def _classify(self, exc: Exception) -> RelayOutcome:
        if isinstance(exc, BENIGN_UPSTREAM_ERRORS):
            logger.info("relay_upstream_closed", upstream_host=self._host, error=str(exc))
            return RelayOutcome.UPSTREAM_CLOSED
        logger.warning(
            "relay_upstream_failed",
            upstream_host=self._host,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return RelayOutcome.FAILED

    @property
    def _host(self) -> str:
        return httpx.URL(self.upstream.url).host if self.upstream.url else ""
