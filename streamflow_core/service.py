"""
Proxy Service
=============
The shared core behind both deployment shapes.

Request flow: verify signed link -> take an admission slot -> fetch
upstream -> hand the body to a RelayResponse. The admission slot is
released exactly once, either by the relay's completion signal or by the
handler when no relay was started.
"""

import time
from typing import Callable, Mapping, Optional

import httpx
import structlog
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .admission import AdmissionController, AdmissionTicket
from .config import ProxyConfig
from .exceptions import (
    ClientDisconnectedError,
    InvalidSignatureError,
    InvalidURLError,
    LinkExpiredError,
    OverloadedError,
    UnauthorizedError,
    UpstreamError,
)
from .health import probe_payload
from .metrics import record_active, record_outcome
from .relay import CompletionSignal, RelayOutcome, RelayResponse, cancel_on_disconnect
from .responses import json_error
from .signing import (
    DEFAULT_PROXY_PATH,
    RejectReason,
    create_signed_path,
    is_valid_http_url,
    verify,
)
from .upstream import UpstreamFetcher

logger = structlog.get_logger(__name__)

REJECTION_ERRORS = {
    RejectReason.UNAUTHORIZED: UnauthorizedError,
    RejectReason.INVALID_URL: InvalidURLError,
    RejectReason.EXPIRED: LinkExpiredError,
    RejectReason.INVALID_SIGNATURE: InvalidSignatureError,
}

TOKEN_PARAMS = ("t", "nonce", "sig")

# Status recorded for requests whose client left before headers (nginx convention)
CLIENT_CLOSED_REQUEST = 499


class ProxyService:
    """
    Signing and proxying operations shared by the server and edge apps.

    Example:
        service = ProxyService(ProxyConfig.from_env())

        @app.api_route("/proxy", methods=["GET", "HEAD"])
        async def proxy(request: Request):
            return await service.proxy_request(request)
    """

    def __init__(
        self,
        config: ProxyConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        fetcher: Optional[UpstreamFetcher] = None,
        admission: Optional[AdmissionController] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config
        self.admission = admission or AdmissionController(config.max_concurrent)
        self.fetcher = fetcher or UpstreamFetcher(
            client=http_client,
            timeout=config.request_timeout,
            max_redirects=config.max_redirects,
            block_html=config.block_html,
            default_user_agent=config.default_user_agent,
            max_connections=config.keepalive_max_sockets,
        )
        self.clock = clock or time.time

    async def aclose(self) -> None:
        await self.fetcher.aclose()

    def health_payload(self) -> dict:
        return probe_payload(self.admission.snapshot())

    # -------------------------------------------------------------------------
    # Signing
    # -------------------------------------------------------------------------

    async def sign_request(self, request: Request, base_path: str = DEFAULT_PROXY_PATH) -> JSONResponse:
        """Handle a signing request with body {"url": ...}."""
        if not self.config.signing_enabled:
            logger.error("signing_secret_missing")
            return json_error("Server configuration error", 500)

        try:
            payload = await request.json()
        except ValueError:
            return json_error("Invalid request", 400)

        if not isinstance(payload, dict):
            return json_error("Invalid request", 400)

        target_url = payload.get("url")
        if not isinstance(target_url, str) or not is_valid_http_url(target_url):
            return json_error("Invalid URL", 400)

        signed_url = create_signed_path(
            target_url,
            self.config.secret,
            base_path=base_path,
            now=int(self.clock()),
        )
        return JSONResponse({"signedUrl": signed_url})

    # -------------------------------------------------------------------------
    # Proxying
    # -------------------------------------------------------------------------

    def authorize(self, target_url: str, params: Mapping[str, str]) -> None:
        """
        Check a proxy request's signed link.

        Raises:
            UnauthorizedError, InvalidURLError, LinkExpiredError,
            InvalidSignatureError: On the first failed check
        """
        has_token = any(params.get(name) for name in TOKEN_PARAMS)
        if self.config.allow_unsigned and not has_token:
            if not is_valid_http_url(target_url):
                raise InvalidURLError()
            return

        result = verify(
            target_url,
            params.get("t"),
            params.get("nonce"),
            params.get("sig"),
            self.config.secret,
            now=int(self.clock()),
            max_skew=self.config.max_skew_seconds,
        )
        if not result.ok:
            record_outcome(f"rejected_{result.reason.value}")
            logger.warning("signed_url_rejected", reason=result.reason.value)
            raise REJECTION_ERRORS[result.reason]()

    async def proxy_request(self, request: Request) -> Response:
        """
        Handle GET/HEAD on the proxy endpoint.

        Without a url parameter this is the health probe.
        """
        params = request.query_params
        target_url = params.get("url")
        if not target_url:
            return JSONResponse(self.health_payload())

        self.authorize(target_url, params)

        ticket = self.admission.acquire()
        if ticket is None:
            snapshot = self.admission.snapshot()
            record_outcome("rejected_busy")
            logger.warning("admission_rejected", active=snapshot.active, limit=snapshot.limit)
            raise OverloadedError(retry_after=self.config.retry_after_seconds)
        record_active(self.admission.snapshot().active)

        handed_off = False
        try:
            upstream = await cancel_on_disconnect(
                self.fetcher.fetch(target_url, request.method, request.headers),
                request.receive,
            )
            completion = CompletionSignal()
            completion.add_callback(lambda outcome: self._finish(ticket, outcome))
            response = RelayResponse(
                upstream,
                headers={"Cache-Control": "no-cache", "Accept-Ranges": "bytes"},
                buffer_bytes=self.config.relay_buffer_bytes,
                completion=completion,
            )
            handed_off = True
            return response
        except ClientDisconnectedError:
            logger.info("client_disconnected_before_response")
            record_outcome(RelayOutcome.CLIENT_DISCONNECTED.value)
            return Response(status_code=CLIENT_CLOSED_REQUEST)
        except UpstreamError as e:
            record_outcome(e.code.lower())
            raise
        finally:
            if not handed_off:
                self._finish(ticket, None)

    def _finish(self, ticket: AdmissionTicket, outcome: Optional[RelayOutcome]) -> None:
        if ticket.release():
            record_active(self.admission.snapshot().active)
        if outcome is not None:
            record_outcome(outcome.value)
