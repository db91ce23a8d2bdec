"""
Edge Handler
============
Request-scoped deployment: one endpoint that signs on
POST ?action=sign and proxies everything else.

Run with an ASGI server factory, e.g.:
    uvicorn --factory streamflow_core.edge:create_edge_app
"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.routing import Route

from ..config import ProxyConfig
from ..cors import CORSHeadersMiddleware
from ..logs import RequestLoggingMiddleware
from ..responses import EXCEPTION_HANDLERS
from ..service import ProxyService

logger = structlog.get_logger(__name__)

EDGE_PATH = "/api/server"


def create_edge_app(
    config: Optional[ProxyConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    service: Optional[ProxyService] = None,
) -> Starlette:
    """
    Build the edge application.

    Uses the edge defaults (100 concurrent, 25 s per hop) unless the
    environment or config says otherwise.
    """
    if service is None:
        config = config or ProxyConfig.from_env(edge=True)
        service = ProxyService(config, http_client=http_client)

    async def handle(request: Request):
        if request.method == "POST" and request.query_params.get("action") == "sign":
            return await service.sign_request(request, base_path=EDGE_PATH)
        return await service.proxy_request(request)

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("edge_started", max_concurrent=service.config.max_concurrent)
        try:
            yield
        finally:
            await service.aclose()

    app = Starlette(
        routes=[Route(EDGE_PATH, handle, methods=["GET", "HEAD", "POST"])],
        middleware=[
            Middleware(RequestLoggingMiddleware),
            Middleware(CORSHeadersMiddleware),
        ],
        exception_handlers=EXCEPTION_HANDLERS,
        lifespan=lifespan,
    )
    app.state.service = service
    return app
