"""
Server Application
==================
Long-lived FastAPI process: signing, proxying, health, metrics and the
static player files.
"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import Response

from .. import __version__
from ..config import ProxyConfig
from ..cors import CORSHeadersMiddleware
from ..health import create_health_router
from ..logs import RequestLoggingMiddleware
from ..metrics import get_metrics_text
from ..responses import register_exception_handlers
from ..service import ProxyService
from ..signing import DEFAULT_PROXY_PATH
from ..static import serve_static

logger = structlog.get_logger(__name__)


def create_app(
    config: Optional[ProxyConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    service: Optional[ProxyService] = None,
) -> FastAPI:
    """
    Build the server application.

    Args:
        config: Settings (defaults to ProxyConfig.from_env())
        http_client: Upstream client to share (tests pass a mocked transport)
        service: Prebuilt ProxyService; overrides config and http_client
    """
    if service is None:
        config = config or ProxyConfig.from_env()
        service = ProxyService(config, http_client=http_client)
    config = service.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "proxy_started",
            max_concurrent=config.max_concurrent,
            request_timeout_ms=config.request_timeout_ms,
            signing_enabled=config.signing_enabled,
            allow_unsigned=config.allow_unsigned,
        )
        try:
            yield
        finally:
            await service.aclose()
            logger.info("proxy_stopped")

    app = FastAPI(
        title="StreamFlow Proxy",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.service = service
    register_exception_handlers(app)

    app.include_router(create_health_router(config.service_name, service.admission, __version__))

    @app.get("/metrics")
    async def metrics():
        body, content_type = get_metrics_text()
        return Response(content=body, media_type=content_type)

    @app.post("/generate-signed-url")
    async def generate_signed_url(request: Request):
        return await service.sign_request(request, base_path=DEFAULT_PROXY_PATH)

    @app.api_route(DEFAULT_PROXY_PATH, methods=["GET", "HEAD"])
    async def proxy(request: Request):
        return await service.proxy_request(request)

    @app.api_route("/{path:path}", methods=["GET", "HEAD"])
    async def static_files(path: str):
        return serve_static(config.static_root, path)

    # Last added is outermost
    app.add_middleware(CORSHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    return app
