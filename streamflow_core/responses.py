"""
Error Responses
===============
Exception handlers shared by the server and edge applications.

Clients get the short message of the error class; causes and hosts go
to the logs only.
"""

from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
import structlog

from .exceptions import ProxyError

logger = structlog.get_logger(__name__)


def error_response(exc: ProxyError) -> PlainTextResponse:
    """Plain-text response for a proxy error."""
    return PlainTextResponse(
        exc.message,
        status_code=exc.status_code,
        headers=exc.headers,
    )


def json_error(message: str, status_code: int) -> JSONResponse:
    """JSON error body used by the signing endpoint."""
    return JSONResponse({"error": message}, status_code=status_code)


async def proxy_error_handler(request: Request, exc: ProxyError) -> PlainTextResponse:
    if exc.status_code >= 500 and not getattr(exc, "benign", False):
        logger.error(
            "proxy_error",
            code=exc.code,
            path=request.url.path,
            cause=repr(exc.cause) if exc.cause else None,
        )
    else:
        logger.info("proxy_rejected", code=exc.code, status=exc.status_code, path=request.url.path)
    return error_response(exc)


async def unhandled_error_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Last-resort handler: the request fails, the process keeps serving."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        path=request.url.path,
        method=request.method,
        exc_info=exc,
    )
    return PlainTextResponse("Internal server error", status_code=500)


EXCEPTION_HANDLERS = {
    ProxyError: proxy_error_handler,
    Exception: unhandled_error_handler,
}


def register_exception_handlers(app) -> None:
    """Install the proxy exception handlers on a Starlette/FastAPI app."""
    for exc_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exc_class, handler)
