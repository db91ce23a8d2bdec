"""
Structured Logging
==================
structlog configuration and request logging middleware for the proxy.

Usage:
    from streamflow_core.logs import setup_logging, RequestLoggingMiddleware

    # Setup at startup
    setup_logging(service_name="streamflow-proxy")

    # Add middleware
    app.add_middleware(RequestLoggingMiddleware)
"""

import logging
import sys
import time
import uuid

import structlog
from starlette.datastructures import MutableHeaders

# Third-party loggers that would otherwise print full upstream URLs
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _service_processor(service_name: str):
    def add_service(logger, method_name, event_dict):
        event_dict.setdefault("service", service_name)
        return event_dict
    return add_service


def setup_logging(
    service_name: str,
    level: str = "INFO",
    json_output: bool = True,
) -> None:
    """
    Configure structlog over the stdlib root logger.

    Args:
        service_name: Name of the service (e.g., "streamflow-proxy")
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render JSON lines (production) instead of console output
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _service_processor(service_name),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger(__name__).info("logging_configured", level=level.upper())


class RequestLoggingMiddleware:
    """
    ASGI middleware for request/response logging.

    Binds a request id into structlog contextvars for the lifetime of the
    request. Only the path is logged: query strings carry signed URLs.
    """

    def __init__(self, app, header_name: str = "X-Request-ID"):
        self.app = app
        self.header_name = header_name
        self.logger = structlog.get_logger("http")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        req_id = headers.get(self.header_name.lower().encode(), b"").decode()[:64]
        if not req_id:
            req_id = str(uuid.uuid4())[:8]

        method = scope.get("method", "")
        path = scope.get("path", "")

        client = scope.get("client")
        client_ip = client[0] if client else ""
        forwarded = headers.get(b"x-forwarded-for", b"").decode()
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()

        structlog.contextvars.bind_contextvars(request_id=req_id)
        start_time = time.monotonic()

        self.logger.debug(
            "http_request",
            method=method,
            path=path,
            client_ip=client_ip,
            range=headers.get(b"range", b"").decode() or None,
        )

        status_code = 500

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
                MutableHeaders(scope=message)[self.header_name] = req_id
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            level = (
                logging.INFO if status_code < 400
                else logging.WARNING if status_code < 500
                else logging.ERROR
            )
            self.logger.log(
                level,
                "http_response",
                method=method,
                path=path,
                status_code=status_code,
                duration_ms=duration_ms,
                client_ip=client_ip,
            )
            structlog.contextvars.unbind_contextvars("request_id")
