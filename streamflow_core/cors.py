"""
CORS Middleware
===============
Open CORS for media players embedded on any origin.
"""

from typing import Dict, Optional

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import Response

from .responses import unhandled_error_handler

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Range, Content-Type",
    "Access-Control-Expose-Headers": "Content-Length, Content-Range, Accept-Ranges",
}


class CORSHeadersMiddleware:
    """
    ASGI middleware adding CORS headers to every response.

    Any OPTIONS request is answered directly with 200 and an empty body,
    preflight or not. Unlike Starlette's CORSMiddleware this never inspects
    the Origin header: the proxy is meant to be callable from anywhere.

    Unexpected errors raised before the response starts are answered here
    with a 500, so browsers can read that response too.
    """

    def __init__(self, app, headers: Optional[Dict[str, str]] = None):
        self.app = app
        self.headers = headers or CORS_HEADERS

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            response = Response(status_code=200, headers=self.headers)
            await response(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
                headers = MutableHeaders(scope=message)
                for name, value in self.headers.items():
                    headers[name] = value
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                raise
            response = await unhandled_error_handler(Request(scope), exc)
            await response(scope, receive, send_wrapper)
