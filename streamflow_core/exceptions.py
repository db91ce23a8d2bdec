"""
Proxy Exceptions
================
Error taxonomy for the signing and proxying endpoints.

Every error carries the HTTP status and the short plain-text message the
client receives. Technical detail (upstream cause, target host) stays in
the logs.
"""

from typing import Optional


class ProxyError(Exception):
    """Base exception for all proxy errors."""

    status_code: int = 500
    default_message: str = "Internal server error"
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None):
        self.message = message or self.default_message
        self.cause = cause
        super().__init__(self.message)

    @property
    def headers(self) -> dict:
        """Extra response headers for this error."""
        return {}


class ConfigurationError(ProxyError):
    """Raised when the service is misconfigured (e.g. no signing secret)."""
    status_code = 500
    default_message = "Server configuration error"
    code = "CONFIG_ERROR"


# -----------------------------------------------------------------------------
# 400 / 403
# -----------------------------------------------------------------------------

class InvalidInputError(ProxyError):
    """Raised on malformed client input (JSON body, parameters)."""
    status_code = 400
    default_message = "Invalid request"
    code = "INVALID_INPUT"


class InvalidURLError(InvalidInputError):
    """Raised when a target URL is not an absolute http(s) URL."""
    default_message = "Invalid URL"
    code = "INVALID_URL"


class ForbiddenError(ProxyError):
    """Raised when a static path escapes the static root."""
    status_code = 403
    default_message = "Forbidden"
    code = "FORBIDDEN"


class NotFoundError(ProxyError):
    """Raised when a static file does not exist."""
    status_code = 404
    default_message = "Not found"
    code = "NOT_FOUND"


class UnauthorizedError(ProxyError):
    """Raised when signature parameters are missing."""
    status_code = 403
    default_message = "Unauthorized"
    code = "UNAUTHORIZED"


class LinkExpiredError(UnauthorizedError):
    """Raised when a token timestamp is outside the allowed skew."""
    default_message = "Link expired"
    code = "LINK_EXPIRED"


class InvalidSignatureError(UnauthorizedError):
    """Raised when a token signature does not match."""
    default_message = "Invalid signature"
    code = "INVALID_SIGNATURE"


# -----------------------------------------------------------------------------
# 503
# -----------------------------------------------------------------------------

class OverloadedError(ProxyError):
    """Raised when the admission controller has no free slot."""
    status_code = 503
    default_message = "Server busy"
    code = "OVERLOADED"

    def __init__(self, retry_after: int = 5, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(message)

    @property
    def headers(self) -> dict:
        return {"Retry-After": str(self.retry_after)}


# -----------------------------------------------------------------------------
# 502
# -----------------------------------------------------------------------------

class UpstreamError(ProxyError):
    """Raised when the upstream request fails."""
    status_code = 502
    default_message = "Proxy error"
    code = "UPSTREAM_ERROR"

    # Benign errors are logged at info level, not as failures
    benign: bool = False


class UpstreamDisconnectedError(UpstreamError):
    """Raised when the upstream connection is reset or closed early."""
    code = "UPSTREAM_DISCONNECTED"
    benign = True


class UpstreamTimeoutError(UpstreamError):
    """Raised when an upstream hop exceeds its timeout."""
    default_message = "Upstream timeout"
    code = "UPSTREAM_TIMEOUT"


class TooManyRedirectsError(UpstreamError):
    """Raised when the redirect chain exceeds the configured bound."""
    default_message = "Too many redirects"
    code = "TOO_MANY_REDIRECTS"


class ContentNotStreamableError(UpstreamError):
    """Raised when the upstream returns an HTML page instead of media."""
    default_message = "Content not streamable"
    code = "CONTENT_NOT_STREAMABLE"


class ClientDisconnectedError(Exception):
    """Raised when the client goes away before the response starts."""
