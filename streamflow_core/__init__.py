"""
StreamFlow Core
===============
Signed, time-limited, byte-range streaming proxy for browser media players.
"""

__version__ = "1.0.0"

# Configuration
from streamflow_core.config import ProxyConfig

# Errors
from streamflow_core.exceptions import (
    ProxyError,
    ConfigurationError,
    InvalidInputError,
    InvalidURLError,
    UnauthorizedError,
    LinkExpiredError,
    InvalidSignatureError,
    OverloadedError,
    UpstreamError,
    UpstreamTimeoutError,
    TooManyRedirectsError,
    ContentNotStreamableError,
)

# Signing
from streamflow_core.signing import (
    AuthToken,
    RejectReason,
    VerifyResult,
    sign,
    verify,
    build_signed_path,
)

# Admission
from streamflow_core.admission import AdmissionController, AdmissionTicket

# Upstream
from streamflow_core.upstream import UpstreamFetcher, UpstreamResponse

# Relay
from streamflow_core.relay import CompletionSignal, RelayOutcome, RelayResponse

# Service
from streamflow_core.service import ProxyService

# Logging
from streamflow_core.logs import setup_logging, RequestLoggingMiddleware

# Applications
from streamflow_core.server import create_app
from streamflow_core.edge import create_edge_app

__all__ = [
    "__version__",
    # Configuration
    "ProxyConfig",
    # Errors
    "ProxyError",
    "ConfigurationError",
    "InvalidInputError",
    "InvalidURLError",
    "UnauthorizedError",
    "LinkExpiredError",
    "InvalidSignatureError",
    "OverloadedError",
    "UpstreamError",
    "UpstreamTimeoutError",
    "TooManyRedirectsError",
    "ContentNotStreamableError",
    # Signing
    "AuthToken",
    "RejectReason",
    "VerifyResult",
    "sign",
    "verify",
    "build_signed_path",
    # Admission
    "AdmissionController",
    "AdmissionTicket",
    # Upstream
    "UpstreamFetcher",
    "UpstreamResponse",
    # Relay
    "CompletionSignal",
    "RelayOutcome",
    "RelayResponse",
    # Service
    "ProxyService",
    # Logging
    "setup_logging",
    "RequestLoggingMiddleware",
    # Applications
    "create_app",
    "create_edge_app",
]
