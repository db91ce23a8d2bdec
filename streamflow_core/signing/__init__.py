"""
Signing Module
==============
Time-limited HMAC signed links for the proxy endpoint.
"""

from .models import AuthToken, RejectReason, VerifyResult
from .signature import (
    compute_signature,
    signing_message,
    signatures_match,
    check_timestamp_skew,
    generate_nonce,
    is_valid_http_url,
    MAX_SKEW_SECONDS,
    SIGNATURE_ALGORITHM,
)
from .signer import sign, build_signed_path, create_signed_path, DEFAULT_PROXY_PATH
from .verifier import verify

__all__ = [
    # Models
    "AuthToken",
    "RejectReason",
    "VerifyResult",
    # Signature
    "compute_signature",
    "signing_message",
    "signatures_match",
    "check_timestamp_skew",
    "generate_nonce",
    "is_valid_http_url",
    "MAX_SKEW_SECONDS",
    "SIGNATURE_ALGORITHM",
    # Signer / Verifier
    "sign",
    "build_signed_path",
    "create_signed_path",
    "DEFAULT_PROXY_PATH",
    "verify",
]
