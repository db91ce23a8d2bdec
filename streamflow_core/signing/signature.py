"""
Signature Functions
===================
HMAC signature computation for signed proxy links.
"""

import base64
import hmac
import hashlib
import secrets
import time
from typing import Optional
from urllib.parse import urlsplit

# Configuration
MAX_SKEW_SECONDS = 300  # 5 minutes
SIGNATURE_ALGORITHM = "sha256"
NONCE_BYTES = 16


def signing_message(target_url: str, timestamp: str, nonce: str) -> str:
    """Build the exact string covered by the signature."""
    return f"{target_url}|{timestamp}|{nonce}"


def compute_signature(secret: str, target_url: str, timestamp, nonce: str) -> str:
    """
    Compute the HMAC-SHA256 signature for a signed link.

    The signature covers the target URL, the issue timestamp and the nonce,
    joined with "|". The timestamp is signed exactly as it appears in the
    link, so verification must pass the raw query value.

    Args:
        secret: Shared signing secret
        target_url: Absolute upstream URL
        timestamp: Unix timestamp in seconds (int or its string form)
        nonce: Random hex nonce

    Returns:
        Base64-encoded HMAC-SHA256 digest
    """
    message = signing_message(target_url, str(timestamp), nonce)
    digest = hmac.new(
        secret.encode(),
        message.encode(),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def signatures_match(expected: str, provided: str) -> bool:
    """Constant-time comparison of two signatures."""
    return hmac.compare_digest(expected.encode(), provided.encode())


def check_timestamp_skew(
    timestamp: int,
    now: Optional[int] = None,
    max_skew: int = MAX_SKEW_SECONDS,
) -> bool:
    """
    Check if timestamp is within acceptable skew.

    Tokens from the future are rejected the same way as expired ones.
    """
    current_time = int(time.time()) if now is None else now
    return abs(current_time - timestamp) <= max_skew


def generate_nonce() -> str:
    """Generate a 16-byte random nonce, hex encoded."""
    return secrets.token_hex(NONCE_BYTES)


def is_valid_http_url(value: Optional[str]) -> bool:
    """Check that value is an absolute http or https URL with a host."""
    if not value:
        return False
    try:
        parts = urlsplit(value)
        host = parts.hostname
        # Accessing port validates it
        parts.port
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(host)
