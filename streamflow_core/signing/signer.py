"""
Signer
======
Issues signed, time-limited proxy links.
"""

import time
from typing import Optional
from urllib.parse import quote

import structlog

from ..exceptions import InvalidURLError
from .models import AuthToken
from .signature import compute_signature, generate_nonce, is_valid_http_url

logger = structlog.get_logger(__name__)

DEFAULT_PROXY_PATH = "/proxy"


def sign(target_url: str, secret: str, now: Optional[int] = None) -> AuthToken:
    """
    Sign a target URL.

    Nothing is recorded: the nonce is not stored and reuse is not tracked,
    so the link stays valid for anyone holding it until it expires.

    Args:
        target_url: Absolute http(s) URL to authorize
        secret: Shared signing secret
        now: Issue time in Unix seconds (defaults to the current time)

    Returns:
        AuthToken for the target

    Raises:
        InvalidURLError: If target_url is not an absolute http(s) URL
    """
    if not is_valid_http_url(target_url):
        raise InvalidURLError()

    issued_at = int(time.time()) if now is None else int(now)
    nonce = generate_nonce()
    signature = compute_signature(secret, target_url, issued_at, nonce)

    return AuthToken(
        target_url=target_url,
        issued_at=issued_at,
        nonce=nonce,
        signature=signature,
    )


def build_signed_path(token: AuthToken, base_path: str = DEFAULT_PROXY_PATH) -> str:
    """
    Serialize a token into a relative proxy URL.

    Relative so the player can call it on whatever origin served the page.
    """
    return (
        f"{base_path}?url={quote(token.target_url, safe='')}"
        f"&t={token.issued_at}"
        f"&nonce={quote(token.nonce, safe='')}"
        f"&sig={quote(token.signature, safe='')}"
    )


def create_signed_path(
    target_url: str,
    secret: str,
    base_path: str = DEFAULT_PROXY_PATH,
    now: Optional[int] = None,
) -> str:
    """Sign a target URL and return the relative proxy path."""
    token = sign(target_url, secret, now=now)
    logger.info("signed_url_issued", issued_at=token.issued_at, base_path=base_path)
    return build_signed_path(token, base_path=base_path)
