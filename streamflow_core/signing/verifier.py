"""
Verifier
========
Checks signed proxy links. Pure: no I/O and no state.
"""

import time
from typing import Optional

from .models import RejectReason, VerifyResult
from .signature import (
    MAX_SKEW_SECONDS,
    check_timestamp_skew,
    compute_signature,
    is_valid_http_url,
    signatures_match,
)


def verify(
    target_url: Optional[str],
    t: Optional[str],
    nonce: Optional[str],
    sig: Optional[str],
    secret: Optional[str],
    now: Optional[int] = None,
    max_skew: int = MAX_SKEW_SECONDS,
) -> VerifyResult:
    """
    Verify a signed link.

    Checks run in order and stop at the first failure:
    presence, URL shape, timestamp skew, signature.

    Args:
        target_url: Claimed upstream URL
        t: Issue timestamp exactly as received
        nonce: Nonce as received
        sig: Base64 signature as received
        secret: Shared signing secret
        now: Verification time in Unix seconds (defaults to the current time)
        max_skew: Allowed distance between now and t, in seconds

    Returns:
        VerifyResult with the rejection reason on failure
    """
    if not (target_url and t and nonce and sig and secret):
        return VerifyResult.reject(RejectReason.UNAUTHORIZED)

    if not is_valid_http_url(target_url):
        return VerifyResult.reject(RejectReason.INVALID_URL)

    try:
        timestamp = int(t)
    except ValueError:
        return VerifyResult.reject(RejectReason.EXPIRED)

    current_time = int(time.time()) if now is None else now
    if not check_timestamp_skew(timestamp, now=current_time, max_skew=max_skew):
        return VerifyResult.reject(RejectReason.EXPIRED)

    expected = compute_signature(secret, target_url, t, nonce)
    if not signatures_match(expected, sig):
        return VerifyResult.reject(RejectReason.INVALID_SIGNATURE)

    return VerifyResult.accept()
