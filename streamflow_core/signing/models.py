"""
Signing Models
==============
Data models and enums for signed proxy links.
"""

from typing import Optional
from dataclasses import dataclass
from enum import Enum


class RejectReason(str, Enum):
    """Reasons for rejecting a signed link."""
    UNAUTHORIZED = "unauthorized"
    INVALID_URL = "invalid_url"
    EXPIRED = "expired"
    INVALID_SIGNATURE = "invalid_signature"


@dataclass(frozen=True)
class AuthToken:
    """A signed, time-limited authorization for one target URL."""
    target_url: str
    issued_at: int
    nonce: str
    signature: str


@dataclass(frozen=True)
class VerifyResult:
    """Result of verifying a signed link."""
    ok: bool
    reason: Optional[RejectReason] = None

    @classmethod
    def accept(cls) -> "VerifyResult":
        return cls(ok=True)

    @classmethod
    def reject(cls, reason: RejectReason) -> "VerifyResult":
        return cls(ok=False, reason=reason)
