"""
Admission Models
================
Data models for admission control decisions.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class AdmissionSnapshot:
    """Point-in-time view of admission state."""
    active: int
    limit: int

    @property
    def available(self) -> int:
        return max(0, self.limit - self.active)

    @property
    def saturated(self) -> bool:
        return self.active >= self.limit
