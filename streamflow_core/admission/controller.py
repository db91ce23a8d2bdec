"""
Admission Controller
====================
Process-wide concurrency ceiling with immediate rejection.
"""

import threading
from typing import Optional

import structlog

from .models import AdmissionSnapshot

logger = structlog.get_logger(__name__)


class AdmissionController:
    """
    Counts in-flight proxy operations against a fixed ceiling.

    Not a semaphore: a full controller rejects straight away instead of
    queueing, so callers answer 503 with Retry-After.

    Example:
        admission = AdmissionController(limit=200)

        ticket = admission.acquire()
        if ticket is None:
            return busy_response()
        try:
            ...
        finally:
            ticket.release()
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self._active = 0
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        """Take a slot if one is free. Never blocks."""
        with self._lock:
            if self._active >= self.limit:
                return False
            self._active += 1
            return True

    def release(self) -> None:
        """Return a slot."""
        with self._lock:
            if self._active == 0:
                logger.error("admission_release_underflow", limit=self.limit)
                return
            self._active -= 1

    def snapshot(self) -> AdmissionSnapshot:
        with self._lock:
            return AdmissionSnapshot(active=self._active, limit=self.limit)

    def acquire(self) -> Optional["AdmissionTicket"]:
        """Take a slot and wrap it in a ticket, or return None when full."""
        if not self.try_acquire():
            return None
        return AdmissionTicket(self)


class AdmissionTicket:
    """
    One acquired admission slot.

    release() is idempotent: the first call returns the slot, later calls
    do nothing. Cleanup paths that may race (relay completion, handler
    finally blocks) can all call it.
    """

    def __init__(self, controller: AdmissionController):
        self._controller = controller
        self._released = False
        self._lock = threading.Lock()

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """Return the slot. Returns True only for the call that released it."""
        with self._lock:
            if self._released:
                return False
            self._released = True
        self._controller.release()
        return True

    def __enter__(self) -> "AdmissionTicket":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
