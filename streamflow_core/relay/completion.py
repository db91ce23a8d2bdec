"""
Completion Signal
=================
Single-assignment completion for a relayed response.
"""

import asyncio
from enum import Enum
from typing import Callable, List, Optional

import structlog

logger = structlog.get_logger(__name__)


class RelayOutcome(str, Enum):
    """How a relayed response ended."""
    COMPLETED = "completed"
    CLIENT_DISCONNECTED = "client_disconnected"
    UPSTREAM_CLOSED = "upstream_closed"
    FAILED = "failed"


class CompletionSignal:
    """
    One-shot completion signal.

    The first set() wins and runs the registered callbacks; every later
    set() is a no-op. Client disconnect and pipeline completion can race
    without firing cleanup twice.
    """

    def __init__(self):
        self._outcome: Optional[RelayOutcome] = None
        self._event = asyncio.Event()
        self._callbacks: List[Callable[[RelayOutcome], None]] = []

    @property
    def done(self) -> bool:
        return self._outcome is not None

    @property
    def outcome(self) -> Optional[RelayOutcome]:
        return self._outcome

    def add_callback(self, callback: Callable[[RelayOutcome], None]) -> None:
        """Register a callback; runs immediately if already completed."""
        if self._outcome is not None:
            callback(self._outcome)
            return
        self._callbacks.append(callback)

    def set(self, outcome: RelayOutcome) -> bool:
        """Complete with outcome. Returns True only for the winning call."""
        if self._outcome is not None:
            return False
        self._outcome = outcome
        self._event.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback(outcome)
            except Exception as e:
                logger.error(
                    "completion_callback_failed",
                    outcome=outcome.value,
                    error=str(e),
                    exc_info=True,
                )
        return True

    async def wait(self) -> RelayOutcome:
        await self._event.wait()
        return self._outcome
