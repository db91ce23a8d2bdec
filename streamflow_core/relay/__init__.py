"""
Relay Module
============
Streams upstream bodies to clients and propagates early termination.
"""

from .completion import CompletionSignal, RelayOutcome
from .response import (
    RelayResponse,
    cancel_on_disconnect,
    wait_for_disconnect,
    DEFAULT_BUFFER_BYTES,
    BENIGN_UPSTREAM_ERRORS,
)

__all__ = [
    "CompletionSignal",
    "RelayOutcome",
    "RelayResponse",
    "cancel_on_disconnect",
    "wait_for_disconnect",
    "DEFAULT_BUFFER_BYTES",
    "BENIGN_UPSTREAM_ERRORS",
]
