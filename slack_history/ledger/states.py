"""States of the ledger write batcher.

    COLLECTING ──(size threshold | idle timeout | flush())──▶ FLUSHING
    FLUSHING   ──(commit done or failed)──────────────────────▶ COLLECTING
    any        ──(close())────────────────────────────────────▶ CLOSED
"""

from __future__ import annotations

from enum import StrEnum


class BatcherState(StrEnum):
    COLLECTING = "collecting"
    FLUSHING = "flushing"
    CLOSED = "closed"


class FlushTrigger(StrEnum):
    SIZE = "size"
    IDLE = "idle"
    EXPLICIT = "explicit"
    SHUTDOWN = "shutdown"


_ALLOWED: dict[BatcherState, set[BatcherState]] = {
    BatcherState.COLLECTING: {BatcherState.FLUSHING, BatcherState.CLOSED},
    BatcherState.FLUSHING: {BatcherState.COLLECTING, BatcherState.CLOSED},
    BatcherState.CLOSED: set(),
}


def check_transition(current: BatcherState, new: BatcherState) -> None:
    if new not in _ALLOWED[current]:
        raise RuntimeError(f"Invalid batcher transition: {current} -> {new}")
