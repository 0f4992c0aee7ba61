from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Iterable

from slack_history.ledger.ledger import ProcessedFileLedger
from slack_history.ledger.states import BatcherState, FlushTrigger, check_transition

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_IDLE_TIMEOUT = 10.0


class LedgerBatcher:
    """Bounded write queue in front of :class:`ProcessedFileLedger`.

    Paths are collected until the queue reaches ``batch_size``, until no new
    path has arrived for ``idle_timeout`` seconds, or until :meth:`flush` /
    :meth:`close` is called.  Only one flush runs at a time.

    A failed flush puts its paths back at the head of the queue.  When the
    flush was requested by a caller (size threshold, ``flush()``,
    ``close()``) the error propagates to that caller; an idle-timeout flush
    has no caller, so its error is logged and the paths wait for the next
    trigger.
    """

    def __init__(
        self,
        ledger: ProcessedFileLedger,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._ledger = ledger
        self._batch_size = batch_size
        self._idle_timeout = idle_timeout
        self._queue: list[str] = []
        self._state = BatcherState.COLLECTING
        self._lock = asyncio.Lock()
        self._idle_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> BatcherState:
        return self._state

    @property
    def pending(self) -> list[str]:
        return list(self._queue)

    def _transition(self, new: BatcherState) -> None:
        check_transition(self._state, new)
        logger.debug("Ledger batcher %s -> %s", self._state, new)
        self._state = new

    async def enqueue(self, paths: Iterable[str]) -> None:
        if self._state is BatcherState.CLOSED:
            raise RuntimeError("Ledger batcher is closed")
        self._queue.extend(paths)
        if len(self._queue) >= self._batch_size:
            self._cancel_idle()
            await self._flush(FlushTrigger.SIZE)
        elif self._queue:
            self._schedule_idle()

    async def flush(self) -> int:
        """Commit everything queued so far; returns the number of paths."""
        self._cancel_idle()
        return await self._flush(FlushTrigger.EXPLICIT)

    async def close(self) -> None:
        """Flush remaining paths and refuse further work."""
        if self._state is BatcherState.CLOSED:
            return
        self._cancel_idle()
        try:
            await self._flush(FlushTrigger.SHUTDOWN)
        finally:
            self._transition(BatcherState.CLOSED)

    async def _flush(self, trigger: FlushTrigger) -> int:
        async with self._lock:
            if not self._queue:
                return 0
            paths, self._queue = self._queue, []
            self._transition(BatcherState.FLUSHING)
            logger.info("Flushing %d processed paths (%s)", len(paths), trigger)
            try:
                await self._ledger.mark_processed(paths)
            except Exception:
                self._queue = paths + self._queue
                raise
            finally:
                self._transition(BatcherState.COLLECTING)
            return len(paths)

    # -- idle timer -----------------------------------------------------------

    def _schedule_idle(self) -> None:
        self._cancel_idle()
        self._idle_task = asyncio.create_task(self._idle_flush())

    def _cancel_idle(self) -> None:
        task = self._idle_task
        self._idle_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _idle_flush(self) -> None:
        await asyncio.sleep(self._idle_timeout)
        self._idle_task = None
        logger.info("Ledger batch idle timeout reached")
        try:
            await self._flush(FlushTrigger.IDLE)
        except Exception as exc:
            logger.error("Idle flush of processed paths failed: %s", exc, exc_info=True)

    async def wait_idle(self) -> None:
        """Wait for a pending idle flush to finish (used on shutdown paths)."""
        task = self._idle_task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
