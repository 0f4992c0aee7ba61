"""Main facade for the slack_history library."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from slack_history.archive.cache import MessageCache
from slack_history.archive.store import ArchiveStore
from slack_history.db.sqlite import SQLiteBackend
from slack_history.errors import IndexingInProgressError
from slack_history.facade.types import IndexingStatus
from slack_history.indexing.pipeline import IndexingPipeline
from slack_history.indexing.reconciler import PositionReconciler
from slack_history.indexing.types import IndexingResult
from slack_history.ledger.batcher import LedgerBatcher
from slack_history.ledger.ledger import ProcessedFileLedger
from slack_history.query.service import DEFAULT_SEARCH_LIMIT, QueryService, SearchHit
from slack_history.registry import engine_registry

if TYPE_CHECKING:
    from slack_history.config import Config
    from slack_history.models.chat import ChatRecord, SlackUser
    from slack_history.models.message import SlackMessage
    from slack_history.search.base import SearchEngine

logger = logging.getLogger(__name__)


class SlackHistory:
    """Main entry point for the slack_history library.

    Usage::

        from slack_history.config import load_config

        history = SlackHistory.from_config(load_config())
        await history.init()
        history.start_indexing()
        chats = await history.list_chats()
        page = await history.get_messages(chats[0].id, start=0, rows=50)
        await history.close()
    """

    def __init__(
        self,
        store: ArchiveStore,
        ledger: ProcessedFileLedger,
        engine: SearchEngine,
        *,
        batch_size: int = 1000,
        ledger_batch_size: int = 100,
        ledger_idle_timeout: float = 10.0,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._engine = engine
        self._batcher = LedgerBatcher(
            ledger,
            batch_size=ledger_batch_size,
            idle_timeout=ledger_idle_timeout,
        )
        self._pipeline = IndexingPipeline(
            store,
            engine,
            self._batcher,
            PositionReconciler(engine, store),
            batch_size=batch_size,
        )
        self._queries = QueryService(store, engine)
        self._task: asyncio.Task[IndexingResult] | None = None
        self._status = IndexingStatus()

    @classmethod
    def from_config(cls, config: Config) -> SlackHistory:
        """Wire the archive, ledger and engine described by *config*."""
        ledger = ProcessedFileLedger(SQLiteBackend(config.ledger_path))
        store = ArchiveStore(
            Path(config.data_dir),
            ledger=ledger,
            message_cache=MessageCache(config.message_cache_size),
            chat_cache_ttl=config.chat_cache_ttl,
        )
        engine = engine_registry.build(config.engine_provider, config.engine_config())
        return cls(
            store,
            ledger,
            engine,
            batch_size=config.batch_size,
            ledger_batch_size=config.ledger_batch_size,
            ledger_idle_timeout=config.ledger_idle_timeout,
        )

    @property
    def store(self) -> ArchiveStore:
        return self._store

    @property
    def engine(self) -> SearchEngine:
        return self._engine

    async def init(self) -> None:
        """Create the ledger table and check the engine is reachable.

        A ledger failure is fatal (:class:`LedgerInitError`); an unreachable
        engine is only logged.
        """
        await self._ledger.init()
        if await self._engine.ping():
            logger.info("Search engine is reachable")
        else:
            logger.warning("Search engine did not answer the health check")

    async def close(self) -> None:
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        try:
            await self._batcher.close()
        finally:
            await self._engine.close()
            await self._ledger.close()

    # ── Indexing ─────────────────────────────────────────────────────

    @property
    def indexing_status(self) -> IndexingStatus:
        return self._status

    @property
    def indexing(self) -> bool:
        return self._task is not None and not self._task.done()

    def start_indexing(self) -> asyncio.Task[IndexingResult]:
        """Run one indexing pass in the background.

        Raises :class:`IndexingInProgressError` while a pass is running.
        """
        if self.indexing or self._pipeline.running:
            raise IndexingInProgressError()
        self._task = asyncio.create_task(self.run_indexing())
        return self._task

    async def run_indexing(self) -> IndexingResult:
        """Run one indexing pass and wait for it."""
        self._status.running = True
        self._status.started_at = datetime.now(UTC)
        try:
            result = await self._pipeline.run()
        except Exception as exc:
            logger.error("Indexing failed: %s", exc, exc_info=True)
            self._status.last_error = str(exc)
            raise
        else:
            self._status.last_result = result
            self._status.last_error = None
            return result
        finally:
            self._status.running = False
            self._status.finished_at = datetime.now(UTC)

    # ── Queries ──────────────────────────────────────────────────────

    async def list_chats(self) -> list[ChatRecord]:
        return await self._queries.list_chats()

    async def list_users(self) -> list[SlackUser]:
        return await self._queries.list_users()

    async def get_messages(
        self,
        chat_id: str,
        *,
        start: int | None = None,
        rows: int | None = None,
        thread_ts: str | None = None,
    ) -> list[SlackMessage]:
        """Messages of a chat selected by position window or thread.

        ``start``/``rows`` return a window of top-level messages, ``thread_ts``
        a whole thread.  With neither, every message of the chat is returned.
        """
        if start is not None or rows is not None:
            if start is None or rows is None:
                raise ValueError("start and rows must be given together")
            return await self._queries.fetch_window(chat_id, start, rows)
        if thread_ts is not None:
            return await self._queries.fetch_thread(chat_id, thread_ts)
        return await self._queries.fetch_all(chat_id)

    async def count_messages(self, chat_id: str) -> int:
        return await self._queries.count(chat_id)

    async def search(
        self,
        text: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[SearchHit]:
        return await self._queries.search(text, limit)
