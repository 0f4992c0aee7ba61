"""Incremental indexing of a Slack export into the search engine.

One run discovers the files the ledger has not seen, indexes their
messages chat by chat, renumbers each chat's positions and finally hands
the files to the ledger batcher so they are skipped next time.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable

from slack_history.archive.chats import UserDirectory
from slack_history.archive.store import ArchiveStore, FileMode
from slack_history.errors import (
    ChatIndexingError,
    IndexingInProgressError,
    SlackHistoryError,
)
from slack_history.indexing.extract import LINK_FIELDS, extract_document
from slack_history.indexing.reconciler import PositionReconciler
from slack_history.indexing.types import ChatWork, IndexingResult
from slack_history.ledger.batcher import LedgerBatcher
from slack_history.models.document import IndexedDocument
from slack_history.search.base import SearchEngine

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000


class IndexingPipeline:
    def __init__(
        self,
        store: ArchiveStore,
        engine: SearchEngine,
        batcher: LedgerBatcher,
        reconciler: PositionReconciler | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        link_fields: Iterable[str] = LINK_FIELDS,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._store = store
        self._engine = engine
        self._batcher = batcher
        self._reconciler = reconciler or PositionReconciler(engine, store)
        self._batch_size = batch_size
        self._link_fields = frozenset(link_fields)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def discover_work(self) -> list[ChatWork]:
        """Chats with at least one message file not yet in the ledger."""
        work: list[ChatWork] = []
        for chat in await self._store.list_chats():
            files = await self._store.list_message_files(chat.id, FileMode.UNPROCESSED)
            if files:
                work.append(ChatWork(chat=chat, files=files))
        logger.info(
            "Found %d file(s) to index across %d chat(s)",
            sum(len(w.files) for w in work),
            len(work),
        )
        return work

    async def extract(
        self,
        item: ChatWork,
        users: UserDirectory,
    ) -> list[IndexedDocument]:
        messages = await self._store.load_messages(item.chat.id, item.files)
        return [
            extract_document(info, item.chat, users, link_fields=self._link_fields)
            for info in messages
        ]

    async def _index_chat(self, item: ChatWork, users: UserDirectory) -> int:
        documents = await self.extract(item, users)
        indexed = 0
        failed = 0
        for i in range(0, len(documents), self._batch_size):
            batch = documents[i : i + self._batch_size]
            try:
                await self._engine.add([doc.to_dict() for doc in batch])
            except SlackHistoryError as exc:
                failed += 1
                logger.error(
                    "Failed to index batch %d of chat %s: %s",
                    i // self._batch_size,
                    item.chat.id,
                    exc,
                )
                continue
            indexed += len(batch)
        await self._engine.commit()
        if failed:
            raise ChatIndexingError(item.chat.id, failed)
        logger.info("Indexed %d message(s) for chat %s", indexed, item.chat.id)
        return indexed

    async def run(self) -> IndexingResult:
        if self._running:
            raise IndexingInProgressError()
        self._running = True
        try:
            return await self._run()
        finally:
            self._running = False

    async def _run(self) -> IndexingResult:
        started = time.monotonic()
        result = IndexingResult()
        self._store.invalidate()
        users = await self._store.user_directory()
        work = await self.discover_work()

        for item in work:
            chat_id = item.chat.id
            try:
                result.documents_indexed += await self._index_chat(item, users)
                result.reconciled.append(await self._reconciler.reconcile(chat_id))
            except Exception as exc:
                # Files stay out of the ledger and are retried next run.
                logger.error("Indexing chat %s failed: %s", chat_id, exc, exc_info=True)
                result.chats_failed += 1
                result.degraded = True
                result.errors.append(f"{chat_id}: {exc}")
                continue
            await self._batcher.enqueue(item.files)
            result.chats_processed += 1
            result.files_marked += len(item.files)

        try:
            await self._engine.commit()
        except SlackHistoryError as exc:
            logger.error("Final commit failed: %s", exc)
            result.degraded = True
            result.errors.append(f"commit: {exc}")
        await self._batcher.flush()

        result.duration_seconds = time.monotonic() - started
        logger.info(
            "Indexing finished: %d chat(s), %d document(s), %d file(s)%s in %.2fs",
            result.chats_processed,
            result.documents_indexed,
            result.files_marked,
            " (degraded)" if result.degraded else "",
            result.duration_seconds,
        )
        return result
