from __future__ import annotations

import asyncio

import pytest

from slack_history.archive.store import ArchiveStore
from slack_history.errors import IndexingInProgressError, SearchEngineError
from slack_history.indexing.pipeline import IndexingPipeline
from slack_history.ledger.batcher import LedgerBatcher
from slack_history.ledger.ledger import ProcessedFileLedger
from slack_history.search.memory import InMemorySearchEngine
from tests.conftest import ArchiveBuilder, day_ts, msg


class CountingEngine(InMemorySearchEngine):
    def __init__(self, fail_on_add: set[int] | None = None) -> None:
        super().__init__()
        self.add_calls: list[int] = []
        self.fail_on_add = fail_on_add or set()

    async def add(self, docs):
        self.add_calls.append(len(docs))
        if len(self.add_calls) in self.fail_on_add:
            raise SearchEngineError("add failed", status_code=503)
        await super().add(docs)


class BlockingEngine(InMemorySearchEngine):
    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def add(self, docs):
        self.entered.set()
        await self.release.wait()
        await super().add(docs)


async def test_discover_work_lists_unprocessed_files(
    archive: ArchiveBuilder, pipeline: IndexingPipeline, ledger: ProcessedFileLedger
):
    done = archive.day("general", [msg(day_ts(0, 1))])
    todo = archive.day("general", [msg(day_ts(1, 1))])
    other = archive.day("random", [msg(day_ts(0, 1))])
    await ledger.mark_processed([done])

    work = await pipeline.discover_work()

    assert {w.chat.id: w.files for w in work} == {"C1": [todo], "C2": [other]}


async def test_run_indexes_positions_and_marks_files(
    archive: ArchiveBuilder,
    pipeline: IndexingPipeline,
    engine: InMemorySearchEngine,
    ledger: ProcessedFileLedger,
):
    general = archive.day(
        "general",
        [
            msg(day_ts(0, 1), "hello"),
            msg(day_ts(0, 2), "", subtype="channel_join"),
            msg(day_ts(0, 3), "see https://x.example", attachments=[{"url": "https://x.example"}]),
        ],
    )
    random = archive.day("random", [msg(day_ts(0, 5), "elsewhere", user="U3")])

    result = await pipeline.run()

    assert result.chats_processed == 2
    assert result.documents_indexed == 4
    assert result.files_marked == 2
    assert not result.degraded
    assert await ledger.processed_paths([general, random]) == {general, random}

    join = engine.get(f"C1_{day_ts(0, 2)}")
    assert join["text_txt_en"] == ""
    assert join["subtype_s"] == "channel_join"
    assert join["message_index_l"] == 1
    assert engine.get(f"C1_{day_ts(0, 3)}")["url_ss"] == ["https://x.example"]
    assert engine.get(f"C2_{day_ts(0, 5)}")["user_name_s"] == "carol"


async def test_overlapping_day_files_keep_positions_dense(
    archive: ArchiveBuilder,
    pipeline: IndexingPipeline,
    engine: InMemorySearchEngine,
):
    stamps = [day_ts(0, 1), day_ts(0, 5), day_ts(0, 9)]
    archive.day("general", [msg(stamps[0], "one"), msg(stamps[1], "five")])
    archive.day(
        "general",
        [msg(stamps[1], "five"), msg(stamps[2], "nine")],
        day="2023-11-14-extra",
    )

    result = await pipeline.run()

    assert result.documents_indexed == 3
    assert [engine.get(f"C1_{s}")["message_index_l"] for s in stamps] == [0, 1, 2]


async def test_batches_respect_batch_size(
    archive: ArchiveBuilder, store: ArchiveStore, batcher: LedgerBatcher
):
    engine = CountingEngine()
    archive.day("general", [msg(day_ts(0, m)) for m in range(5)])
    pipeline = IndexingPipeline(store, engine, batcher, batch_size=2)

    result = await pipeline.run()

    assert engine.add_calls == [2, 2, 1]
    assert result.documents_indexed == 5


async def test_failed_batch_degrades_run_but_other_chats_continue(
    archive: ArchiveBuilder,
    store: ArchiveStore,
    batcher: LedgerBatcher,
    ledger: ProcessedFileLedger,
):
    engine = CountingEngine(fail_on_add={2})
    general = archive.day("general", [msg(day_ts(0, m)) for m in range(3)])
    random = archive.day("random", [msg(day_ts(0, m)) for m in range(2)])
    pipeline = IndexingPipeline(store, engine, batcher, batch_size=2)

    result = await pipeline.run()

    assert result.degraded
    assert result.chats_failed == 1
    assert result.chats_processed == 1
    assert result.errors and result.errors[0].startswith("C1:")
    assert not await ledger.is_processed(general)
    assert await ledger.is_processed(random)
    assert [r.chat_id for r in result.reconciled] == ["C2"]


async def test_run_is_not_reentrant(
    archive: ArchiveBuilder, store: ArchiveStore, batcher: LedgerBatcher
):
    engine = BlockingEngine()
    archive.day("general", [msg(day_ts(0, 1))])
    pipeline = IndexingPipeline(store, engine, batcher)

    task = asyncio.create_task(pipeline.run())
    await engine.entered.wait()
    assert pipeline.running

    with pytest.raises(IndexingInProgressError):
        await pipeline.run()

    engine.release.set()
    result = await task
    assert result.chats_processed == 1
    assert not pipeline.running


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        IndexingPipeline(None, InMemorySearchEngine(), None, batch_size=0)
