from __future__ import annotations

import pytest

from slack_history.archive.cache import MessageCache, TtlCache
from slack_history.archive.store import ArchiveStore, FileMode
from slack_history.errors import MalformedFileError
from slack_history.ledger.ledger import ProcessedFileLedger
from tests.conftest import CHANNELS, ArchiveBuilder, msg, ts

# ── Metadata ─────────────────────────────────────────────────────────


async def test_missing_and_blank_metadata_read_as_none(
    archive: ArchiveBuilder, store: ArchiveStore
):
    archive.write_raw("groups.json", "")
    archive.write_raw("mpims.json", "[]")

    assert await store.read_metadata("dms.json") is None
    assert await store.read_metadata("groups.json") is None
    assert await store.read_metadata("mpims.json") is None


async def test_broken_metadata_raises(archive: ArchiveBuilder, store: ArchiveStore):
    archive.write_raw("dms.json", "[{oops")
    with pytest.raises(MalformedFileError):
        await store.read_metadata("dms.json")


async def test_list_chats_sorted_by_name(archive: ArchiveBuilder, store: ArchiveStore):
    archive.metadata(channels=[*CHANNELS, {"id": "C0", "name": "Announcements"}])

    chats = await store.list_chats()

    assert [c.name for c in chats] == ["Announcements", "general", "random"]
    assert (await store.get_chat("C1")).technical_name == "general"
    assert await store.get_chat("nope") is None


async def test_chat_list_is_cached_until_invalidated(
    archive: ArchiveBuilder, store: ArchiveStore
):
    assert len(await store.list_chats()) == 2
    archive.metadata(channels=[*CHANNELS, {"id": "C9", "name": "late"}])

    assert len(await store.list_chats()) == 2
    store.invalidate()
    assert len(await store.list_chats()) == 3


def test_ttl_cache_expires():
    now = [100.0]
    cache: TtlCache[str] = TtlCache(10, clock=lambda: now[0])
    cache.set("chats")

    now[0] = 109.9
    assert cache.get() == "chats"
    now[0] = 110.0
    assert cache.get() is None


def test_message_cache_evicts_oldest_first():
    cache = MessageCache(max_size=2)
    cache.put("a", ())
    cache.put("b", ())
    cache.put("c", ())

    assert "a" not in cache
    assert "b" in cache and "c" in cache
    assert len(cache) == 2


# ── Chat directories ─────────────────────────────────────────────────


async def test_directory_resolution_prefers_display_name(
    archive: ArchiveBuilder, store: ArchiveStore
):
    archive.day("general", [msg(ts(0))])
    archive.day("C1", [msg(ts(1))])
    archive.day("C2", [msg(ts(2))])

    assert await store.resolve_chat_directory("C1") == archive.root / "general"
    assert await store.resolve_chat_directory("C2") == archive.root / "C2"


async def test_unresolvable_chat_is_not_an_error(store: ArchiveStore):
    assert await store.resolve_chat_directory("C1") is None
    assert await store.resolve_chat_directory("unknown") is None
    assert await store.list_message_files("unknown") == []


async def test_list_message_files_sorted(archive: ArchiveBuilder, store: ArchiveStore):
    archive.day("general", [msg(ts(0))], day="2023-11-16")
    archive.day("general", [msg(ts(0))], day="2023-11-14")
    archive.write_raw("general/notes.txt", "not a message file")

    assert await store.list_message_files("C1") == [
        "general/2023-11-14.json",
        "general/2023-11-16.json",
    ]


async def test_unprocessed_mode_skips_ledger_entries(
    archive: ArchiveBuilder, store: ArchiveStore, ledger: ProcessedFileLedger
):
    first = archive.day("general", [msg(ts(0))], day="2023-11-14")
    second = archive.day("general", [msg(ts(0))], day="2023-11-15")
    await ledger.mark_processed([first])

    assert await store.list_message_files("C1", FileMode.UNPROCESSED) == [second]
    assert await store.list_message_files("C1", FileMode.ALL) == [first, second]


async def test_unprocessed_mode_needs_a_ledger(archive: ArchiveBuilder):
    archive.day("general", [msg(ts(0))])
    store = ArchiveStore(archive.root)
    with pytest.raises(RuntimeError):
        await store.list_message_files("C1", FileMode.UNPROCESSED)


# ── Messages ─────────────────────────────────────────────────────────


async def test_messages_merged_and_sorted_across_files(
    archive: ArchiveBuilder, store: ArchiveStore
):
    late = archive.day("general", [msg(ts(3), "d"), msg(ts(1), "b")], day="2023-11-15")
    early = archive.day("general", [msg(ts(2), "c"), msg(ts(0), "a")], day="2023-11-14")

    infos = await store.load_messages("C1", [late, early])

    assert [i.message.text for i in infos] == ["a", "b", "c", "d"]
    assert [i.file_path for i in infos] == [early, late, early, late]


async def test_malformed_file_is_skipped(archive: ArchiveBuilder, store: ArchiveStore):
    good = archive.day("general", [msg(ts(0), "ok")], day="2023-11-14")
    broken = "general/2023-11-15.json"
    archive.write_raw(broken, '[{"ts": "1700000000.1", "text": ')
    not_array = "general/2023-11-16.json"
    archive.write_raw(not_array, '{"ts": "1700000000.1"}')

    infos = await store.load_messages("C1", [good, broken, not_array])

    assert [i.message.text for i in infos] == ["ok"]


async def test_invalid_messages_are_dropped(archive: ArchiveBuilder, store: ArchiveStore):
    relative = archive.day(
        "general",
        [
            msg(ts(0), "kept"),
            {"type": "message", "text": "no ts"},
            msg("not-a-number", "bad ts"),
            "not an object",
            msg(ts(1), "also kept"),
        ],
        day="2023-11-14",
    )

    infos = await store.load_messages("C1", [relative])

    assert [i.message.text for i in infos] == ["kept", "also kept"]


async def test_blank_message_file_has_no_messages(
    archive: ArchiveBuilder, store: ArchiveStore
):
    archive.write_raw("general/2023-11-14.json", "[]")
    assert await store.load_messages("C1", ["general/2023-11-14.json"]) == []


async def test_vanished_file_is_skipped(archive: ArchiveBuilder, store: ArchiveStore):
    kept = archive.day("general", [msg(ts(0), "here")], day="2023-11-14")
    gone = archive.day("general", [msg(ts(1), "gone")], day="2023-11-15")
    (archive.root / gone).unlink()

    infos = await store.load_messages("C1", [kept, gone])
    assert [i.message.text for i in infos] == ["here"]


async def test_loaded_messages_are_cached(archive: ArchiveBuilder, store: ArchiveStore):
    relative = archive.day("general", [msg(ts(0), "first")], day="2023-11-14")
    assert [i.message.text for i in await store.load_messages("C1", [relative])] == [
        "first"
    ]

    archive.day("general", [msg(ts(0), "second")], day="2023-11-14")
    cached = await store.load_messages("C1", [relative])
    assert [i.message.text for i in cached] == ["first"]

    store.invalidate()
    fresh = await store.load_messages("C1", [relative])
    assert [i.message.text for i in fresh] == ["second"]


async def test_relative_and_absolute_paths(store: ArchiveStore):
    absolute = store.base_path / "general" / "2023-11-14.json"
    assert store.relative_path(absolute) == "general/2023-11-14.json"
    assert store.absolute_path("general/2023-11-14.json") == absolute


async def test_repeated_ts_across_files_loads_once(
    archive: ArchiveBuilder, store: ArchiveStore
):
    day = archive.day("general", [msg(ts(1), "a"), msg(ts(5), "b")], day="2023-11-14")
    extra = archive.day(
        "general", [msg(ts(5), "b again"), msg(ts(9), "c")], day="2023-11-14-extra"
    )

    infos = await store.load_messages("C1", [extra, day])

    assert [i.message.text for i in infos] == ["a", "b", "c"]
    assert [i.file_path for i in infos] == [day, day, extra]


async def test_relative_base_path_loads_messages(
    archive: ArchiveBuilder,
    ledger: ProcessedFileLedger,
    monkeypatch: pytest.MonkeyPatch,
):
    archive.day("general", [msg(ts(0), "a"), msg(ts(1), "b"), msg(ts(2), "c")])
    monkeypatch.chdir(archive.root.parent)
    store = ArchiveStore(archive.root.name, ledger=ledger)

    files = await store.list_message_files("C1", FileMode.ALL)
    infos = await store.load_messages("C1", files)

    assert files == ["general/2023-11-14.json"]
    assert [i.message.text for i in infos] == ["a", "b", "c"]
    assert store.absolute_path(files[0]).is_file()
