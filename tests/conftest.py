from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from slack_history.archive.store import ArchiveStore
from slack_history.db.sqlite import SQLiteBackend
from slack_history.indexing.pipeline import IndexingPipeline
from slack_history.ledger.batcher import LedgerBatcher
from slack_history.ledger.ledger import ProcessedFileLedger
from slack_history.search.memory import InMemorySearchEngine

BASE_TS = 1_700_000_000  # 2023-11-14T22:13:20Z
DAY0 = 1_699_920_000  # 2023-11-14T00:00:00Z

USERS: list[dict[str, Any]] = [
    {
        "id": "U1",
        "name": "alice",
        "profile": {"real_name": "Alice Liddell", "display_name": "alice.l"},
    },
    {
        "id": "U2",
        "name": "bob",
        "profile": {"real_name": "Bob Builder", "display_name": ""},
    },
    {"id": "U3", "name": "carol", "profile": {"real_name": "Carol"}},
]

CHANNELS: list[dict[str, Any]] = [
    {"id": "C1", "name": "general", "members": ["U1", "U2"]},
    {"id": "C2", "name": "random", "members": ["U1", "U3"]},
]


def ts(n: int, micros: int = 100) -> str:
    """Timestamp ``n`` minutes after :data:`BASE_TS`."""
    return f"{BASE_TS + n * 60}.{micros:06d}"


def day_ts(day: int, minute: int, micros: int = 100) -> str:
    """Timestamp *minute* minutes into day *day* (0 = 2023-11-14)."""
    return f"{DAY0 + day * 86_400 + minute * 60}.{micros:06d}"


def day_of(value: str) -> str:
    return datetime.fromtimestamp(float(value), tz=UTC).strftime("%Y-%m-%d")


def msg(value: str, text: str = "", user: str = "U1", **extra: Any) -> dict[str, Any]:
    return {"type": "message", "ts": value, "user": user, "text": text, **extra}


class ArchiveBuilder:
    """Writes a Slack-export shaped directory tree under ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def write_json(self, relative: str, data: Any) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data))
        return path

    def write_raw(self, relative: str, content: str) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    def metadata(
        self,
        *,
        users: list[dict[str, Any]] | None = None,
        channels: list[dict[str, Any]] | None = None,
        groups: list[dict[str, Any]] | None = None,
        dms: list[dict[str, Any]] | None = None,
        mpims: list[dict[str, Any]] | None = None,
    ) -> None:
        for name, data in (
            ("users.json", users),
            ("channels.json", channels),
            ("groups.json", groups),
            ("dms.json", dms),
            ("mpims.json", mpims),
        ):
            if data is not None:
                self.write_json(name, data)

    def day(self, directory: str, messages: list[dict[str, Any]], day: str | None = None) -> str:
        """Write *messages* as one day file; returns the relative path."""
        day = day or day_of(messages[0]["ts"])
        relative = f"{directory}/{day}.json"
        self.write_json(relative, messages)
        return relative


@pytest.fixture()
def archive(tmp_path: Path) -> ArchiveBuilder:
    builder = ArchiveBuilder(tmp_path / "export")
    builder.metadata(users=USERS, channels=CHANNELS)
    return builder


@pytest.fixture()
async def db() -> AsyncGenerator[SQLiteBackend]:
    backend = SQLiteBackend(":memory:")
    yield backend
    await backend.close()


@pytest.fixture()
async def ledger(db: SQLiteBackend) -> ProcessedFileLedger:
    ledger = ProcessedFileLedger(db)
    await ledger.init()
    return ledger


@pytest.fixture()
def engine() -> InMemorySearchEngine:
    return InMemorySearchEngine()


@pytest.fixture()
def store(archive: ArchiveBuilder, ledger: ProcessedFileLedger) -> ArchiveStore:
    return ArchiveStore(archive.root, ledger=ledger)


@pytest.fixture()
async def batcher(ledger: ProcessedFileLedger) -> AsyncGenerator[LedgerBatcher]:
    batcher = LedgerBatcher(ledger, batch_size=100, idle_timeout=60)
    yield batcher
    await batcher.close()


@pytest.fixture()
def pipeline(
    store: ArchiveStore,
    engine: InMemorySearchEngine,
    batcher: LedgerBatcher,
) -> IndexingPipeline:
    return IndexingPipeline(store, engine, batcher)
