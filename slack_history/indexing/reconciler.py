from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import UTC, date, datetime
from pathlib import PurePosixPath
from typing import Any

from slack_history.archive.store import ArchiveStore, FileMode
from slack_history.indexing.types import ReconcileMode, ReconcileResult
from slack_history.models.document import document_id
from slack_history.models.message import MessageInfo
from slack_history.search.base import SearchEngine
from slack_history.search.query import SearchQuery, SortOrder

logger = logging.getLogger(__name__)

POSITION_FIELD = "message_index_l"
TS_FIELD = "ts_us_l"
ID_PAGE_SIZE = 1000

_FILE_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


def file_date(path: str) -> date | None:
    """Day encoded in an export file name such as ``2024-01-31.json``."""
    match = _FILE_DATE_RE.search(PurePosixPath(path).stem)
    if match is None:
        return None
    try:
        return date.fromisoformat(match.group(0))
    except ValueError:
        return None


class PositionReconciler:
    """Keeps each chat's top-level positions dense and in timestamp order.

    Positions ``0..n-1`` are assigned in ascending ``ts`` order over the
    chat's top-level (non thread reply) messages.  When the highest stored
    position still lines up with the timestamp order, only messages newer
    than it are numbered (fast path); otherwise the whole chat is renumbered
    (slow path).
    """

    def __init__(self, engine: SearchEngine, store: ArchiveStore) -> None:
        self._engine = engine
        self._store = store

    @staticmethod
    def _top_level(chat_id: str) -> dict[str, str | int | bool]:
        return {"chat_id_s": chat_id, "thread_message_b": False}

    async def count_top_level(self, chat_id: str) -> int:
        response = await self._engine.search(
            SearchQuery(filters=self._top_level(chat_id), rows=0)
        )
        return response.num_found

    async def _count_positioned(self, chat_id: str, highest: int) -> int:
        response = await self._engine.search(
            SearchQuery(
                filters=self._top_level(chat_id),
                ranges={POSITION_FIELD: (0, highest)},
                rows=0,
            )
        )
        return response.num_found

    async def last_valid_position(self, chat_id: str) -> tuple[int, int | None]:
        """Return ``(position, ts_micros)`` of the last trustworthy document.

        ``(-1, None)`` means nothing can be trusted and the chat needs a full
        renumbering.
        """
        top = self._top_level(chat_id)
        response = await self._engine.search(
            SearchQuery(
                filters=top,
                ranges={POSITION_FIELD: (0, None)},
                fields=("id", POSITION_FIELD, TS_FIELD),
                sort=((POSITION_FIELD, SortOrder.DESC),),
                rows=1,
            )
        )
        highest_doc = response.first
        if highest_doc is None:
            return -1, None
        highest = int(highest_doc[POSITION_FIELD])

        # The document at offset `highest` in ts order must be the one
        # carrying that position.
        response = await self._engine.search(
            SearchQuery(
                filters=top,
                fields=("id", TS_FIELD),
                sort=((TS_FIELD, SortOrder.ASC),),
                start=highest,
                rows=1,
            )
        )
        at_offset = response.first
        if at_offset is None or at_offset.get(TS_FIELD) != highest_doc.get(TS_FIELD):
            logger.warning(
                "Position %d of chat %s does not match timestamp order, renumbering",
                highest,
                chat_id,
            )
            return -1, None

        positioned = await self._count_positioned(chat_id, highest)
        if positioned != highest + 1:
            logger.warning(
                "Chat %s has %d positioned documents up to %d, renumbering",
                chat_id,
                positioned,
                highest,
            )
            return -1, None
        return highest, int(highest_doc[TS_FIELD])

    async def _indexed_ids(self, chat_id: str, after_ts: int | None) -> set[str]:
        ranges = {} if after_ts is None else {TS_FIELD: (after_ts + 1, None)}
        ids: set[str] = set()
        start = 0
        while True:
            response = await self._engine.search(
                SearchQuery(
                    filters=self._top_level(chat_id),
                    ranges=ranges,
                    fields=("id",),
                    sort=((TS_FIELD, SortOrder.ASC),),
                    start=start,
                    rows=ID_PAGE_SIZE,
                )
            )
            ids.update(doc["id"] for doc in response.docs)
            start += ID_PAGE_SIZE
            if start >= response.num_found or not response.docs:
                return ids

    async def _candidates(
        self,
        chat_id: str,
        files: Sequence[str],
        after_ts: int | None,
    ) -> tuple[list[MessageInfo], int]:
        """Top-level messages of *files* newer than *after_ts* that the engine
        holds, in ts order, plus the number of messages read."""
        messages = await self._store.load_messages(chat_id, files)
        indexed = await self._indexed_ids(chat_id, after_ts)
        candidates = [
            info
            for info in messages
            if info.message.is_top_level
            and (after_ts is None or info.sort_key > after_ts)
            and document_id(chat_id, info.message.ts) in indexed
        ]
        return candidates, len(messages)

    async def _write_positions(
        self,
        chat_id: str,
        candidates: Sequence[MessageInfo],
        first_position: int,
    ) -> None:
        updates: list[dict[str, Any]] = [
            {
                "id": document_id(chat_id, info.message.ts),
                POSITION_FIELD: {"set": first_position + offset},
            }
            for offset, info in enumerate(candidates)
        ]
        try:
            await self._engine.update(updates)
            await self._engine.commit()
        except Exception:
            logger.error("Failed to write positions for chat %s, rolling back", chat_id)
            await self._engine.rollback()
            raise

    async def reconcile(self, chat_id: str) -> ReconcileResult:
        total = await self.count_top_level(chat_id)
        last_position, last_ts = await self.last_valid_position(chat_id)

        if total == 0:
            return ReconcileResult(chat_id, ReconcileMode.EMPTY, last_position)
        if last_position >= 0 and total == last_position + 1:
            logger.debug("Chat %s positions are up to date (%d)", chat_id, total)
            return ReconcileResult(
                chat_id, ReconcileMode.NOOP, last_position, total=total
            )

        files = await self._store.list_message_files(chat_id, FileMode.ALL)
        if not files:
            logger.warning("No message files on disk for chat %s", chat_id)
            return ReconcileResult(
                chat_id, ReconcileMode.EMPTY, last_position, total=total
            )

        scanned = 0
        if last_ts is not None:
            last_day = datetime.fromtimestamp(last_ts / 1_000_000, tz=UTC).date()
            recent = [
                f for f in files if (day := file_date(f)) is None or day >= last_day
            ]
            candidates, scanned = await self._candidates(chat_id, recent, last_ts)
            if last_position + 1 + len(candidates) == total:
                await self._write_positions(chat_id, candidates, last_position + 1)
                logger.info(
                    "Chat %s: assigned positions %d..%d",
                    chat_id,
                    last_position + 1,
                    last_position + len(candidates),
                )
                return ReconcileResult(
                    chat_id,
                    ReconcileMode.FAST,
                    last_position,
                    assigned=len(candidates),
                    scanned=scanned,
                    total=total,
                )
            logger.warning(
                "Chat %s: %d new messages after position %d do not add up to %d, "
                "renumbering",
                chat_id,
                len(candidates),
                last_position,
                total,
            )

        candidates, read = await self._candidates(chat_id, files, None)
        scanned += read
        if len(candidates) != total:
            logger.warning(
                "Chat %s: %d indexed documents but %d found on disk",
                chat_id,
                total,
                len(candidates),
            )
        await self._write_positions(chat_id, candidates, 0)
        logger.info("Chat %s: renumbered %d messages", chat_id, len(candidates))
        return ReconcileResult(
            chat_id,
            ReconcileMode.SLOW,
            -1,
            assigned=len(candidates),
            scanned=scanned,
            total=total,
        )
