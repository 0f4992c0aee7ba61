from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from slack_history.archive.store import ArchiveStore, FileMode
from slack_history.errors import ChatNotFoundError
from slack_history.models.chat import ChatRecord, SlackUser
from slack_history.models.document import document_id
from slack_history.models.message import SlackMessage
from slack_history.search.base import SearchEngine
from slack_history.search.query import (
    HL_POST_MARKER,
    HL_PRE_MARKER,
    Highlight,
    SearchQuery,
    SortOrder,
)

logger = logging.getLogger(__name__)

POSITION_FIELD = "message_index_l"
TEXT_FIELD = "text_txt_en"
TS_FIELD = "ts_us_l"
DEFAULT_SEARCH_LIMIT = 50
MAX_THREAD_MESSAGES = 10000

_HIGHLIGHT_RE = re.compile(
    f"{re.escape(HL_PRE_MARKER)}(.*?){re.escape(HL_POST_MARKER)}", re.DOTALL
)

_HIT_FIELDS = (
    "id",
    "chat_id_s",
    TS_FIELD,
    "user_s",
    "user_display_name_s",
    "thread_ts_s",
    TEXT_FIELD,
    POSITION_FIELD,
)


@dataclass
class SearchHit:
    id: str
    chat_id: str
    ts: str
    text: str
    user: str | None = None
    user_name: str | None = None
    thread_ts: str | None = None
    position: int | None = None
    highlight_phrases: list[str] = field(default_factory=list)


def format_ts(micros: int) -> str:
    """Seconds with six decimals, e.g. ``1700000000.000100``."""
    seconds, fraction = divmod(int(micros), 1_000_000)
    return f"{seconds}.{fraction:06d}"


def extract_highlights(fragments: list[str]) -> list[str]:
    """Matched phrases from marker-wrapped fragments, deduplicated."""
    phrases: dict[str, None] = {}
    for fragment in fragments:
        for match in _HIGHLIGHT_RE.finditer(fragment):
            phrase = (
                match.group(1).replace(HL_PRE_MARKER, "").replace(HL_POST_MARKER, "")
            )
            if phrase:
                phrases.setdefault(phrase)
    return list(phrases)


class QueryService:
    """Read side: chats, users, windowed/threaded message fetches and search.

    Message bodies are always read from the archive; the engine only tells
    which files hold them.
    """

    def __init__(self, store: ArchiveStore, engine: SearchEngine) -> None:
        self._store = store
        self._engine = engine

    async def list_chats(self) -> list[ChatRecord]:
        return await self._store.list_chats()

    async def list_users(self) -> list[SlackUser]:
        return await self._store.load_users()

    async def _require_chat(self, chat_id: str) -> ChatRecord:
        chat = await self._store.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)
        return chat

    async def count(self, chat_id: str) -> int:
        """Number of top-level messages indexed for *chat_id*."""
        response = await self._engine.search(
            SearchQuery(
                filters={"chat_id_s": chat_id, "thread_message_b": False}, rows=0
            )
        )
        return response.num_found

    async def fetch_window(
        self,
        chat_id: str,
        start: int,
        rows: int,
    ) -> list[SlackMessage]:
        """Top-level messages with positions ``start .. start+rows-1``, in
        position order."""
        if start < 0 or rows < 0:
            raise ValueError("start and rows must not be negative")
        if rows == 0:
            return []
        response = await self._engine.search(
            SearchQuery(
                filters={"chat_id_s": chat_id},
                ranges={POSITION_FIELD: (start, start + rows - 1)},
                fields=("id", "file_path_s", POSITION_FIELD),
                sort=((POSITION_FIELD, SortOrder.ASC),),
                rows=rows,
            )
        )
        if not response.docs:
            return []

        files = sorted({doc["file_path_s"] for doc in response.docs})
        by_id = {
            document_id(chat_id, info.message.ts): info
            for info in await self._store.load_messages(chat_id, files)
        }
        window: list[SlackMessage] = []
        for doc in response.docs:
            info = by_id.get(doc["id"])
            if info is None:
                logger.warning("Indexed message %s is missing on disk", doc["id"])
                continue
            window.append(info.message)
        return window

    async def fetch_thread(self, chat_id: str, thread_ts: str) -> list[SlackMessage]:
        """Parent and replies of a thread, parent first, then by ts."""
        response = await self._engine.search(
            SearchQuery(
                filters={"chat_id_s": chat_id, "thread_ts_s": thread_ts},
                fields=("id", "file_path_s"),
                rows=MAX_THREAD_MESSAGES,
            )
        )
        files = sorted({doc["file_path_s"] for doc in response.docs})
        if not files:
            return []
        messages = [
            info.message
            for info in await self._store.load_messages(chat_id, files)
            if info.message.thread_ts == thread_ts
        ]
        messages.sort(key=lambda m: (m.ts != thread_ts, m.ts_micros))
        return messages

    async def fetch_all(self, chat_id: str) -> list[SlackMessage]:
        """Every message of the chat straight from disk, in ts order."""
        await self._require_chat(chat_id)
        files = await self._store.list_message_files(chat_id, FileMode.ALL)
        return [info.message for info in await self._store.load_messages(chat_id, files)]

    async def search(
        self,
        text: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[SearchHit]:
        """Hits for *text*, newest first, with the matched phrases."""
        if not text or not text.strip():
            raise ValueError("Search text must not be empty")
        response = await self._engine.search(
            SearchQuery(
                text=text,
                fields=_HIT_FIELDS,
                sort=((TS_FIELD, SortOrder.DESC),),
                rows=limit,
                highlight=Highlight(fields=(TEXT_FIELD,)),
            )
        )
        hits: list[SearchHit] = []
        for doc in response.docs:
            fragments = response.highlighting.get(doc["id"], {}).get(TEXT_FIELD, [])
            position = doc.get(POSITION_FIELD)
            hits.append(
                SearchHit(
                    id=doc["id"],
                    chat_id=doc["chat_id_s"],
                    ts=format_ts(doc[TS_FIELD]),
                    text=doc.get(TEXT_FIELD, ""),
                    user=doc.get("user_s"),
                    user_name=doc.get("user_display_name_s"),
                    thread_ts=doc.get("thread_ts_s"),
                    position=(
                        int(position) if position is not None and position >= 0 else None
                    ),
                    highlight_phrases=extract_highlights(fragments),
                )
            )
        return hits
