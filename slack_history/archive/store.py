from __future__ import annotations

import asyncio
import io
import json
import logging
from collections.abc import Sequence
from enum import StrEnum
from pathlib import Path
from typing import Any

import ijson
from pydantic import ValidationError

from slack_history.archive.cache import MessageCache, TtlCache
from slack_history.archive.chats import UserDirectory, build_chat_records
from slack_history.errors import MalformedFileError
from slack_history.ledger.ledger import ProcessedFileLedger
from slack_history.models.chat import ChatRecord, SlackConversation, SlackUser
from slack_history.models.message import MessageInfo, SlackMessage

logger = logging.getLogger(__name__)

DEFAULT_CHAT_CACHE_TTL = 5 * 60.0

METADATA_FILES = {
    "users": "users.json",
    "channels": "channels.json",
    "groups": "groups.json",
    "dms": "dms.json",
    "mpims": "mpims.json",
}


class FileMode(StrEnum):
    ALL = "all"
    UNPROCESSED = "unprocessed"


def _is_blank(raw: bytes) -> bool:
    # An export writes "[]" for chats without messages.
    return len(raw.strip()) <= 2


def _parse_message_file(path: Path, relative: str) -> list[MessageInfo]:
    """Parse one message file; invalid messages are dropped, anything that
    is not a JSON array raises :class:`MalformedFileError`."""
    raw = path.read_bytes()
    if _is_blank(raw):
        return []
    if not raw.lstrip().startswith(b"["):
        raise MalformedFileError(relative, "top-level value is not an array")

    infos: list[MessageInfo] = []
    dropped = 0
    try:
        for item in ijson.items(io.BytesIO(raw), "item", use_float=True):
            if not isinstance(item, dict):
                dropped += 1
                continue
            try:
                message = SlackMessage.model_validate(item)
            except ValidationError:
                dropped += 1
                continue
            infos.append(MessageInfo(message=message, file_path=relative))
    except ijson.JSONError as exc:
        raise MalformedFileError(relative, str(exc)) from exc

    if dropped:
        logger.warning("Dropped %d invalid messages from %s", dropped, relative)
    return infos


class ArchiveStore:
    """Read access to an exported archive on disk.

    Layout::

        <base>/users.json
        <base>/channels.json   groups.json   dms.json   mpims.json
        <base>/<chat directory>/<anything>.json   (arrays of messages)

    The chat directory is named after the chat's display name, its
    technical name or its id, whichever exists first.
    """

    def __init__(
        self,
        base_path: str | Path,
        *,
        ledger: ProcessedFileLedger | None = None,
        message_cache: MessageCache | None = None,
        chat_cache_ttl: float = DEFAULT_CHAT_CACHE_TTL,
    ) -> None:
        self._base = Path(base_path).resolve()
        self._ledger = ledger
        self._messages = message_cache or MessageCache()
        self._chats: TtlCache[list[ChatRecord]] = TtlCache(chat_cache_ttl)

    @property
    def base_path(self) -> Path:
        return self._base

    def relative_path(self, path: str | Path) -> str:
        p = Path(path)
        if p.is_absolute():
            p = p.relative_to(self._base)
        return p.as_posix()

    def absolute_path(self, relative: str) -> Path:
        return self._base / relative

    def invalidate(self) -> None:
        self._messages.clear()
        self._chats.clear()

    # ---- metadata ----

    async def read_metadata(self, filename: str) -> list[Any] | None:
        """Return the parsed JSON list in *filename*, or ``None`` when the
        file is missing or empty."""
        path = self._base / filename
        try:
            raw = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            return None
        if _is_blank(raw):
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("Error reading data file %s: %s", filename, exc)
            raise MalformedFileError(filename, str(exc)) from exc
        if not isinstance(data, list):
            raise MalformedFileError(filename, "top-level value is not an array")
        return data

    async def _load_conversations(self, key: str) -> list[SlackConversation]:
        items = await self.read_metadata(METADATA_FILES[key]) or []
        conversations: list[SlackConversation] = []
        for item in items:
            try:
                conversations.append(SlackConversation.model_validate(item))
            except ValidationError:
                logger.warning("Skipping invalid entry in %s", METADATA_FILES[key])
        return conversations

    async def load_users(self) -> list[SlackUser]:
        items = await self.read_metadata(METADATA_FILES["users"]) or []
        users: list[SlackUser] = []
        for item in items:
            try:
                users.append(SlackUser.model_validate(item))
            except ValidationError:
                logger.warning("Skipping invalid entry in users.json")
        return users

    async def user_directory(self) -> UserDirectory:
        return UserDirectory(await self.load_users())

    async def list_chats(self) -> list[ChatRecord]:
        cached = self._chats.get()
        if cached is not None:
            logger.debug("Returning cached chat list")
            return cached

        logger.info("Fetching and processing fresh chat list")
        channels, groups, dms, mpims, users = await asyncio.gather(
            self._load_conversations("channels"),
            self._load_conversations("groups"),
            self._load_conversations("dms"),
            self._load_conversations("mpims"),
            self.load_users(),
        )
        chats = build_chat_records(
            channels=channels,
            groups=groups,
            dms=dms,
            mpims=mpims,
            users=UserDirectory(users),
        )
        self._chats.set(chats)
        logger.info("Cached %d chats", len(chats))
        return chats

    async def get_chat(self, chat_id: str) -> ChatRecord | None:
        for chat in await self.list_chats():
            if chat.id == chat_id:
                return chat
        return None

    # ---- message files ----

    async def resolve_chat_directory(self, chat_id: str) -> Path | None:
        chat = await self.get_chat(chat_id)
        if chat is None:
            logger.warning("Could not find chat info for ID: %s", chat_id)
            return None
        for candidate in chat.directory_candidates:
            path = self._base / candidate
            if await asyncio.to_thread(path.is_dir):
                return path
        logger.warning(
            "Could not find message directory for chat ID: %s using name '%s' or ID",
            chat_id,
            chat.name,
        )
        return None

    async def list_message_files(
        self,
        chat_id: str,
        mode: FileMode = FileMode.ALL,
    ) -> list[str]:
        """Archive-relative paths of the chat's ``*.json`` files, sorted."""
        directory = await self.resolve_chat_directory(chat_id)
        if directory is None:
            return []
        found = await asyncio.to_thread(
            lambda: sorted(p for p in directory.glob("*.json") if p.is_file())
        )
        files = [self.relative_path(p) for p in found]
        if mode is FileMode.UNPROCESSED:
            if self._ledger is None:
                raise RuntimeError("Listing unprocessed files requires a ledger")
            processed = await self._ledger.processed_paths(files)
            files = [f for f in files if f not in processed]
        return files

    async def load_messages(
        self,
        chat_id: str,
        files: Sequence[str],
    ) -> list[MessageInfo]:
        """Load, validate and merge the messages of *files*, sorted by ts.

        A file that cannot be read or parsed is logged and skipped.
        """
        key = (chat_id, tuple(sorted(files)))
        cached = self._messages.get(key)
        if cached is not None:
            return list(cached)

        results = await asyncio.gather(
            *(self._read_file(f) for f in key[1]),
        )
        # Overlapping exports may repeat a ts; the first file in path order wins.
        unique: dict[str, MessageInfo] = {}
        for infos in results:
            for info in infos:
                unique.setdefault(info.message.ts, info)
        merged = sorted(unique.values(), key=lambda info: info.sort_key)

        self._messages.put(key, tuple(merged))
        return merged

    async def _read_file(self, relative: str) -> list[MessageInfo]:
        path = self.absolute_path(relative)
        try:
            return await asyncio.to_thread(_parse_message_file, path, relative)
        except FileNotFoundError:
            logger.warning("Message file disappeared: %s", relative)
        except (MalformedFileError, OSError, UnicodeDecodeError) as exc:
            logger.error("Error reading or parsing message file %s: %s", relative, exc)
        return []
