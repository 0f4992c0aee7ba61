from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


def parse_ts(ts: str) -> float:
    """Parse a Slack ``ts`` string (``"1700000000.000100"``) into seconds."""
    value = float(ts)
    if not math.isfinite(value):
        raise ValueError(f"ts is not a finite number: {ts!r}")
    return value


def ts_to_datetime(ts: str) -> datetime:
    return datetime.fromtimestamp(parse_ts(ts), tz=UTC)


def ts_to_micros(ts: str) -> int:
    """Exact integer microseconds for *ts*; used wherever messages are ordered."""
    try:
        return int(Decimal(ts) * 1_000_000)
    except InvalidOperation as exc:
        raise ValueError(f"ts is not a number: {ts!r}") from exc


class SlackReaction(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    users: list[str] = []
    count: int = 0


class SlackReply(BaseModel):
    model_config = ConfigDict(extra="allow")

    user: str | None = None
    ts: str


class SlackMessage(BaseModel):
    """A single exported message.

    Validation happens once, when a message file is read: a record without a
    usable ``ts`` never makes it past the archive reader.  Fields the export
    carries but this model does not name are preserved as extras so that the
    re-hydrated message is the full original object.
    """

    model_config = ConfigDict(extra="allow")

    ts: str
    type: str | None = None
    subtype: str | None = None
    thread_ts: str | None = None
    user: str | None = None
    bot_id: str | None = None
    text: str | None = None
    blocks: list[dict[str, Any]] | None = None
    attachments: list[dict[str, Any]] | None = None
    files: list[dict[str, Any]] | None = None
    reactions: list[SlackReaction] | None = None
    replies: list[SlackReply] | None = None
    reply_count: int | None = None

    @field_validator("ts")
    @classmethod
    def _ts_must_be_numeric(cls, value: str) -> str:
        parse_ts(value)
        return value

    @property
    def ts_micros(self) -> int:
        return ts_to_micros(self.ts)

    @property
    def timestamp(self) -> datetime:
        return ts_to_datetime(self.ts)

    @property
    def is_thread_reply(self) -> bool:
        return self.thread_ts is not None and self.thread_ts != self.ts

    @property
    def is_top_level(self) -> bool:
        """Top-level messages take part in the chat's position sequence."""
        return not self.is_thread_reply

    @property
    def is_thread_parent(self) -> bool:
        return self.thread_ts is not None and self.thread_ts == self.ts

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


@dataclass(frozen=True)
class MessageInfo:
    """A message together with the archive-relative file it was read from."""

    message: SlackMessage
    file_path: str

    @property
    def sort_key(self) -> int:
        return self.message.ts_micros
