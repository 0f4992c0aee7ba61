from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class ChatType(StrEnum):
    CHANNEL = "channel"
    GROUP = "group"
    DM = "dm"
    MPIM = "mpim"


# ---------------------------------------------------------------------------
# Export metadata schemas (users.json, channels.json, groups.json, ...)
# ---------------------------------------------------------------------------


class SlackProfile(BaseModel):
    model_config = ConfigDict(extra="allow")

    real_name: str | None = None
    display_name: str | None = None
    image_72: str | None = None


class SlackUser(BaseModel):
    """One entry of ``users.json``."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str | None = None
    real_name: str | None = None
    profile: SlackProfile = SlackProfile()
    is_bot: bool = False
    deleted: bool = False


class SlackConversation(BaseModel):
    """One entry of ``channels.json``, ``groups.json``, ``dms.json`` or
    ``mpims.json``.  DMs usually have no ``name``."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str | None = None
    is_archived: bool = False
    members: list[str] | None = None


# ---------------------------------------------------------------------------
# Domain records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UserNickname:
    user_id: str
    real_name: str
    name: str
    display_name: str


@dataclass(frozen=True)
class ChatRecord:
    """A chat as presented to readers: resolved display name plus the
    technical name used by the export for its directory."""

    id: str
    name: str
    technical_name: str | None
    type: ChatType
    is_archived: bool = False
    other_member_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def directory_candidates(self) -> list[str]:
        """Directory names to try, in order: display, technical, raw id."""
        candidates: list[str] = []
        for candidate in (self.name, self.technical_name, self.id):
            if candidate and candidate not in candidates:
                candidates.append(candidate)
        return candidates
