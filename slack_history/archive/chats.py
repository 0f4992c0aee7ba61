from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable

from slack_history.models.chat import (
    ChatRecord,
    ChatType,
    SlackConversation,
    SlackUser,
    UserNickname,
)

logger = logging.getLogger(__name__)


class UserDirectory:
    """Lookup of ``users.json`` entries with the export's name fallbacks."""

    def __init__(self, users: Iterable[SlackUser]) -> None:
        self._users = {u.id: u for u in users}

    def get(self, user_id: str) -> SlackUser | None:
        return self._users.get(user_id)

    def nickname(self, user_id: str) -> UserNickname:
        """Resolve names for *user_id*.

        ``real_name`` falls back to the id, ``name`` to the real name and
        ``display_name`` to ``name`` when the profile's display name is blank.
        """
        member = self._users.get(user_id)
        real_name = (member.profile.real_name if member else None) or user_id
        name = (member.name if member else None) or real_name
        candidate = (member.profile.display_name or "").strip() if member else ""
        display_name = candidate or name
        return UserNickname(
            user_id=user_id,
            real_name=real_name,
            name=name,
            display_name=display_name,
        )


def find_owner_id(
    dms: Iterable[SlackConversation],
    mpims: Iterable[SlackConversation],
) -> str | None:
    """Guess the exporting user: the member present in the most DMs/MPIMs.

    On a tie the member seen last wins.
    """
    counts: Counter[str] = Counter()
    for conversation in (*dms, *mpims):
        counts.update(conversation.members or [])
    owner: str | None = None
    best = 0
    for member_id, count in counts.items():
        if count >= best:
            owner, best = member_id, count
    return owner


def _dm_record(
    item: SlackConversation,
    owner_id: str | None,
    users: UserDirectory,
) -> tuple[str | None, list[str]]:
    name = item.name
    other_ids: list[str] = []
    members = item.members
    if members and len(members) == 2:
        other = next((m for m in members if m != owner_id), None)
        if other is not None:
            name = users.nickname(other).display_name
            other_ids = [other]
        else:
            logger.warning(
                "Could not determine other user for DM %s. Members: %s Owner: %s",
                item.id,
                ", ".join(members),
                owner_id or "Unknown",
            )
            name = name or " & ".join(users.nickname(m).display_name for m in members)
    elif members:
        name = name or " & ".join(users.nickname(m).display_name for m in members)
    return name, other_ids


def _mpim_record(
    item: SlackConversation,
    owner_id: str | None,
    users: UserDirectory,
) -> tuple[str | None, list[str]]:
    name = item.name
    other_ids: list[str] = []
    if item.members:
        others = (
            [m for m in item.members if m != owner_id]
            if owner_id is not None
            else list(item.members)
        )
        to_name = others or item.members
        generated = ", ".join(
            n for n in (users.nickname(m).display_name for m in to_name) if n
        )
        if generated:
            name = generated
        other_ids = others
    return name, other_ids


def build_chat_records(
    *,
    channels: Iterable[SlackConversation] = (),
    groups: Iterable[SlackConversation] = (),
    dms: Iterable[SlackConversation] = (),
    mpims: Iterable[SlackConversation] = (),
    users: UserDirectory,
) -> list[ChatRecord]:
    """Combine the four conversation lists into display-ready chat records,
    sorted case-insensitively by name."""
    dms = list(dms)
    mpims = list(mpims)
    owner_id = find_owner_id(dms, mpims)

    records: list[ChatRecord] = []
    sources: list[tuple[Iterable[SlackConversation], ChatType]] = [
        (channels, ChatType.CHANNEL),
        (groups, ChatType.GROUP),
        (dms, ChatType.DM),
        (mpims, ChatType.MPIM),
    ]
    for items, chat_type in sources:
        for item in items:
            if chat_type is ChatType.DM:
                name, other_ids = _dm_record(item, owner_id, users)
            elif chat_type is ChatType.MPIM:
                name, other_ids = _mpim_record(item, owner_id, users)
            else:
                name, other_ids = item.name, []
            name = name or item.id
            if not name:
                continue
            records.append(
                ChatRecord(
                    id=item.id,
                    name=name,
                    technical_name=item.name,
                    type=chat_type,
                    is_archived=item.is_archived,
                    other_member_ids=tuple(other_ids),
                )
            )

    records.sort(key=lambda c: c.name.casefold())
    return records
