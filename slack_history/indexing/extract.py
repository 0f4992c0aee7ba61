from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from slack_history.archive.chats import UserDirectory
from slack_history.models.chat import ChatRecord
from slack_history.models.document import (
    UNASSIGNED_POSITION,
    IndexedDocument,
    document_id,
)
from slack_history.models.message import MessageInfo

LINK_FIELDS: frozenset[str] = frozenset({"url"})


def extract_links(value: Any, link_fields: Iterable[str] = LINK_FIELDS) -> list[str]:
    """Collect every string stored under a key in *link_fields*, at any
    depth of *value*.  Order of first appearance, no duplicates."""
    keys = frozenset(link_fields)
    found: dict[str, None] = {}

    def walk(node: Any) -> None:
        if isinstance(node, dict):
            for key, child in node.items():
                if key in keys and isinstance(child, str):
                    found.setdefault(child)
                else:
                    walk(child)
        elif isinstance(node, list):
            for child in node:
                walk(child)

    walk(value)
    return list(found)


def extract_document(
    info: MessageInfo,
    chat: ChatRecord,
    users: UserDirectory,
    *,
    link_fields: Iterable[str] = LINK_FIELDS,
) -> IndexedDocument:
    """Build the engine document for one message.

    The position starts out unassigned; the reconciler sets it once the
    document is committed.
    """
    message = info.message
    user_id = message.user or message.bot_id
    nickname = users.nickname(user_id) if user_id else None

    return IndexedDocument(
        id=document_id(chat.id, message.ts),
        chat_id_s=chat.id,
        chat_name_s=chat.name,
        chat_type_s=chat.type.value,
        ts_s=message.ts,
        ts_us_l=message.ts_micros,
        ts_dt=message.timestamp.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
        file_path_s=info.file_path,
        thread_message_b=message.is_thread_reply,
        thread_parent_b=message.is_thread_parent,
        thread_ts_s=message.thread_ts,
        user_s=user_id,
        user_name_s=nickname.name if nickname else None,
        user_real_name_s=nickname.real_name if nickname else None,
        user_display_name_s=nickname.display_name if nickname else None,
        subtype_s=message.subtype,
        text_txt_en=message.text or "",
        url_ss=extract_links(message.to_dict(), link_fields),
        message_index_l=UNASSIGNED_POSITION,
    )
