from slack_history.archive.cache import MessageCache, TtlCache
from slack_history.archive.chats import UserDirectory, build_chat_records
from slack_history.archive.store import ArchiveStore, FileMode

__all__ = [
    "ArchiveStore",
    "FileMode",
    "MessageCache",
    "TtlCache",
    "UserDirectory",
    "build_chat_records",
]
