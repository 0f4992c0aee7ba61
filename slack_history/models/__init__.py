"""Domain models: pydantic schemas for export JSON and plain dataclasses
for everything derived from it.

Export files are validated into pydantic models at the read boundary
(``SlackMessage``, ``SlackUser``, ``SlackConversation``).  Records the
package builds itself (``ChatRecord``, ``MessageInfo``,
``IndexedDocument``) are dataclasses.
"""

from slack_history.models.chat import (
    ChatRecord,
    ChatType,
    SlackConversation,
    SlackProfile,
    SlackUser,
    UserNickname,
)
from slack_history.models.document import (
    UNASSIGNED_POSITION,
    IndexedDocument,
    document_id,
)
from slack_history.models.message import (
    MessageInfo,
    SlackMessage,
    SlackReaction,
    SlackReply,
    parse_ts,
    ts_to_datetime,
    ts_to_micros,
)

__all__ = [
    "ChatRecord",
    "ChatType",
    "IndexedDocument",
    "MessageInfo",
    "SlackConversation",
    "SlackMessage",
    "SlackProfile",
    "SlackReaction",
    "SlackReply",
    "SlackUser",
    "UNASSIGNED_POSITION",
    "UserNickname",
    "document_id",
    "parse_ts",
    "ts_to_datetime",
    "ts_to_micros",
]
