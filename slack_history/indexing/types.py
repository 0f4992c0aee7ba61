from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from slack_history.models.chat import ChatRecord


class ReconcileMode(StrEnum):
    NOOP = "noop"
    FAST = "fast"
    SLOW = "slow"
    EMPTY = "empty"


@dataclass
class ChatWork:
    """Unprocessed message files discovered for one chat."""

    chat: ChatRecord
    files: list[str]


@dataclass
class ReconcileResult:
    """Outcome of reconciling one chat's position sequence.

    ``scanned`` counts the messages read from disk to compute the new
    positions; on the fast path it is proportional to the new files only.
    """

    chat_id: str
    mode: ReconcileMode
    last_valid_position: int = -1
    assigned: int = 0
    scanned: int = 0
    total: int = 0


@dataclass
class IndexingResult:
    """Result returned from :meth:`IndexingPipeline.run`."""

    chats_processed: int = 0
    chats_failed: int = 0
    documents_indexed: int = 0
    files_marked: int = 0
    degraded: bool = False
    errors: list[str] = field(default_factory=list)
    reconciled: list[ReconcileResult] = field(default_factory=list)
    duration_seconds: float = 0.0
