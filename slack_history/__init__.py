"""Incremental indexing and positional search over a Slack export."""

from slack_history.config import Config, load_config
from slack_history.errors import (
    ChatIndexingError,
    ChatNotFoundError,
    IndexingInProgressError,
    LedgerCommitError,
    LedgerInitError,
    MalformedFileError,
    SearchEngineError,
    SlackHistoryError,
)
from slack_history.facade import IndexingStatus, SlackHistory
from slack_history.indexing.types import IndexingResult, ReconcileResult
from slack_history.query.service import SearchHit

__all__ = [
    "ChatIndexingError",
    "ChatNotFoundError",
    "Config",
    "IndexingInProgressError",
    "IndexingResult",
    "IndexingStatus",
    "LedgerCommitError",
    "LedgerInitError",
    "MalformedFileError",
    "ReconcileResult",
    "SearchEngineError",
    "SearchHit",
    "SlackHistory",
    "SlackHistoryError",
    "load_config",
]
