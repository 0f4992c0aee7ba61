from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from slack_history.indexing.types import IndexingResult


@dataclass
class IndexingStatus:
    """Snapshot of the background indexing task."""

    running: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None
    last_result: IndexingResult | None = None
    last_error: str | None = None
