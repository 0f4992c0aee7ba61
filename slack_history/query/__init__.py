from slack_history.query.service import (
    QueryService,
    SearchHit,
    extract_highlights,
    format_ts,
)

__all__ = ["QueryService", "SearchHit", "extract_highlights", "format_ts"]
