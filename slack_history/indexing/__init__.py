from slack_history.indexing.extract import LINK_FIELDS, extract_document, extract_links
from slack_history.indexing.pipeline import IndexingPipeline
from slack_history.indexing.reconciler import PositionReconciler
from slack_history.indexing.types import (
    ChatWork,
    IndexingResult,
    ReconcileMode,
    ReconcileResult,
)

__all__ = [
    "LINK_FIELDS",
    "ChatWork",
    "IndexingPipeline",
    "IndexingResult",
    "PositionReconciler",
    "ReconcileMode",
    "ReconcileResult",
    "extract_document",
    "extract_links",
]
