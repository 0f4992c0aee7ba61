from slack_history.search.base import SearchEngine
from slack_history.search.memory import InMemorySearchEngine
from slack_history.search.query import (
    HL_POST_MARKER,
    HL_PRE_MARKER,
    Highlight,
    SearchQuery,
    SearchResponse,
    SortOrder,
)
from slack_history.search.solr import SolrSearchEngine

__all__ = [
    "HL_POST_MARKER",
    "HL_PRE_MARKER",
    "Highlight",
    "InMemorySearchEngine",
    "SearchEngine",
    "SearchQuery",
    "SearchResponse",
    "SolrSearchEngine",
    "SortOrder",
]
