from __future__ import annotations

import copy
import re
from collections.abc import Sequence
from typing import Any

from slack_history.search.base import SearchEngine
from slack_history.search.query import Highlight, SearchQuery, SearchResponse, SortOrder

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def _tokens(text: str) -> list[str]:
    return [t.casefold() for t in _TOKEN_RE.findall(text)]


class InMemorySearchEngine(SearchEngine):
    """Engine backed by plain Python dicts.

    Mirrors the Solr behaviour the package relies on: upsert by ``id``,
    atomic ``set`` updates, commit/rollback visibility, exact and range
    filters, multi-key sort with missing values last, paging, projection,
    and whole-field highlighting.  Free text matches documents that contain
    every query term in ``text_field``, ranked by term frequency.
    """

    def __init__(self, text_field: str = "text_txt_en") -> None:
        self._text_field = text_field
        self._committed: dict[str, dict[str, Any]] = {}
        self._pending: list[tuple[str, dict[str, Any]]] = []
        self.commit_count = 0

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> InMemorySearchEngine:
        return cls(text_field=config.get("text_field", "text_txt_en"))

    # ---- writes ----

    async def add(self, docs: Sequence[dict[str, Any]]) -> None:
        for doc in docs:
            if "id" not in doc:
                raise ValueError("Document without id")
            self._pending.append(("add", copy.deepcopy(doc)))

    async def update(self, partial_docs: Sequence[dict[str, Any]]) -> None:
        for doc in partial_docs:
            if "id" not in doc:
                raise ValueError("Document without id")
            self._pending.append(("update", copy.deepcopy(doc)))

    async def commit(self) -> None:
        for op, doc in self._pending:
            if op == "add":
                self._committed[doc["id"]] = doc
                continue
            target = self._committed.setdefault(doc["id"], {"id": doc["id"]})
            for key, value in doc.items():
                if key == "id":
                    continue
                if isinstance(value, dict) and "set" in value:
                    if value["set"] is None:
                        target.pop(key, None)
                    else:
                        target[key] = value["set"]
                else:
                    target[key] = value
        self._pending = []
        self.commit_count += 1

    async def rollback(self) -> None:
        self._pending = []

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def get(self, doc_id: str) -> dict[str, Any] | None:
        """Committed document by id (test helper)."""
        doc = self._committed.get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def all_documents(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(d) for d in self._committed.values()]

    # ---- reads ----

    def _matches(self, doc: dict[str, Any], query: SearchQuery) -> bool:
        for name, expected in query.filters.items():
            if doc.get(name) != expected:
                return False
        for name, (low, high) in query.ranges.items():
            value = doc.get(name)
            if value is None:
                return False
            if low is not None and value < low:
                return False
            if high is not None and value > high:
                return False
        return True

    def _score(self, doc: dict[str, Any], terms: list[str]) -> float:
        if not terms:
            return 1.0
        doc_tokens = _tokens(str(doc.get(self._text_field, "")))
        if not all(t in doc_tokens for t in terms):
            return 0.0
        return float(sum(doc_tokens.count(t) for t in terms))

    @staticmethod
    def _sort(
        hits: list[tuple[float, dict[str, Any]]],
        sort: tuple[tuple[str, SortOrder], ...],
    ) -> list[tuple[float, dict[str, Any]]]:
        if not sort:
            return sorted(hits, key=lambda h: -h[0])
        # Stable sorts applied from the least significant key; missing last.
        for name, order in reversed(sort):
            present = [h for h in hits if h[1].get(name) is not None]
            missing = [h for h in hits if h[1].get(name) is None]
            present.sort(key=lambda h: h[1][name], reverse=order is SortOrder.DESC)
            hits = present + missing
        return hits

    @staticmethod
    def _highlight(
        doc: dict[str, Any],
        terms: list[str],
        hl: Highlight,
    ) -> dict[str, list[str]]:
        result: dict[str, list[str]] = {}
        if not terms:
            return result
        for name in hl.fields:
            value = doc.get(name)
            if not isinstance(value, str):
                continue
            marked = _TOKEN_RE.sub(
                lambda m: (
                    f"{hl.pre}{m.group(0)}{hl.post}"
                    if m.group(0).casefold() in terms
                    else m.group(0)
                ),
                value,
            )
            if marked != value:
                result[name] = [marked]
        return result

    async def search(self, query: SearchQuery) -> SearchResponse:
        terms = _tokens(query.text) if query.text else []
        hits: list[tuple[float, dict[str, Any]]] = []
        for doc in self._committed.values():
            if not self._matches(doc, query):
                continue
            score = self._score(doc, terms)
            if score > 0:
                hits.append((score, doc))

        hits = self._sort(hits, query.sort)
        page = hits[query.start : query.start + query.rows]

        docs: list[dict[str, Any]] = []
        highlighting: dict[str, dict[str, list[str]]] = {}
        for _, doc in page:
            if query.fields:
                projected = {k: doc[k] for k in query.fields if k in doc}
            else:
                projected = dict(doc)
            docs.append(copy.deepcopy(projected))
            if query.highlight is not None:
                highlighting[doc["id"]] = self._highlight(doc, terms, query.highlight)

        return SearchResponse(num_found=len(hits), docs=docs, highlighting=highlighting)

    async def ping(self) -> bool:
        return True
