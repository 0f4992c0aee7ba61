from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from types import TracebackType
from typing import Any

from slack_history.search.query import SearchQuery, SearchResponse


class SearchEngine(ABC):
    """Abstract full-text engine.

    Writes (``add``, ``update``) become visible to :meth:`search` only
    after :meth:`commit`; :meth:`rollback` discards everything written
    since the last commit.
    """

    @abstractmethod
    async def add(self, docs: Sequence[dict[str, Any]]) -> None:
        """Upsert whole documents by ``id``."""
        ...

    @abstractmethod
    async def update(self, partial_docs: Sequence[dict[str, Any]]) -> None:
        """Apply atomic field updates, e.g. ``{"id": x, "f": {"set": 1}}``."""
        ...

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...

    @abstractmethod
    async def search(self, query: SearchQuery) -> SearchResponse: ...

    @abstractmethod
    async def ping(self) -> bool:
        """Return ``True`` when the engine is reachable."""
        ...

    async def close(self) -> None:
        """Release any held resources (connections)."""

    async def __aenter__(self) -> SearchEngine:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
