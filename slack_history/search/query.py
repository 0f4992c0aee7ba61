"""Engine-neutral query and response types.

:class:`SearchQuery` carries exactly the features the rest of the package
needs from a full-text engine (free text, exact-match and range filters,
projection, sort, paging, highlighting).  Each engine translates it into
its own request format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

HL_PRE_MARKER = "@@SLACK_HL_START@@"
HL_POST_MARKER = "@@SLACK_HL_END@@"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Highlight:
    """Highlighting request.

    ``whole_fragment`` asks for the complete field value as a single
    fragment instead of short snippets.
    """

    fields: tuple[str, ...]
    pre: str = HL_PRE_MARKER
    post: str = HL_POST_MARKER
    whole_fragment: bool = True


@dataclass(frozen=True)
class SearchQuery:
    text: str | None = None
    filters: dict[str, str | int | bool] = field(default_factory=dict)
    ranges: dict[str, tuple[int | None, int | None]] = field(default_factory=dict)
    fields: tuple[str, ...] | None = None
    sort: tuple[tuple[str, SortOrder], ...] = ()
    start: int = 0
    rows: int = 10
    highlight: Highlight | None = None

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError("start must not be negative")
        if self.rows < 0:
            raise ValueError("rows must not be negative")


@dataclass
class SearchResponse:
    num_found: int
    docs: list[dict[str, Any]] = field(default_factory=list)
    highlighting: dict[str, dict[str, list[str]]] = field(default_factory=dict)

    @property
    def first(self) -> dict[str, Any] | None:
        return self.docs[0] if self.docs else None
