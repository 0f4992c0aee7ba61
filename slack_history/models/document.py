from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

UNASSIGNED_POSITION = -1


def document_id(chat_id: str, ts: str) -> str:
    return f"{chat_id}_{ts}"


@dataclass
class IndexedDocument:
    """Projection of a message and its chat as stored in the search engine.

    Field names follow Solr's dynamic-field suffixes (``_s`` string,
    ``_ss`` multi-valued string, ``_b`` boolean, ``_dt`` date, ``_l`` long,
    ``_txt_en`` English text) so a schemaless core accepts them as is.
    """

    id: str
    chat_id_s: str
    chat_name_s: str
    chat_type_s: str
    ts_s: str
    ts_us_l: int
    ts_dt: str
    file_path_s: str
    thread_message_b: bool
    thread_parent_b: bool
    thread_ts_s: str | None = None
    user_s: str | None = None
    user_name_s: str | None = None
    user_real_name_s: str | None = None
    user_display_name_s: str | None = None
    subtype_s: str | None = None
    text_txt_en: str = ""
    url_ss: list[str] = field(default_factory=list)
    message_index_l: int = UNASSIGNED_POSITION

    def to_dict(self) -> dict[str, Any]:
        """Return the engine payload; ``None`` fields and empty link lists
        are omitted."""
        return {
            key: value
            for key, value in asdict(self).items()
            if value is not None and value != []
        }
