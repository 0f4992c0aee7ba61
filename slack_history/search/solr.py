from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from slack_history.errors import SearchEngineError
from slack_history.search.base import SearchEngine
from slack_history.search.query import SearchQuery, SearchResponse

logger = logging.getLogger(__name__)

DEFAULT_TEXT_FIELD = "text_txt_en"

_SPECIAL_CHARS = set('+-&|!(){}[]^"~*?:\\/ ')


def escape_term(value: str) -> str:
    """Escape Lucene query syntax characters in *value*."""
    return "".join(f"\\{c}" if c in _SPECIAL_CHARS else c for c in value)


def _format_value(value: str | int | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    return escape_term(value)


def build_select_params(
    query: SearchQuery,
    *,
    text_field: str = DEFAULT_TEXT_FIELD,
) -> list[tuple[str, str]]:
    """Translate a :class:`SearchQuery` into Solr ``/select`` parameters."""
    params: list[tuple[str, str]] = [("wt", "json")]
    if query.text:
        params += [("q", query.text), ("defType", "edismax"), ("qf", text_field)]
    else:
        params.append(("q", "*:*"))

    for name, value in query.filters.items():
        params.append(("fq", f"{name}:{_format_value(value)}"))
    for name, (low, high) in query.ranges.items():
        lo = "*" if low is None else str(low)
        hi = "*" if high is None else str(high)
        params.append(("fq", f"{name}:[{lo} TO {hi}]"))

    if query.fields:
        params.append(("fl", ",".join(query.fields)))
    if query.sort:
        params.append(("sort", ",".join(f"{f} {o}" for f, o in query.sort)))
    params += [("start", str(query.start)), ("rows", str(query.rows))]

    hl = query.highlight
    if hl is not None:
        params += [
            ("hl", "true"),
            ("hl.fl", ",".join(hl.fields)),
            ("hl.simple.pre", hl.pre),
            ("hl.simple.post", hl.post),
            ("hl.tag.pre", hl.pre),
            ("hl.tag.post", hl.post),
        ]
        if hl.whole_fragment:
            params.append(("hl.fragsize", "0"))
    return params


class SolrSearchEngine(SearchEngine):
    """Solr core spoken to over its JSON HTTP API.

    Documents use dynamic-field suffixes, so a schemaless core works without
    any schema setup.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        text_field: str = DEFAULT_TEXT_FIELD,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._text_field = text_field
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> SolrSearchEngine:
        host = config.get("host", "localhost")
        port = config.get("port", 8983)
        core = config.get("core", "slack_messages")
        return cls(
            f"http://{host}:{port}/solr/{core}",
            timeout=float(config.get("timeout", 30.0)),
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential_jitter(initial=0.5, max=5, jitter=1),
        reraise=True,
    )
    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return await self._client.request(method, self._base_url + path, **kwargs)

    async def _call(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise SearchEngineError(f"{method} {path}: {exc}") from exc
        if response.status_code != 200:
            raise SearchEngineError(
                f"{method} {path} returned {response.status_code}: "
                f"{response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise SearchEngineError(f"{method} {path}: invalid JSON body") from exc

    async def _post_update(self, payload: Any) -> None:
        body = json.dumps(payload)
        await self._call(
            "POST",
            "/update",
            params={"wt": "json"},
            content=body,
            headers={
                "accept": "application/json; charset=utf-8",
                "content-type": "application/json",
            },
        )

    # ---- interface ----

    async def add(self, docs: Sequence[dict[str, Any]]) -> None:
        if docs:
            await self._post_update(list(docs))

    async def update(self, partial_docs: Sequence[dict[str, Any]]) -> None:
        if partial_docs:
            await self._post_update(list(partial_docs))

    async def commit(self) -> None:
        logger.info("Committing changes to Solr index")
        await self._post_update({"commit": {}})

    async def rollback(self) -> None:
        logger.info("Rolling back uncommitted Solr changes")
        await self._post_update({"rollback": {}})

    async def search(self, query: SearchQuery) -> SearchResponse:
        params = build_select_params(query, text_field=self._text_field)
        data = await self._call("GET", "/select", params=params)
        response = data.get("response") or {}
        return SearchResponse(
            num_found=int(response.get("numFound", 0)),
            docs=list(response.get("docs", [])),
            highlighting=data.get("highlighting") or {},
        )

    async def ping(self) -> bool:
        logger.info("Connecting to Solr: %s", self._base_url)
        try:
            await self._call("GET", "/admin/ping", params={"wt": "json"})
        except SearchEngineError as exc:
            logger.error("Solr is not responding to ping: %s", exc)
            return False
        logger.info("Successfully pinged Solr")
        return True

    async def close(self) -> None:
        await self._client.aclose()
