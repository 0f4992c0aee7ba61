from __future__ import annotations

from collections.abc import Callable
from typing import Any, Generic, TypeVar

from slack_history.search.base import SearchEngine

T = TypeVar("T")

Builder = Callable[[dict[str, Any]], T]


class _Registry(Generic[T]):
    """Named builders, each turning a config dict into a ``T``.

    *defaults* registers the built-in builders the first time a name is
    looked up, so importing this module stays cheap.
    """

    def __init__(
        self, label: str, defaults: Callable[[_Registry[T]], None] | None = None
    ) -> None:
        self._label = label
        self._builders: dict[str, Builder[T]] = {}
        self._defaults = defaults

    def register(self, name: str, builder: Builder[T]) -> None:
        self._builders[name] = builder

    def _load(self) -> dict[str, Builder[T]]:
        if self._defaults is not None:
            defaults, self._defaults = self._defaults, None
            defaults(self)
        return self._builders

    def available(self) -> list[str]:
        return sorted(self._load())

    def build(self, name: str, config: dict[str, Any]) -> T:
        builder = self._load().get(name)
        if builder is None:
            raise ValueError(
                f"Unknown {self._label} provider '{name}'. "
                f"Available: {self.available()}"
            )
        return builder(config)


def _builtin_engines(registry: _Registry[SearchEngine]) -> None:
    from slack_history.search.memory import InMemorySearchEngine
    from slack_history.search.solr import SolrSearchEngine

    registry.register("solr", SolrSearchEngine.from_config)
    registry.register("memory", InMemorySearchEngine.from_config)


engine_registry: _Registry[SearchEngine] = _Registry("search engine", _builtin_engines)
