"""Configuration for slack-history.

Reads an optional TOML file and applies environment overrides on top.
Default location: ``~/.config/slack-history/config.toml``.
Override with the ``SLACK_HISTORY_CONFIG`` environment variable.

Example::

    [archive]
    data_dir = "/srv/slack-export"
    message_cache_size = 50
    chat_cache_ttl = 300

    [ledger]
    path = "./processed_messages.db"
    batch_size = 100
    idle_timeout = 10.0

    [engine]
    provider = "solr"
    host = "localhost"
    port = 8983
    core = "slack_messages"

    [indexing]
    batch_size = 1000
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

_DEFAULT_CONFIG_DIR = Path("~/.config/slack-history").expanduser()
_DEFAULT_DATA_DIR = Path("./data")


def _config_path() -> Path:
    env = os.environ.get("SLACK_HISTORY_CONFIG")
    if env:
        return Path(env).expanduser()
    return _DEFAULT_CONFIG_DIR / "config.toml"


@dataclass
class Config:
    data_dir: str = str(_DEFAULT_DATA_DIR)
    ledger_path: str = "./processed_messages.db"

    # Search engine: "solr" (default) or "memory" (in-process, no server)
    engine_provider: str = "solr"
    solr_host: str = "localhost"
    solr_port: int = 8983
    solr_core: str = "slack_messages"
    solr_timeout: float = 30.0

    batch_size: int = 1000
    ledger_batch_size: int = 100
    ledger_idle_timeout: float = 10.0
    message_cache_size: int = 50
    chat_cache_ttl: float = 300.0

    @property
    def solr_base_url(self) -> str:
        return f"http://{self.solr_host}:{self.solr_port}/solr/{self.solr_core}"

    @property
    def uses_solr(self) -> bool:
        return self.engine_provider == "solr"

    def engine_config(self) -> dict[str, Any]:
        """Keyword config handed to the engine registry."""
        if self.uses_solr:
            return {
                "host": self.solr_host,
                "port": self.solr_port,
                "core": self.solr_core,
                "timeout": self.solr_timeout,
            }
        return {}


def load_config() -> Config:
    """Load config from disk, falling back to defaults + env overrides."""
    path = _config_path()
    cfg = Config()

    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)
        archive_section = data.get("archive", {})
        ledger_section = data.get("ledger", {})
        engine_section = data.get("engine", {})
        indexing_section = data.get("indexing", {})

        cfg.data_dir = archive_section.get("data_dir", cfg.data_dir)
        cfg.message_cache_size = int(
            archive_section.get("message_cache_size", cfg.message_cache_size)
        )
        cfg.chat_cache_ttl = float(
            archive_section.get("chat_cache_ttl", cfg.chat_cache_ttl)
        )

        cfg.ledger_path = ledger_section.get("path", cfg.ledger_path)
        cfg.ledger_batch_size = int(
            ledger_section.get("batch_size", cfg.ledger_batch_size)
        )
        cfg.ledger_idle_timeout = float(
            ledger_section.get("idle_timeout", cfg.ledger_idle_timeout)
        )

        cfg.engine_provider = engine_section.get("provider", cfg.engine_provider)
        cfg.solr_host = engine_section.get("host", cfg.solr_host)
        cfg.solr_port = int(engine_section.get("port", cfg.solr_port))
        cfg.solr_core = engine_section.get("core", cfg.solr_core)
        cfg.solr_timeout = float(engine_section.get("timeout", cfg.solr_timeout))

        cfg.batch_size = int(indexing_section.get("batch_size", cfg.batch_size))

    # Environment variables always take precedence
    cfg.data_dir = os.environ.get("SLACK_HISTORY_DATA_PATH", cfg.data_dir)
    cfg.ledger_path = os.environ.get("SLACK_DB_FILENAME", cfg.ledger_path)
    cfg.engine_provider = os.environ.get("SLACK_HISTORY_ENGINE", cfg.engine_provider)
    cfg.solr_host = os.environ.get("SLACK_SOLR_HOST", cfg.solr_host)
    cfg.solr_port = int(os.environ.get("SLACK_SOLR_PORT", str(cfg.solr_port)))
    cfg.solr_core = os.environ.get("SLACK_SOLR_CORE", cfg.solr_core)

    return cfg
