from __future__ import annotations

import logging


def configure_logging(verbose: bool = False) -> None:
    """Root logging setup for applications embedding slack_history."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="  %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
