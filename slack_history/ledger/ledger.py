from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import ClassVar

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert

from slack_history.db.models import ProcessedFile
from slack_history.db.sqlite import SQLiteBackend
from slack_history.errors import LedgerCommitError, LedgerInitError

logger = logging.getLogger(__name__)


class ProcessedFileLedger:
    """Durable record of message files already folded into the index.

    A path is written here only after its messages are indexed, committed
    and positioned, so a path that is present never needs to be looked at
    again.  Paths are stored relative to the archive base directory.
    """

    INSERT_CHUNK_SIZE: ClassVar[int] = 500
    LOOKUP_CHUNK_SIZE: ClassVar[int] = 500

    def __init__(self, db: SQLiteBackend) -> None:
        self._db = db

    async def init(self) -> None:
        """Create the ``processed_files`` table if needed."""
        try:
            await self._db.create_tables()
        except Exception as exc:
            logger.error("Failed to initialize processed-file ledger: %s", exc)
            raise LedgerInitError(str(exc)) from exc

    async def close(self) -> None:
        await self._db.close()

    async def is_processed(self, path: str) -> bool:
        async with self._db.session_scope() as session:
            stmt = select(ProcessedFile.path).where(ProcessedFile.path == path)
            result = await session.execute(stmt)
            return result.first() is not None

    async def processed_paths(self, paths: Iterable[str]) -> set[str]:
        """Return the subset of *paths* already marked as processed."""
        wanted = list(dict.fromkeys(paths))
        found: set[str] = set()
        async with self._db.session_scope() as session:
            for i in range(0, len(wanted), self.LOOKUP_CHUNK_SIZE):
                chunk = wanted[i : i + self.LOOKUP_CHUNK_SIZE]
                stmt = select(ProcessedFile.path).where(ProcessedFile.path.in_(chunk))
                result = await session.execute(stmt)
                found.update(result.scalars().all())
        return found

    async def mark_processed(self, paths: Iterable[str]) -> int:
        """Insert *paths* in one transaction.

        Either every path is committed or none is.  Already-recorded paths
        are ignored.  Errors are re-raised as :class:`LedgerCommitError`
        after the transaction has been rolled back.
        """
        unique = list(dict.fromkeys(paths))
        if not unique:
            return 0

        now = datetime.now(UTC)
        try:
            async with self._db.session_scope() as session:
                for i in range(0, len(unique), self.INSERT_CHUNK_SIZE):
                    chunk = unique[i : i + self.INSERT_CHUNK_SIZE]
                    stmt = (
                        insert(ProcessedFile)
                        .values([{"path": p, "indexed_at": now} for p in chunk])
                        .on_conflict_do_nothing(index_elements=["path"])
                    )
                    await session.execute(stmt)
        except Exception as exc:
            logger.error(
                "Error marking %d files as processed, transaction rolled back: %s",
                len(unique),
                exc,
            )
            raise LedgerCommitError(unique, str(exc)) from exc

        logger.info("Marked %d files as processed", len(unique))
        return len(unique)
