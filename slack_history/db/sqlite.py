from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from slack_history.db.models import Base


class SQLiteBackend:
    """Ledger database on SQLite via ``aiosqlite``.

    ``":memory:"`` keeps a single shared connection so every session sees
    the same database.
    """

    def __init__(self, path: str = ":memory:") -> None:
        self.path = path
        if path == ":memory:":
            self._engine = create_async_engine(
                "sqlite+aiosqlite:///:memory:",
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            self._engine = create_async_engine(f"sqlite+aiosqlite:///{path}")
        self._session_factory = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    async def create_tables(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession]:
        """One transaction: committed on success, rolled back on error."""
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def close(self) -> None:
        await self._engine.dispose()
