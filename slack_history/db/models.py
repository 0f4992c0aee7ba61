from datetime import UTC, datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base for all slack_history tables."""

    pass


class ProcessedFile(Base):
    """A message file whose messages are indexed *and* positioned.

    Rows are only ever inserted.
    """

    __tablename__ = "processed_files"

    path: Mapped[str] = mapped_column(String, primary_key=True)
    indexed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )
