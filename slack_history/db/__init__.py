from slack_history.db.models import Base, ProcessedFile
from slack_history.db.sqlite import SQLiteBackend

__all__ = ["Base", "ProcessedFile", "SQLiteBackend"]
