"""Exceptions raised by the archive, ledger, search and indexing layers."""


class SlackHistoryError(Exception):
    """Base class for all slack_history errors."""


class MalformedFileError(SlackHistoryError):
    """A message file could not be parsed into a list of messages."""

    def __init__(self, path: str, message: str | None = None):
        self.path = path
        self.message = (
            f"Malformed message file {path}: {message}"
            if message
            else f"Malformed message file {path}"
        )
        super().__init__(self.message)


class ChatNotFoundError(SlackHistoryError):
    """Raised when a caller explicitly asks for a chat that does not exist."""

    def __init__(self, chat_id: str):
        self.chat_id = chat_id
        self.message = f"Unknown chat: {chat_id}"
        super().__init__(self.message)


class SearchEngineError(SlackHistoryError):
    """Transient failure talking to the full-text engine."""

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.status_code = status_code
        self.message = (
            f"Search engine request failed: {message}"
            if message
            else "Search engine request failed"
        )
        super().__init__(self.message)


class LedgerInitError(SlackHistoryError):
    """The processed-file ledger could not be created or opened."""

    def __init__(self, message: str | None = None):
        self.message = (
            f"Ledger initialization failed: {message}"
            if message
            else "Ledger initialization failed"
        )
        super().__init__(self.message)


class LedgerCommitError(SlackHistoryError):
    """A batch of paths could not be durably marked as processed."""

    def __init__(self, paths: list[str], message: str | None = None):
        self.paths = paths
        self.message = (
            f"Could not mark {len(paths)} files as processed: {message}"
            if message
            else f"Could not mark {len(paths)} files as processed"
        )
        super().__init__(self.message)


class IndexingInProgressError(SlackHistoryError):
    """An indexing pass was started while another one is still running."""

    pass


class ChatIndexingError(SlackHistoryError):
    """One or more batches of a chat could not be written to the engine."""

    def __init__(self, chat_id: str, failed_batches: int):
        self.chat_id = chat_id
        self.failed_batches = failed_batches
        self.message = f"{failed_batches} batch(es) failed for chat {chat_id}"
        super().__init__(self.message)
