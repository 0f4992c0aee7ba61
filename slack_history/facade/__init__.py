from slack_history.facade.core import SlackHistory
from slack_history.facade.types import IndexingStatus

__all__ = ["IndexingStatus", "SlackHistory"]
