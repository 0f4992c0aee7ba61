from slack_history.ledger.batcher import LedgerBatcher
from slack_history.ledger.ledger import ProcessedFileLedger
from slack_history.ledger.states import BatcherState, FlushTrigger

__all__ = ["BatcherState", "FlushTrigger", "LedgerBatcher", "ProcessedFileLedger"]
