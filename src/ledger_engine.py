import logging
from typing import Iterable, List

from models import Transaction, AccountSnapshot, ProcessingResult, ProcessingStats
from ledger_state import LedgerState
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)


class LedgerEngine:
    """
    Applies transactions in input order, one at a time, and exposes the final
    account balances.

    Rejected transactions are counted and logged but never stop processing;
    parse and I/O errors raised by the input iterable propagate to the caller.
    """

    def __init__(self):
        self._state = LedgerState()
        self._processor = TransactionProcessor(self._state)
        self._stats = ProcessingStats()

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    @property
    def has_failures(self) -> bool:
        return self._stats.failed > 0

    def apply(self, transaction: Transaction) -> ProcessingResult:
        """Apply a single transaction and return whether it succeeded or why it was rejected."""
        logger.debug(f"Processing {transaction}")
        result = self._processor.process_transaction(transaction)

        if result.is_failure:
            self._stats.record_failure(result)
        else:
            self._stats.record_success()
        return result

    def process(self, transactions: Iterable[Transaction]) -> ProcessingStats:
        """Apply every transaction of the iterable in order."""
        logger.info("Starting processing")
        for transaction in transactions:
            self.apply(transaction)
        logger.info(f"Processing complete: {self._stats.processed} applied, {self._stats.failed} rejected")
        return self._stats

    def snapshot(self) -> List[AccountSnapshot]:
        """Return the balances of every known account, in the order accounts were opened."""
        return [account.snapshot() for account in self._state.get_all_accounts()]
