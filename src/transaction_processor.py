import logging
from typing import Optional, Tuple

from models import (
    Transaction,
    TransactionType,
    ClientAccount,
    DepositEntry,
    DisputeStatus,
    ProcessingResult,
    fits_exactly,
)
from ledger_state import LedgerState

logger = logging.getLogger(__name__)


class TransactionProcessor:
    """
    Applies transactions against ledger state.
    Every check runs before any balance changes, so a rejected transaction
    leaves the balances exactly as they were.
    """

    def __init__(self, state: LedgerState):
        self._state = state

    def process_transaction(self, transaction: Transaction) -> ProcessingResult:
        """
        Process a single transaction.

        The client's account is opened on first reference, even when the
        transaction itself is then rejected.

        Returns:
            SUCCESS: Applied
            anything else: Rejected, with the reason; no balance was changed
        """
        account = self._state.get_or_create_account(transaction.client_id)

        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                return self._handle_deposit(account, transaction)
            case TransactionType.WITHDRAWAL:
                return self._handle_withdrawal(account, transaction)
            case TransactionType.DISPUTE:
                return self._handle_dispute(account, transaction)
            case TransactionType.RESOLVE:
                return self._handle_resolve(account, transaction)
            case TransactionType.CHARGEBACK:
                return self._handle_chargeback(account, transaction)
            case _:
                raise ValueError(f"Unsupported transaction type: {transaction.transaction_type!r}")

    def _handle_deposit(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        if transaction.amount is None or transaction.amount <= 0:
            logger.warning(f"Deposit tx {transaction.transaction_id}: invalid amount {transaction.amount}")
            return ProcessingResult.INVALID_AMOUNT

        if self._state.is_known_transaction(transaction.transaction_id):
            logger.warning(f"Deposit tx {transaction.transaction_id}: transaction id already used")
            return ProcessingResult.DUPLICATE_TRANSACTION

        if account.locked:
            logger.warning(f"Deposit tx {transaction.transaction_id}: account {account.client_id} is locked")
            return ProcessingResult.ACCOUNT_LOCKED

        if not fits_exactly(account.total, transaction.amount):
            logger.warning(f"Deposit tx {transaction.transaction_id}: balance of account {account.client_id} would be too large")
            return ProcessingResult.AMOUNT_TOO_LARGE

        account.credit(transaction.amount)
        self._state.record_deposit(transaction)
        return ProcessingResult.SUCCESS

    def _handle_withdrawal(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        if transaction.amount is None or transaction.amount <= 0:
            logger.warning(f"Withdrawal tx {transaction.transaction_id}: invalid amount {transaction.amount}")
            return ProcessingResult.INVALID_AMOUNT

        if self._state.is_known_transaction(transaction.transaction_id):
            logger.warning(f"Withdrawal tx {transaction.transaction_id}: transaction id already used")
            return ProcessingResult.DUPLICATE_TRANSACTION

        if account.locked:
            logger.warning(f"Withdrawal tx {transaction.transaction_id}: account {account.client_id} is locked")
            return ProcessingResult.ACCOUNT_LOCKED

        if account.available < transaction.amount:
            logger.warning(f"Withdrawal tx {transaction.transaction_id}: insufficient funds ({account.available} available, {transaction.amount} requested)")
            return ProcessingResult.INSUFFICIENT_FUNDS

        account.debit(transaction.amount)
        self._state.record_withdrawal(transaction)
        return ProcessingResult.SUCCESS

    def _handle_dispute(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        entry, result = self._lookup_deposit(account, transaction, DisputeStatus.NORMAL)
        if result.is_failure:
            return result

        if account.available < entry.amount:
            logger.warning(f"Dispute for tx {transaction.transaction_id}: insufficient funds to hold {entry.amount} ({account.available} available)")
            return ProcessingResult.INSUFFICIENT_FUNDS

        account.hold(entry.amount)
        entry.status = DisputeStatus.DISPUTED
        return ProcessingResult.SUCCESS

    def _handle_resolve(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        entry, result = self._lookup_deposit(account, transaction, DisputeStatus.DISPUTED)
        if result.is_failure:
            return result

        account.release_hold(entry.amount)
        entry.status = DisputeStatus.NORMAL
        return ProcessingResult.SUCCESS

    def _handle_chargeback(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        entry, result = self._lookup_deposit(account, transaction, DisputeStatus.DISPUTED)
        if result.is_failure:
            return result

        account.remove_held(entry.amount)
        account.lock()
        entry.status = DisputeStatus.CHARGED_BACK
        return ProcessingResult.SUCCESS

    def _lookup_deposit(
        self, account: ClientAccount, transaction: Transaction, expected_status: DisputeStatus
    ) -> Tuple[Optional[DepositEntry], ProcessingResult]:
        """
        Find the deposit a dispute, resolve or chargeback refers to.

        The deposit must exist, belong to the same client and currently be in
        expected_status; the account must not be locked.
        """
        kind = transaction.transaction_type.value.capitalize()
        entry = self._state.get_deposit(transaction.transaction_id)

        if entry is None:
            # withdrawals are never disputable, funds already left the account
            if self._state.is_withdrawal(transaction.transaction_id):
                logger.warning(f"{kind} for tx {transaction.transaction_id}: only deposits can be disputed")
            else:
                logger.warning(f"{kind} for tx {transaction.transaction_id}: transaction not found")
            return None, ProcessingResult.UNKNOWN_TRANSACTION

        if entry.client_id != transaction.client_id:
            logger.warning(f"{kind} for tx {transaction.transaction_id}: client mismatch (expected {entry.client_id}, got {transaction.client_id})")
            return None, ProcessingResult.CLIENT_MISMATCH

        if entry.status is not expected_status:
            logger.warning(f"{kind} for tx {transaction.transaction_id}: transaction is {entry.status.value}, expected {expected_status.value}")
            return None, ProcessingResult.INVALID_STATE_TRANSITION

        if account.locked:
            logger.warning(f"{kind} for tx {transaction.transaction_id}: account {account.client_id} is locked")
            return None, ProcessingResult.ACCOUNT_LOCKED

        return entry, ProcessingResult.SUCCESS
