from typing import Dict, List, Optional, Set

from models import Transaction, ClientAccount, DepositEntry


class LedgerState:
    """
    State owned by a single ledger.
    Stores client accounts and deposit history for dispute lookups.
    """

    def __init__(self):
        # dicts keep insertion order, which fixes the order of the final report
        self._accounts: Dict[int, ClientAccount] = {}
        self._deposits: Dict[int, DepositEntry] = {}
        self._withdrawal_ids: Set[int] = set()

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        """Retrieve an existing account, or None if the client was never credited."""
        return self._accounts.get(client_id)

    def get_or_create_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one."""
        if client_id not in self._accounts:
            self._accounts[client_id] = ClientAccount(client_id=client_id)
        return self._accounts[client_id]

    def is_known_transaction(self, transaction_id: int) -> bool:
        """Check whether a deposit or withdrawal already used this id."""
        return transaction_id in self._deposits or transaction_id in self._withdrawal_ids

    def record_deposit(self, transaction: Transaction) -> DepositEntry:
        """Store deposit for future dispute lookups."""
        entry = DepositEntry(
            transaction_id=transaction.transaction_id,
            client_id=transaction.client_id,
            amount=transaction.amount,
        )
        self._deposits[transaction.transaction_id] = entry
        return entry

    def get_deposit(self, transaction_id: int) -> Optional[DepositEntry]:
        return self._deposits.get(transaction_id)

    def record_withdrawal(self, transaction: Transaction) -> None:
        self._withdrawal_ids.add(transaction.transaction_id)

    def is_withdrawal(self, transaction_id: int) -> bool:
        return transaction_id in self._withdrawal_ids

    def get_all_accounts(self) -> List[ClientAccount]:
        """Return all accounts in creation order (for final output)."""
        return list(self._accounts.values())
