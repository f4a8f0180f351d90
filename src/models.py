from collections import Counter
from dataclasses import dataclass
from decimal import Decimal, Inexact, InvalidOperation, localcontext
from enum import Enum
from typing import Optional

# All monetary amounts are kept at four fractional digits.
AMOUNT_PRECISION = Decimal("0.0001")


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class ProcessingResult(Enum):
    SUCCESS = "success"
    INVALID_AMOUNT = "invalid_amount"
    DUPLICATE_TRANSACTION = "duplicate_transaction"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    UNKNOWN_TRANSACTION = "unknown_transaction"
    CLIENT_MISMATCH = "client_mismatch"
    ACCOUNT_LOCKED = "account_locked"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    AMOUNT_TOO_LARGE = "amount_too_large"

    @property
    def is_failure(self) -> bool:
        return self is not ProcessingResult.SUCCESS


class DisputeStatus(Enum):
    NORMAL = "normal"
    DISPUTED = "disputed"
    CHARGED_BACK = "charged_back"


@dataclass(frozen=True)
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class DepositEntry:
    """A deposit kept around so later disputes can find its client and amount."""

    transaction_id: int
    client_id: int
    amount: Decimal
    status: DisputeStatus = DisputeStatus.NORMAL


@dataclass(frozen=True)
class AccountSnapshot:
    client_id: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    def credit(self, amount: Decimal) -> None:
        self.available += amount

    def debit(self, amount: Decimal) -> None:
        self.available -= amount

    def hold(self, amount: Decimal) -> None:
        self.available -= amount
        self.held += amount

    def release_hold(self, amount: Decimal) -> None:
        self.held -= amount
        self.available += amount

    def remove_held(self, amount: Decimal) -> None:
        self.held -= amount

    def lock(self) -> None:
        self.locked = True

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(
            client_id=self.client_id,
            available=self.available,
            held=self.held,
            total=self.total,
            locked=self.locked,
        )


def fits_exactly(balance: Decimal, amount: Decimal) -> bool:
    """Check that balance + amount is representable, at four fractional digits, without rounding."""
    with localcontext() as ctx:
        ctx.traps[Inexact] = True
        try:
            (balance + amount).quantize(AMOUNT_PRECISION)
        except (Inexact, InvalidOperation):
            return False
    return True


class ProcessingStats:
    """Counters for tracking processing statistics."""

    def __init__(self):
        self.processed = 0
        self.failed = 0
        self.failures: Counter = Counter()

    def record_success(self):
        self.processed += 1

    def record_failure(self, result: ProcessingResult):
        self.failed += 1
        self.failures[result] += 1
