import csv
import logging
from decimal import Decimal, InvalidOperation, ROUND_DOWN, getcontext
from typing import Dict, Iterable, Iterator, List, Optional

from models import AMOUNT_PRECISION, Transaction, TransactionType

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 65535
MAX_TRANSACTION_ID = 4294967295

TRANSACTION_FIELDS = ("type", "client", "tx", "amount")
REQUIRED_FIELDS = ("type", "client", "tx")
DEFAULT_FIELD_ORDER: Dict[str, int] = {name: idx for idx, name in enumerate(TRANSACTION_FIELDS)}


class InvalidCsvError(Exception):
    """The input could be read but does not describe valid transactions."""

    def __init__(self, line_number: int, message: str):
        super().__init__(f"line {line_number}: {message}")
        self.line_number = line_number
        self.message = message


def read_transactions(filepath: str) -> Iterator[Transaction]:
    """
    Lazily read transactions from a CSV file.

    OSError is left to propagate; anything that makes the file unusable as a
    transaction list raises InvalidCsvError.
    """
    with open(filepath, "r", newline="", encoding="utf-8") as f:
        yield from parse_transactions(f)


def parse_transactions(lines: Iterable[str]) -> Iterator[Transaction]:
    """
    Parse CSV lines into Transaction records, one per row.

    A leading header row (recognised by its "type" column) fixes the column
    order; without one the order is type, client, tx, amount.
    """
    reader = csv.reader(lines, strict=True)
    field_order: Optional[Dict[str, int]] = None
    try:
        for row in reader:
            if not any(field.strip() for field in row):
                continue

            if field_order is None:
                field_order = discover_field_order(row, reader.line_num)
                if field_order is not None:
                    logger.debug(f"Header found, field order: {field_order}")
                    continue
                field_order = DEFAULT_FIELD_ORDER

            yield parse_row(row, field_order, reader.line_num)
    except csv.Error as e:
        raise InvalidCsvError(reader.line_num, f"malformed csv: {e}") from e
    except UnicodeDecodeError as e:
        raise InvalidCsvError(reader.line_num + 1, f"undecodable input: {e}") from e


def discover_field_order(row: List[str], line_number: int = 1) -> Optional[Dict[str, int]]:
    """Return column positions if row is a header, None if it is a data row."""
    names = [field.strip().lower() for field in row]
    if "type" not in names:
        return None

    unknown = [name for name in names if name not in TRANSACTION_FIELDS]
    if unknown:
        raise InvalidCsvError(line_number, f"unknown header column(s): {', '.join(unknown)}")

    missing = [name for name in REQUIRED_FIELDS if name not in names]
    if missing:
        raise InvalidCsvError(line_number, f"header is missing column(s): {', '.join(missing)}")

    if len(set(names)) != len(names):
        raise InvalidCsvError(line_number, "header has duplicate columns")

    return {name: idx for idx, name in enumerate(names)}


def parse_row(row: List[str], field_order: Dict[str, int], line_number: int) -> Transaction:
    """Parse one CSV row into a Transaction, raising InvalidCsvError if it is not valid."""
    width = len(field_order)
    required_width = max(field_order[name] for name in REQUIRED_FIELDS) + 1
    if len(row) > width:
        raise InvalidCsvError(line_number, f"expected at most {width} fields, got {len(row)}")
    if len(row) < required_width:
        raise InvalidCsvError(line_number, f"expected at least {required_width} fields, got {len(row)}")

    def field(name: str) -> str:
        idx = field_order.get(name)
        if idx is None or idx >= len(row):
            return ""
        return row[idx].strip()

    type_str = field("type").lower()
    try:
        transaction_type = TransactionType(type_str)
    except ValueError:
        raise InvalidCsvError(line_number, f"unknown transaction type {type_str!r}") from None

    client_id = _parse_id(field("client"), "client", MAX_CLIENT_ID, line_number)
    transaction_id = _parse_id(field("tx"), "tx", MAX_TRANSACTION_ID, line_number)

    amount = None
    if transaction_type.carries_amount:
        amount = parse_amount(field("amount"), line_number)

    return Transaction(
        transaction_type=transaction_type,
        client_id=client_id,
        transaction_id=transaction_id,
        amount=amount,
    )


def parse_amount(value: str, line_number: int = 0) -> Optional[Decimal]:
    """Parse an amount, truncated to four fractional digits. Empty means no amount."""
    if not value:
        return None
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise InvalidCsvError(line_number, f"invalid amount {value!r}") from None

    if not amount.is_finite():
        raise InvalidCsvError(line_number, f"amount must be a finite number, got {value!r}")

    # More integer digits than any balance can hold: left as is, the ledger
    # rejects it as too large.
    if amount.adjusted() + 5 > getcontext().prec:
        return amount
    return amount.quantize(AMOUNT_PRECISION, rounding=ROUND_DOWN)


def _parse_id(value: str, name: str, maximum: int, line_number: int) -> int:
    if not (value.isascii() and value.isdigit()):
        raise InvalidCsvError(line_number, f"invalid {name} {value!r}")
    parsed = int(value)
    if parsed > maximum:
        raise InvalidCsvError(line_number, f"{name} {parsed} is out of range (max {maximum})")
    return parsed
