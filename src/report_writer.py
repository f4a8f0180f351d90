import csv
import sys
from decimal import Decimal
from typing import Iterable, Optional, TextIO

from models import AMOUNT_PRECISION, AccountSnapshot

REPORT_FIELDS = ["client", "available", "held", "total", "locked"]


def format_amount(value: Decimal) -> str:
    """Format decimal with exactly 4 decimal places."""
    return f"{value.quantize(AMOUNT_PRECISION):f}"


def write_accounts(snapshots: Iterable[AccountSnapshot], out: Optional[TextIO] = None) -> None:
    """Write final account states as CSV (header: client, available, held, total, locked)."""
    writer = csv.writer(out if out is not None else sys.stdout, lineterminator="\n")
    writer.writerow(REPORT_FIELDS)
    for snapshot in snapshots:
        writer.writerow([
            snapshot.client_id,
            format_amount(snapshot.available),
            format_amount(snapshot.held),
            format_amount(snapshot.total),
            str(snapshot.locked).lower(),
        ])
