import logging
import os
import sys
from enum import IntEnum
from typing import List, Optional

from csv_reader import InvalidCsvError, read_transactions
from ledger_engine import LedgerEngine
from report_writer import write_accounts

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "PAYMENTS_LOG_LEVEL"


class ExitCode(IntEnum):
    SUCCESS = 0
    MISSING_ARGUMENT = 1
    UNREADABLE_INPUT = 2
    INVALID_INPUT = 3
    TRANSACTION_ERRORS = 4


def configure_logging() -> None:
    level_name = os.getenv(LOG_LEVEL_ENV, "WARNING").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def run(argv: List[str]) -> int:
    """Process the CSV named by argv and print the final ledger. Returns the exit code."""
    if len(argv) != 1:
        print("Usage: payments-ledger <transactions.csv>", file=sys.stderr)
        return ExitCode.MISSING_ARGUMENT

    filepath = argv[0]
    engine = LedgerEngine()
    try:
        stats = engine.process(read_transactions(filepath))
    except OSError as e:
        logger.error(f"Cannot read {filepath}: {e}")
        return ExitCode.UNREADABLE_INPUT
    except InvalidCsvError as e:
        logger.error(f"Invalid csv {filepath}: {e}")
        return ExitCode.INVALID_INPUT

    write_accounts(engine.snapshot(), sys.stdout)

    print(f"Processed: {stats.processed}, Failed: {stats.failed}", file=sys.stderr)

    if engine.has_failures:
        for result, count in stats.failures.items():
            logger.info(f"  {result.value}: {count}")
        return ExitCode.TRANSACTION_ERRORS
    return ExitCode.SUCCESS


def main(argv: Optional[List[str]] = None) -> None:
    configure_logging()
    sys.exit(run(sys.argv[1:] if argv is None else argv))


if __name__ == "__main__":
    main()
