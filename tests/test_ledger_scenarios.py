import sys
import os
import random
from decimal import Decimal

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from csv_reader import read_transactions
from ledger_engine import LedgerEngine
from main import ExitCode, run
from models import ProcessingResult, Transaction, TransactionType

FIXTURES = os.path.join(os.path.dirname(os.path.abspath(__file__)), "fixtures")


def random_transactions(rng, count, num_clients):
    """Mixed, partly invalid traffic: reused ids, foreign disputes, non positive amounts."""
    kinds = list(TransactionType)
    weights = [5, 3, 2, 1, 1]
    deposits_by_client = {}
    next_id = 1

    for _ in range(count):
        kind = rng.choices(kinds, weights)[0]
        client_id = rng.randint(1, num_clients)

        if kind.carries_amount:
            if next_id > 1 and rng.random() < 0.1:
                transaction_id = rng.randint(1, next_id - 1)
            else:
                transaction_id = next_id
                next_id += 1
            amount = Decimal(rng.randint(-50, 20000)).scaleb(-2)
            if kind == TransactionType.DEPOSIT:
                deposits_by_client.setdefault(client_id, []).append(transaction_id)
            yield Transaction(kind, client_id=client_id, transaction_id=transaction_id, amount=amount)
        else:
            own = deposits_by_client.get(client_id)
            if own and rng.random() < 0.8:
                transaction_id = rng.choice(own)
            else:
                transaction_id = rng.randint(1, next_id + 10)
            yield Transaction(kind, client_id=client_id, transaction_id=transaction_id)


def balances(engine):
    return {snapshot.client_id: snapshot for snapshot in engine.snapshot()}


class TestLedgerInvariants:
    def test_balances_stay_consistent_after_every_record(self):
        """After each applied or rejected record, no balance is negative and total = available + held."""
        engine = LedgerEngine()
        transactions = list(random_transactions(random.Random(20240601), 5000, 25))

        for transaction in transactions:
            before = balances(engine)
            result = engine.apply(transaction)
            after = balances(engine)

            for snapshot in after.values():
                assert snapshot.available >= 0, f"{transaction} -> {snapshot}"
                assert snapshot.held >= 0, f"{transaction} -> {snapshot}"
                assert snapshot.total == snapshot.available + snapshot.held

            if result.is_failure:
                # only a brand new, empty account may appear
                for client_id, snapshot in after.items():
                    if client_id in before:
                        assert snapshot == before[client_id], f"{transaction} rejected with {result} but changed balances"
                    else:
                        assert snapshot.total == Decimal("0")
                        assert snapshot.locked is False

        assert engine.stats.processed + engine.stats.failed == len(transactions)
        assert engine.stats.processed > 0
        assert engine.stats.failures[ProcessingResult.DUPLICATE_TRANSACTION] > 0


class TestLedgerAtScale:
    def test_disputes_wait_for_funds(self, tmp_path):
        """A dispute larger than the available funds is refused until a later deposit covers it."""
        num_clients = 500
        rows = ["type, client, tx, amount"]
        for client_id in range(1, num_clients + 1):
            base = client_id * 10
            rows.append(f"deposit, {client_id}, {base + 1}, 100")
            rows.append(f"withdrawal, {client_id}, {base + 2}, 40")
            rows.append(f"dispute, {client_id}, {base + 1},")
            rows.append(f"deposit, {client_id}, {base + 3}, 60")
            rows.append(f"dispute, {client_id}, {base + 1},")

        csv_file = tmp_path / "disputes.csv"
        csv_file.write_text('\n'.join(rows))

        engine = LedgerEngine()
        engine.process(read_transactions(str(csv_file)))
        accounts = balances(engine)

        assert len(accounts) == num_clients
        assert engine.stats.failed == num_clients
        assert engine.stats.failures[ProcessingResult.INSUFFICIENT_FUNDS] == num_clients
        for snapshot in accounts.values():
            assert snapshot.available == Decimal("20")
            assert snapshot.held == Decimal("100")
            assert snapshot.total == Decimal("120")
            assert snapshot.locked is False

    def test_reused_ids_rejected_across_clients(self, tmp_path):
        """Transaction ids are global: reusing another client's id is refused for deposits and withdrawals."""
        num_clients = 300
        rows = ["type, client, tx, amount"]
        for client_id in range(1, num_clients + 1):
            rows.append(f"deposit, {client_id}, {client_id}, 10")
        for client_id in range(1, num_clients + 1):
            other = client_id % num_clients + 1
            rows.append(f"deposit, {client_id}, {other}, 999")
            rows.append(f"withdrawal, {client_id}, {client_id}, 1")

        csv_file = tmp_path / "duplicates.csv"
        csv_file.write_text('\n'.join(rows))

        engine = LedgerEngine()
        engine.process(read_transactions(str(csv_file)))
        accounts = balances(engine)

        assert engine.stats.processed == num_clients
        assert engine.stats.failures[ProcessingResult.DUPLICATE_TRANSACTION] == 2 * num_clients
        for snapshot in accounts.values():
            assert snapshot.available == Decimal("10")
            assert snapshot.total == Decimal("10")


class TestGoldenOutput:
    def test_mixed_fixture(self, capsys):
        with open(os.path.join(FIXTURES, "mixed_expected.csv")) as f:
            expected = f.read()

        assert run([os.path.join(FIXTURES, "mixed.csv")]) == ExitCode.TRANSACTION_ERRORS

        captured = capsys.readouterr()
        assert captured.out == expected
        assert "Processed: 11, Failed: 6" in captured.err
