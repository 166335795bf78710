"""
Tests for per-cycle result aggregation and the summary table.
"""

from io import StringIO

import pytest
from rich.console import Console

from core.config import InteractionParams
from core.errors import ErrorType
from core.models import OperationKind, OperationOutcome
from core.tracker import ResultTracker

WALLET_A = "0x1111111111111111111111111111111111111111"
WALLET_B = "0x2222222222222222222222222222222222222222"


@pytest.fixture
def tracker():
    console = Console(file=StringIO(), width=120)
    return ResultTracker(
        InteractionParams(transfer_count=2, wrap_count=1, unwrap_count=1), console=console,
    )


def test_record_updates_rows_and_totals(tracker):
    tracker.start_wallet(WALLET_A)
    tracker.record(WALLET_A, OperationOutcome.ok(OperationKind.FAUCET, "ok"))
    tracker.record(WALLET_A, OperationOutcome.failed(
        OperationKind.CHECKIN, "nope", ErrorType.REJECTED))
    tracker.record(WALLET_A, OperationOutcome.ok(OperationKind.TRANSFER, "sent"))
    tracker.record(WALLET_A, OperationOutcome.failed(
        OperationKind.TRANSFER, "low", ErrorType.INSUFFICIENT_FUNDS))
    tracker.finish_wallet(WALLET_A)

    row = tracker.summary()[WALLET_A]
    assert row.faucet_success is True
    assert row.checkin_success is False
    assert row.transfer_count == 1

    totals = tracker.totals()
    assert totals["faucets"] == 1
    assert totals["checkins"] == 1
    assert totals["transfers"] == 2
    assert totals["successful"] == 2
    assert totals["total"] == 4
    assert totals["wallets"] == 1
    assert tracker.success_rate == 50.0


def test_summary_keyed_by_address(tracker):
    tracker.start_wallet(WALLET_A)
    tracker.record(WALLET_B, OperationOutcome.ok(OperationKind.WRAP, "wrapped"))
    assert set(tracker.summary()) == {WALLET_A, WALLET_B}
    assert tracker.summary()[WALLET_B].wrap_count == 1


def test_reset_clears_rows_and_totals(tracker):
    tracker.start_wallet(WALLET_A)
    tracker.record(WALLET_A, OperationOutcome.ok(OperationKind.UNWRAP, "done"))
    tracker.finish_wallet(WALLET_A)

    tracker.start_cycle()

    assert tracker.cycle == 1
    assert tracker.summary() == {}
    assert tracker.successful_ops == 0
    assert tracker.total_ops == 0
    assert tracker.wallets_processed == 0
    assert all(v == 0 for v in tracker.interactions.values())


def test_render_shows_short_address_and_counts(tracker):
    tracker.start_cycle()
    tracker.start_wallet(WALLET_A)
    tracker.record(WALLET_A, OperationOutcome.ok(OperationKind.TRANSFER, "sent"))
    tracker.finish_wallet(WALLET_A)

    tracker.display()
    output = tracker.console.file.getvalue()

    assert "0x1111...1111" in output
    assert "1/2" in output
    assert "0/1" in output
    assert "Cycle 1" in output
    assert WALLET_A not in output
