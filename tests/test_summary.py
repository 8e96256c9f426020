"""
Tests for summary statistics and breakdowns.
"""

import pytest

from treasury_recon.models import MatchedPair, ReconciliationStats
from treasury_recon.money import to_cents
from treasury_recon.reconciliation import compute_stats, fund_breakdown, line_breakdown


class TestDiscrepancy:
    """Test the discrepancy flag."""

    @pytest.mark.parametrize("bank_amount,expected", [
        ("999.98", True),
        ("999.99", False),
        ("999.995", False),
        ("1000.00", False),
        ("1000.02", True),
    ])
    def test_strictly_greater_than_one_cent(self, make_ledger, make_bank, bank_amount, expected):
        """Test that one cent is within tolerance."""
        ledger = [make_ledger("C1", to_cents("1000.00"))]
        bank = [make_bank("B1", to_cents(bank_amount))]

        stats = compute_stats(ledger, bank, tolerance_cents=1)

        assert stats.has_discrepancy is expected

    def test_reconciled_rows_do_not_count(self, make_ledger, make_bank):
        """Test that reconciled rows are excluded."""
        ledger = [make_ledger("C1", 5000, is_reconciled=True), make_ledger("C2", 700)]
        bank = [make_bank("B1", 700)]

        stats = compute_stats(ledger, bank, tolerance_cents=1)

        assert stats.discrepancy_cents == 0
        assert stats.discrepancy == 0.0


class TestStats:
    """Test reconciliation statistics."""

    def test_counts_and_totals(self, store):
        """Test counts and unreconciled totals."""
        store.apply_reconciliation(["C1"], ["B1"])
        store.mark_nrit(["B4"])

        stats = compute_stats(
            store.ledger_snapshot(),
            store.bank_snapshot(),
            suggestions=[MatchedPair("C2", ("B2",), 0.9)],
        )

        assert stats.total_ledger_transactions == 4
        assert stats.reconciled_ledger_transactions == 1
        assert stats.reconciled_bank_transactions == 2
        assert stats.unreconciled_bank_transactions == 2
        assert stats.total_ledger_amount_cents == 70855
        assert stats.unreconciled_ledger_amount_cents == 45855
        assert stats.unreconciled_bank_amount_cents == 35855
        assert stats.nrit_count == 1
        assert stats.suggestion_count == 1
        assert stats.reconciliation_progress == 25.0

    def test_progress_with_empty_ledger(self):
        """Test progress when there are no ledger rows."""
        assert ReconciliationStats().reconciliation_progress == 0.0
        assert compute_stats([], []).reconciliation_progress == 0.0


class TestBreakdowns:
    """Test fund and line breakdowns."""

    def test_fund_breakdown(self, store):
        """Test totals per fund."""
        store.apply_reconciliation(["C1"], [])
        rows = fund_breakdown(store.ledger_snapshot())

        assert set(rows) == {"P2026", "G2026"}
        assert rows["P2026"].reconciled_transactions == 1
        assert rows["P2026"].reconciled_amount_cents == 25000
        assert rows["P2026"].unreconciled_transactions == 2
        assert rows["P2026"].unreconciled_amount_cents == -4145
        assert rows["G2026"].unreconciled_amount_cents == 50000

    def test_line_breakdown_skips_rows_without_line(self, ledger):
        """Test that rows without a line are skipped."""
        rows = line_breakdown(ledger)

        assert set(rows) == {"SA11AI", "SB21B"}
        assert rows["SA11AI"].unreconciled_transactions == 2
