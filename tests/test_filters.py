"""
Tests for the Filter Engine.
"""

from dataclasses import replace
from datetime import date

import pytest

from treasury_recon.models import (
    AmountRange,
    DateRange,
    FilterSpec,
    MatchedPair,
    StatusFilter,
    TransactionSide,
)
from treasury_recon.reconciliation import CREDIT, DEBIT, FilterEngine

LEDGER = TransactionSide.LEDGER
BANK = TransactionSide.BANK


@pytest.fixture
def engine():
    return FilterEngine()


def ids(txns):
    return [t.id for t in txns]


class TestStatusAndSearch:
    """Test status and text search filtering."""

    def test_default_spec_shows_everything(self, engine, ledger, bank):
        """Test that an empty filter keeps every row."""
        assert ids(engine.apply(ledger, FilterSpec(), LEDGER)) == ["C1", "C2", "C3", "C4"]
        assert ids(engine.apply(bank, FilterSpec(), BANK)) == ["B1", "B2", "B3", "B4"]

    def test_unreconciled_hides_reconciled_rows(self, engine, ledger):
        """Test the unreconciled status filter."""
        ledger[0] = ledger[0].with_reconciled(True)
        spec = FilterSpec(status_filter=StatusFilter.UNRECONCILED)
        assert ids(engine.apply(ledger, spec, LEDGER)) == ["C2", "C3", "C4"]

    def test_suggested_rows_stay_visible_when_reconciled(self, ledger, bank):
        """Test that suggested rows survive the status filter."""
        engine = FilterEngine([MatchedPair("C1", ("B1",), 0.9)])
        ledger[0] = ledger[0].with_reconciled(True)
        bank[0] = bank[0].with_reconciled(True)
        spec = FilterSpec(status_filter="Unreconciled")

        assert "C1" in ids(engine.apply(ledger, spec, LEDGER))
        assert "B1" in ids(engine.apply(bank, spec, BANK))

    def test_search_matches_label_case_insensitively(self, engine, bank):
        """Test case-insensitive search on labels."""
        spec = FilterSpec(search_text="winred")
        assert ids(engine.apply(bank, spec, BANK)) == ["B3"]

    def test_search_matches_amount_text(self, engine, ledger):
        """Test search against the formatted amount."""
        spec = FilterSpec(search_text="141.45")
        assert ids(engine.apply(ledger, spec, LEDGER)) == ["C2"]

    def test_search_matches_date_text(self, engine, ledger):
        """Test search against the transaction date."""
        spec = FilterSpec(search_text="2024-04-03")
        assert ids(engine.apply(ledger, spec, LEDGER)) == ["C3"]


class TestRanges:
    """Test date and amount range filtering."""

    def test_date_range_is_inclusive(self, engine, ledger):
        """Test that range bounds are inclusive."""
        spec = FilterSpec(date_range=DateRange(date(2024, 4, 2), date(2024, 4, 3)))
        assert ids(engine.apply(ledger, spec, LEDGER)) == ["C2", "C3"]

    def test_open_ended_date_range(self, engine, ledger):
        """Test a date range with only a start."""
        spec = FilterSpec(date_range=DateRange(start=date(2024, 4, 3)))
        assert ids(engine.apply(ledger, spec, LEDGER)) == ["C3", "C4"]

    def test_amount_range_on_signed_amount(self, engine, bank):
        """Test amount bounds against signed amounts."""
        spec = FilterSpec(amount_range=AmountRange(max_cents=0))
        assert ids(engine.apply(bank, spec, BANK)) == ["B2", "B4"]


class TestCategories:
    """Test categorical multi-select filters."""

    def test_all_is_normalized_to_no_restriction(self):
        """Test that selecting All removes the restriction."""
        assert FilterSpec(fund_codes="All").fund_codes is None
        assert FilterSpec(fund_codes=["All", "P2026"]).fund_codes is None
        assert FilterSpec(fund_codes=[]).fund_codes is None
        assert FilterSpec(fund_codes=["P2026"]).fund_codes == frozenset({"P2026"})

    def test_ledger_fund_selection(self, engine, ledger):
        """Test fund membership on ledger rows."""
        spec = FilterSpec(fund_codes=["G2026"])
        assert ids(engine.apply(ledger, spec, LEDGER)) == ["C3"]

    def test_ledger_missing_field_is_not_excluded(self, engine, ledger):
        """Test that rows without a value pass the filter."""
        # C4 has no line number and no account code
        spec = FilterSpec(line_numbers=["SB21B"], account_codes=["Operating P2026"])
        assert ids(engine.apply(ledger, spec, LEDGER)) == ["C2", "C4"]

    def test_ledger_payment_type_membership(self, engine, ledger):
        """Test exact payment type match on ledger rows."""
        spec = FilterSpec(payment_types=["WR", "CK"])
        assert ids(engine.apply(ledger, spec, LEDGER)) == ["C3", "C4"]

    def test_bank_fund_selection_is_a_sign_filter(self, engine, bank):
        """Test credit and debit selection on bank rows."""
        assert ids(engine.apply(bank, FilterSpec(fund_codes=[CREDIT]), BANK)) == ["B1", "B3"]
        assert ids(engine.apply(bank, FilterSpec(fund_codes=[DEBIT]), BANK)) == ["B2", "B4"]

    def test_bank_payment_type_matches_description_substring(self, engine, bank):
        """Test payment type as a description substring on bank rows."""
        spec = FilterSpec(payment_types=["check", "fee"])
        assert ids(engine.apply(bank, spec, BANK)) == ["B2", "B4"]

    def test_bank_ignores_line_numbers(self, engine, bank):
        """Test that line numbers do not restrict bank rows."""
        spec = FilterSpec(line_numbers=["SB21B"])
        assert len(engine.apply(bank, spec, BANK)) == len(bank)

    def test_bank_account_filter_passes_rows_without_account(self, engine, bank):
        """Test bank rows without an account code."""
        spec = FilterSpec(account_codes=["General G2026"])
        assert ids(engine.apply(bank, spec, BANK)) == ["B3", "B4"]


class TestIdempotence:
    """Test repeated filtering."""

    @pytest.mark.parametrize("spec", [
        FilterSpec(),
        FilterSpec(status_filter=StatusFilter.UNRECONCILED, search_text="c"),
        FilterSpec(fund_codes=["P2026"], amount_range=AmountRange(min_cents=0)),
        FilterSpec(date_range=DateRange(end=date(2024, 4, 2)), payment_types=["CH"]),
    ])
    def test_filtering_twice_equals_filtering_once(self, engine, ledger, spec):
        """Test that filtering is idempotent."""
        ledger[1] = ledger[1].with_reconciled(True)
        once = engine.apply(ledger, spec, LEDGER)
        assert engine.apply(once, spec, LEDGER) == once

    def test_spec_is_immutable(self):
        """Test that replacing a field leaves the original spec unchanged."""
        spec = FilterSpec(search_text="x")
        changed = replace(spec, search_text="y")
        assert spec.search_text == "x"
        assert changed.search_text == "y"
