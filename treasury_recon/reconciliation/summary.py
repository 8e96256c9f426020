"""
Session/Summary Aggregator - point-in-time statistics over both collections.
"""

from collections import defaultdict
from typing import Callable, Dict, Optional, Sequence

from ..config import get_settings
from ..models import (
    BankTransaction,
    BreakdownRow,
    LedgerTransaction,
    MatchedPair,
    ReconciliationStats,
)


def compute_stats(
    ledger: Sequence[LedgerTransaction],
    bank: Sequence[BankTransaction],
    suggestions: Sequence[MatchedPair] = (),
    tolerance_cents: Optional[int] = None,
) -> ReconciliationStats:
    """
    Derive dashboard statistics.

    The discrepancy compares signed unreconciled totals and uses a cent-level
    tolerance; it is unrelated to the exact-zero rule for manual matches.
    """
    if tolerance_cents is None:
        tolerance_cents = get_settings().discrepancy_tolerance_cents

    return ReconciliationStats(
        total_ledger_transactions=len(ledger),
        total_bank_transactions=len(bank),
        reconciled_ledger_transactions=sum(1 for t in ledger if t.is_reconciled),
        reconciled_bank_transactions=sum(1 for t in bank if t.is_reconciled),
        total_ledger_amount_cents=sum(t.amount_cents for t in ledger),
        total_bank_amount_cents=sum(t.amount_cents for t in bank),
        unreconciled_ledger_amount_cents=sum(t.amount_cents for t in ledger if not t.is_reconciled),
        unreconciled_bank_amount_cents=sum(t.amount_cents for t in bank if not t.is_reconciled),
        suggestion_count=len(suggestions),
        nrit_count=sum(1 for t in bank if t.is_nrit),
        discrepancy_tolerance_cents=tolerance_cents,
    )


def _breakdown(
    ledger: Sequence[LedgerTransaction],
    key: Callable[[LedgerTransaction], Optional[str]],
) -> Dict[str, BreakdownRow]:
    counts: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for txn in ledger:
        bucket = key(txn)
        if not bucket:
            continue
        row = counts[bucket]
        if txn.is_reconciled:
            row["reconciled_transactions"] += 1
            row["reconciled_amount_cents"] += txn.amount_cents
        else:
            row["unreconciled_transactions"] += 1
            row["unreconciled_amount_cents"] += txn.amount_cents
    return {bucket: BreakdownRow(**row) for bucket, row in counts.items()}


def fund_breakdown(ledger: Sequence[LedgerTransaction]) -> Dict[str, BreakdownRow]:
    """Reconciled/unreconciled totals per ledger fund code."""
    return _breakdown(ledger, lambda t: t.fund_code)


def line_breakdown(ledger: Sequence[LedgerTransaction]) -> Dict[str, BreakdownRow]:
    """Reconciled/unreconciled totals per regulatory line number."""
    return _breakdown(ledger, lambda t: t.line_number)
