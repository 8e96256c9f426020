"""
Filter Engine - decides which transactions a view shows.

Predicates run in a fixed order and stop at the first failure:
status, text search, date range, amount range, category selections.
"""

from typing import Iterable, List, Optional, Sequence, Set

from ..models import (
    AnyTransaction,
    BankTransaction,
    FilterSpec,
    LedgerTransaction,
    MatchedPair,
    StatusFilter,
    TransactionSide,
)

CREDIT = "Credit"
DEBIT = "Debit"


class FilterEngine:
    """
    Pure predicate evaluation of transactions against a FilterSpec.

    Holds the ids referenced by the live suggestion list so that reconciled
    but suggested rows stay visible under the Unreconciled filter.
    """

    def __init__(self, suggestions: Iterable[MatchedPair] = ()):
        self._suggested_ledger: Set[str] = set()
        self._suggested_bank: Set[str] = set()
        self.update_suggestions(suggestions)

    def update_suggestions(self, suggestions: Iterable[MatchedPair]) -> None:
        ledger, bank = set(), set()
        for pair in suggestions:
            ledger.add(pair.ledger_transaction_id)
            bank.update(pair.bank_transaction_ids)
        self._suggested_ledger = ledger
        self._suggested_bank = bank

    def is_suggested(self, transaction_id: str, side: TransactionSide) -> bool:
        if side == TransactionSide.LEDGER:
            return transaction_id in self._suggested_ledger
        return transaction_id in self._suggested_bank

    def matches(
        self,
        transaction: AnyTransaction,
        spec: FilterSpec,
        side: Optional[TransactionSide] = None,
    ) -> bool:
        side = TransactionSide(side) if side is not None else transaction.side

        # Status
        if spec.status_filter == StatusFilter.UNRECONCILED and transaction.is_reconciled:
            if not self.is_suggested(transaction.id, side):
                return False

        # Text search
        if spec.search_text and not self._matches_search(transaction, spec.search_text):
            return False

        # Date range
        if spec.date_range.is_set and not spec.date_range.contains(transaction.transaction_date):
            return False

        # Amount range
        if not spec.amount_range.contains(transaction.amount_cents):
            return False

        if side == TransactionSide.LEDGER:
            return self._matches_ledger_categories(transaction, spec)
        return self._matches_bank_categories(transaction, spec)

    def apply(
        self,
        transactions: Sequence[AnyTransaction],
        spec: FilterSpec,
        side: Optional[TransactionSide] = None,
    ) -> List[AnyTransaction]:
        """Visible subset, preserving collection order."""
        return [t for t in transactions if self.matches(t, spec, side)]

    @staticmethod
    def _matches_search(transaction: AnyTransaction, search_text: str) -> bool:
        needle = search_text.lower()
        return (
            needle in transaction.label.lower()
            or needle in transaction.amount_text
            or needle in transaction.date_text
        )

    @staticmethod
    def _matches_ledger_categories(transaction: LedgerTransaction, spec: FilterSpec) -> bool:
        # A row with no value for a field is not excluded by that field.
        checks = (
            (spec.fund_codes, transaction.fund_code),
            (spec.account_codes, transaction.account_code),
            (spec.payment_types, transaction.payment_type or None),
            (spec.line_numbers, transaction.line_number),
        )
        for selected, value in checks:
            if selected is not None and value is not None and value not in selected:
                return False
        return True

    @staticmethod
    def _matches_bank_categories(transaction: BankTransaction, spec: FilterSpec) -> bool:
        # Bank rows have no fund code; the fund selection acts as a sign filter.
        if spec.fund_codes is not None:
            if CREDIT in spec.fund_codes and transaction.amount_cents < 0:
                return False
            if DEBIT in spec.fund_codes and transaction.amount_cents >= 0:
                return False

        if spec.payment_types is not None:
            description = transaction.description.lower()
            if not any(code.lower() in description for code in spec.payment_types):
                return False

        if spec.account_codes is not None and transaction.account_code is not None:
            if transaction.account_code not in spec.account_codes:
                return False

        # Line numbers are ledger-only.
        return True
