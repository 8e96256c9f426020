"""
Read-only data quality checks over both collections.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from ..config import get_settings
from ..models import (
    AnyTransaction,
    BankTransaction,
    IssueCategory,
    IssueSeverity,
    LedgerTransaction,
    TransactionSide,
)
from ..money import format_currency

logger = structlog.get_logger()

_SEVERITY_ORDER = {
    IssueSeverity.ERROR: 0,
    IssueSeverity.WARNING: 1,
    IssueSeverity.INFO: 2,
}


@dataclass(frozen=True)
class Issue:
    """A single finding; never changes any transaction."""
    severity: IssueSeverity
    category: IssueCategory
    message: str
    transaction_ids: Tuple[str, ...] = ()
    side: Optional[TransactionSide] = None


class DataValidator:
    """
    Flags suspicious data before reconciliation:
    duplicates, outliers, zero or future-dated rows, missing fields, a
    reconciled imbalance and stale unreconciled rows.
    """

    def __init__(
        self,
        large_amount_factor: Optional[int] = None,
        stale_after_days: Optional[int] = None,
        tolerance_cents: Optional[int] = None,
    ):
        settings = get_settings()
        self.large_amount_factor = large_amount_factor or settings.large_amount_factor
        self.stale_after_days = stale_after_days or settings.stale_after_days
        self.tolerance_cents = (
            tolerance_cents if tolerance_cents is not None else settings.discrepancy_tolerance_cents
        )

    def validate(
        self,
        ledger: Sequence[LedgerTransaction],
        bank: Sequence[BankTransaction],
        today: Optional[date] = None,
    ) -> List[Issue]:
        """Run every check; issues come back errors first, then warnings, then info."""
        today = today or date.today()
        issues: List[Issue] = []

        issues += self._duplicates(ledger)
        for side, txns in ((TransactionSide.LEDGER, ledger), (TransactionSide.BANK, bank)):
            issues += self._large_amounts(txns, side)
            issues += self._zero_amounts(txns, side)
            issues += self._future_dates(txns, side, today)
            issues += self._stale(txns, side, today)
        issues += self._missing_fields(ledger, bank)
        issues += self._reconciled_imbalance(ledger, bank)

        issues.sort(key=lambda i: _SEVERITY_ORDER[i.severity])
        logger.info(
            "Data validation finished",
            issues=len(issues),
            errors=sum(1 for i in issues if i.severity == IssueSeverity.ERROR),
        )
        return issues

    # ------------------------------------------------------------------

    @staticmethod
    def _duplicates(ledger: Sequence[LedgerTransaction]) -> List[Issue]:
        groups: Dict[Tuple[date, int], List[str]] = defaultdict(list)
        for txn in ledger:
            groups[(txn.transaction_date, txn.amount_cents)].append(txn.id)

        return [
            Issue(
                severity=IssueSeverity.WARNING,
                category=IssueCategory.DUPLICATE,
                message=(
                    f"{len(ids)} ledger transactions on {day.isoformat()} "
                    f"for {format_currency(amount)}"
                ),
                transaction_ids=tuple(ids),
                side=TransactionSide.LEDGER,
            )
            for (day, amount), ids in groups.items()
            if len(ids) > 1
        ]

    def _large_amounts(self, txns: Sequence[AnyTransaction], side: TransactionSide) -> List[Issue]:
        if not txns:
            return []
        mean = sum(t.abs_amount_cents for t in txns) / len(txns)
        limit = mean * self.large_amount_factor
        return [
            Issue(
                severity=IssueSeverity.WARNING,
                category=IssueCategory.AMOUNT,
                message=f"Unusually large amount {format_currency(t.amount_cents)}",
                transaction_ids=(t.id,),
                side=side,
            )
            for t in txns
            if mean > 0 and t.abs_amount_cents > limit
        ]

    @staticmethod
    def _zero_amounts(txns: Sequence[AnyTransaction], side: TransactionSide) -> List[Issue]:
        ids = tuple(t.id for t in txns if t.amount_cents == 0)
        if not ids:
            return []
        return [Issue(
            severity=IssueSeverity.ERROR,
            category=IssueCategory.AMOUNT,
            message=f"{len(ids)} {side.value} transaction(s) with a zero amount",
            transaction_ids=ids,
            side=side,
        )]

    @staticmethod
    def _future_dates(
        txns: Sequence[AnyTransaction], side: TransactionSide, today: date,
    ) -> List[Issue]:
        ids = tuple(t.id for t in txns if t.transaction_date > today)
        if not ids:
            return []
        return [Issue(
            severity=IssueSeverity.WARNING,
            category=IssueCategory.DATE,
            message=f"{len(ids)} {side.value} transaction(s) dated in the future",
            transaction_ids=ids,
            side=side,
        )]

    def _stale(self, txns: Sequence[AnyTransaction], side: TransactionSide, today: date) -> List[Issue]:
        ids = tuple(
            t.id for t in txns
            if not t.is_reconciled and (today - t.transaction_date).days > self.stale_after_days
        )
        if not ids:
            return []
        return [Issue(
            severity=IssueSeverity.INFO,
            category=IssueCategory.DATE,
            message=(
                f"{len(ids)} {side.value} transaction(s) unreconciled for more than "
                f"{self.stale_after_days} days"
            ),
            transaction_ids=ids,
            side=side,
        )]

    @staticmethod
    def _missing_fields(
        ledger: Sequence[LedgerTransaction], bank: Sequence[BankTransaction],
    ) -> List[Issue]:
        issues = []
        no_payment_type = tuple(t.id for t in ledger if not t.payment_type.strip())
        if no_payment_type:
            issues.append(Issue(
                severity=IssueSeverity.ERROR,
                category=IssueCategory.MISSING,
                message=f"{len(no_payment_type)} ledger transaction(s) missing a payment type",
                transaction_ids=no_payment_type,
                side=TransactionSide.LEDGER,
            ))
        no_description = tuple(t.id for t in bank if not t.description.strip())
        if no_description:
            issues.append(Issue(
                severity=IssueSeverity.ERROR,
                category=IssueCategory.MISSING,
                message=f"{len(no_description)} bank transaction(s) missing a description",
                transaction_ids=no_description,
                side=TransactionSide.BANK,
            ))
        return issues

    def _reconciled_imbalance(
        self, ledger: Sequence[LedgerTransaction], bank: Sequence[BankTransaction],
    ) -> List[Issue]:
        # NRIT rows are reconciled without a ledger counterpart.
        ledger_total = sum(t.amount_cents for t in ledger if t.is_reconciled)
        bank_total = sum(t.amount_cents for t in bank if t.is_reconciled and not t.is_nrit)
        difference = ledger_total - bank_total
        if abs(difference) <= self.tolerance_cents:
            return []
        return [Issue(
            severity=IssueSeverity.ERROR,
            category=IssueCategory.AMOUNT,
            message=(
                f"Reconciled totals differ by {format_currency(difference)}: "
                f"ledger {format_currency(ledger_total)}, bank {format_currency(bank_total)}"
            ),
        )]
