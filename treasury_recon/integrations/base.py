"""Contract shared by AI matching collaborators."""

from typing import Any, Protocol, Sequence

from ..models import BankTransaction, LedgerTransaction, MatchedPair


class MatchingServiceError(Exception):
    """Failure reported by a matching collaborator."""
    def __init__(self, message: str, status_code: int = 0, details: Any = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.details = details
        self.retryable = retryable


class MatchProvider(Protocol):
    """
    Proposes ledger-to-bank pairings for two unreconciled collections.

    Implementations raise MatchingServiceError on failure and never turn a
    failure into an empty list.
    """

    async def suggest_matches(
        self,
        ledger: Sequence[LedgerTransaction],
        bank: Sequence[BankTransaction],
    ) -> Sequence[MatchedPair]:
        ...


def ledger_record(txn: LedgerTransaction) -> dict:
    """Plain record sent to a collaborator; batch details are left out."""
    return {
        "id": txn.id,
        "date": txn.date_text,
        "moneyType": txn.money_type.value,
        "paymentType": txn.payment_type,
        "amount": txn.amount,
        "group": txn.group,
        "isReconciled": txn.is_reconciled,
        "accountCode": txn.account_code,
        "fundCode": txn.fund_code,
        "lineNumber": txn.line_number,
    }


def bank_record(txn: BankTransaction) -> dict:
    """Plain record sent to a collaborator; split details are left out."""
    return {
        "id": txn.id,
        "date": txn.date_text,
        "description": txn.description,
        "amount": txn.amount,
        "isReconciled": txn.is_reconciled,
        "isNrit": txn.is_nrit,
        "accountCode": txn.account_code,
    }
