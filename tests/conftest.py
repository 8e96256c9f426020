"""
Shared fixtures: a small campaign ledger and the matching bank statement.
"""

from datetime import date

import pytest

from treasury_recon.models import BankTransaction, LedgerTransaction, MoneyType
from treasury_recon.reconciliation import ReconciliationStore
from treasury_recon.utils import AuditRecorder


@pytest.fixture
def make_ledger():
    def factory(id, amount_cents, day=date(2024, 4, 2), **kwargs):
        kwargs.setdefault("payment_type", "CH")
        return LedgerTransaction(id=id, transaction_date=day, amount_cents=amount_cents, **kwargs)
    return factory


@pytest.fixture
def make_bank():
    def factory(id, amount_cents, day=date(2024, 4, 2), **kwargs):
        kwargs.setdefault("description", "DEPOSIT")
        return BankTransaction(id=id, transaction_date=day, amount_cents=amount_cents, **kwargs)
    return factory


@pytest.fixture
def ledger():
    return [
        LedgerTransaction(
            id="C1",
            transaction_date=date(2024, 4, 1),
            amount_cents=25000,
            money_type=MoneyType.CONTRIBUTION,
            payment_type="CH",
            fund_code="P2026",
            account_code="Operating P2026",
            line_number="SA11AI",
        ),
        LedgerTransaction(
            id="C2",
            transaction_date=date(2024, 4, 2),
            amount_cents=-14145,
            money_type=MoneyType.DISBURSEMENT,
            payment_type="CH",
            fund_code="P2026",
            account_code="Operating P2026",
            line_number="SB21B",
        ),
        LedgerTransaction(
            id="C3",
            transaction_date=date(2024, 4, 3),
            amount_cents=50000,
            money_type=MoneyType.WINRED,
            payment_type="WR",
            fund_code="G2026",
            account_code="General G2026",
            line_number="SA11AI",
        ),
        LedgerTransaction(
            id="C4",
            transaction_date=date(2024, 4, 5),
            amount_cents=10000,
            money_type=MoneyType.OTHER_RECEIPT,
            payment_type="CK",
            fund_code="P2026",
            line_number=None,
        ),
    ]


@pytest.fixture
def bank():
    return [
        BankTransaction(
            id="B1",
            transaction_date=date(2024, 4, 1),
            amount_cents=25000,
            description="DEPOSIT",
            account_code="Operating P2026",
        ),
        BankTransaction(
            id="B2",
            transaction_date=date(2024, 4, 2),
            amount_cents=-14145,
            description="CHECK 1042",
            account_code="Operating P2026",
        ),
        BankTransaction(
            id="B3",
            transaction_date=date(2024, 4, 3),
            amount_cents=50000,
            description="WINRED PAYOUT",
            account_code="General G2026",
        ),
        BankTransaction(
            id="B4",
            transaction_date=date(2024, 4, 6),
            amount_cents=-2500,
            description="BANK FEE",
        ),
    ]


@pytest.fixture
def audit():
    return AuditRecorder(user="treasurer")


@pytest.fixture
def store(ledger, bank, audit):
    return ReconciliationStore(ledger, bank, audit=audit)
