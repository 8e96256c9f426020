"""Transaction models for the treasury reconciliation engine."""

from dataclasses import dataclass, replace
from datetime import date
from typing import Optional, Tuple, Dict, Any, Union

from ..exceptions import ValidationError
from ..money import from_cents, format_amount
from .enums import MoneyType, TransactionSide


@dataclass(frozen=True)
class BatchDetail:
    """One donor allocation inside a batched ledger deposit."""
    id: str
    amount_cents: int
    donor: str = ""

    @property
    def amount(self) -> float:
        return from_cents(self.amount_cents)


@dataclass(frozen=True)
class SplitDetails:
    """Gross / chargebacks / fees breakdown of a processor payout."""
    gross_cents: int
    chargebacks_cents: int = 0
    fees_cents: int = 0

    @property
    def total_cents(self) -> int:
        return self.gross_cents + self.chargebacks_cents + self.fees_cents


@dataclass(frozen=True)
class Transaction:
    """
    Base transaction model with the fields both sides share.
    All monetary amounts are stored in CENTS (integer) to avoid floating point errors.
    Positive amounts are inflows (credits), negative amounts outflows (debits).

    Instances are immutable; state changes produce a new instance through the
    reconciliation store, so a reconciled record is never edited in place.
    """
    id: str
    transaction_date: date
    amount_cents: int
    is_reconciled: bool = False

    side = None  # overridden by subclasses

    @property
    def amount(self) -> float:
        """Return amount in standard units (dollars)."""
        return from_cents(self.amount_cents)

    @property
    def abs_amount_cents(self) -> int:
        return abs(self.amount_cents)

    @property
    def is_credit(self) -> bool:
        return self.amount_cents >= 0

    @property
    def label(self) -> str:
        """Side-appropriate text used for search."""
        return ""

    @property
    def amount_text(self) -> str:
        return format_amount(self.amount_cents)

    @property
    def date_text(self) -> str:
        return self.transaction_date.isoformat()

    def with_reconciled(self, reconciled: bool) -> "Transaction":
        return replace(self, is_reconciled=reconciled)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "date": self.date_text,
            "amount": self.amount,
            "amount_cents": self.amount_cents,
            "is_reconciled": self.is_reconciled,
        }


@dataclass(frozen=True)
class LedgerTransaction(Transaction):
    """
    Internal ledger ("Crimson") record: a contribution, disbursement or
    adjustment. When batch_details is present the parent is still the unit of
    reconciliation; the details only break the amount down by donor.
    """
    money_type: MoneyType = MoneyType.CONTRIBUTION
    payment_type: str = ""
    group: str = ""
    fund_code: Optional[str] = None
    account_code: Optional[str] = None
    line_number: Optional[str] = None
    batch_details: Tuple[BatchDetail, ...] = ()

    side = TransactionSide.LEDGER

    def __post_init__(self):
        if self.batch_details:
            object.__setattr__(self, "batch_details", tuple(self.batch_details))
            allocated = sum(d.amount_cents for d in self.batch_details)
            if allocated != self.amount_cents:
                raise ValidationError(
                    f"Batch details of {self.id} sum to {format_amount(allocated)}, "
                    f"expected {format_amount(self.amount_cents)}"
                )

    @property
    def label(self) -> str:
        return self.payment_type

    def to_dict(self, include_batch_details: bool = True) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "money_type": self.money_type.value,
            "payment_type": self.payment_type,
            "group": self.group,
            "fund_code": self.fund_code,
            "account_code": self.account_code,
            "line_number": self.line_number,
        })
        if include_batch_details and self.batch_details:
            data["batch_details"] = [
                {"id": d.id, "amount": d.amount, "donor": d.donor}
                for d in self.batch_details
            ]
        return data


@dataclass(frozen=True)
class BankTransaction(Transaction):
    """
    Record sourced from a bank statement or feed.

    is_nrit (non-reportable item) implies is_reconciled. Use with_nrit() to
    toggle both flags together; constructing an NRIT row that is not
    reconciled is rejected.
    """
    description: str = ""
    is_nrit: bool = False
    account_code: Optional[str] = None
    split_details: Optional[SplitDetails] = None

    side = TransactionSide.BANK

    def __post_init__(self):
        if self.is_nrit and not self.is_reconciled:
            raise ValidationError(f"NRIT transaction {self.id} must be reconciled")
        if self.split_details is not None and self.split_details.total_cents != self.amount_cents:
            raise ValidationError(
                f"Split details of {self.id} sum to "
                f"{format_amount(self.split_details.total_cents)}, "
                f"expected {format_amount(self.amount_cents)}"
            )

    @property
    def label(self) -> str:
        return self.description

    def with_nrit(self, nrit: bool) -> "BankTransaction":
        """Marking sets both flags; unmarking clears both."""
        return replace(self, is_nrit=nrit, is_reconciled=nrit)

    def with_reconciled(self, reconciled: bool) -> "BankTransaction":
        if not reconciled and self.is_nrit:
            return replace(self, is_reconciled=False, is_nrit=False)
        return replace(self, is_reconciled=reconciled)

    def to_dict(self, include_split_details: bool = True) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "description": self.description,
            "is_nrit": self.is_nrit,
            "account_code": self.account_code,
        })
        if include_split_details and self.split_details is not None:
            data["split_details"] = {
                "gross": from_cents(self.split_details.gross_cents),
                "chargebacks": from_cents(self.split_details.chargebacks_cents),
                "fees": from_cents(self.split_details.fees_cents),
            }
        return data


AnyTransaction = Union[LedgerTransaction, BankTransaction]
