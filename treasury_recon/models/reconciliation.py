"""Reconciliation value objects: suggestions, filters, audit entries, sessions."""

from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Optional, List, Dict, Any, Tuple, FrozenSet, Iterable, Union, Mapping
from uuid import uuid4

from ..exceptions import ValidationError
from ..money import from_cents
from .enums import (
    AuditAction,
    DetailLevel,
    PeriodType,
    SessionStatus,
    StatusFilter,
)

ALL = "All"


@dataclass(frozen=True)
class MatchedPair:
    """
    A candidate correspondence between one ledger transaction and one or
    more bank transactions, proposed by the AI collaborator. Lives only in
    the matching engine's suggestion list.
    """
    ledger_transaction_id: str
    bank_transaction_ids: Tuple[str, ...]
    confidence_score: float
    reasoning: str = ""

    def __post_init__(self):
        object.__setattr__(self, "bank_transaction_ids", tuple(self.bank_transaction_ids))
        if not 0.0 <= self.confidence_score <= 1.0:
            raise ValidationError(
                f"Confidence score must be within [0, 1], got {self.confidence_score}"
            )

    @property
    def transaction_ids(self) -> List[str]:
        return [self.ledger_transaction_id, *self.bank_transaction_ids]


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range; a missing bound is open on that side."""
    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def is_set(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, day: date) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


@dataclass(frozen=True)
class AmountRange:
    """Inclusive bounds on the signed amount, in cents. None is unbounded."""
    min_cents: Optional[int] = None
    max_cents: Optional[int] = None

    def contains(self, amount_cents: int) -> bool:
        if self.min_cents is not None and amount_cents < self.min_cents:
            return False
        if self.max_cents is not None and amount_cents > self.max_cents:
            return False
        return True


CategoryInput = Union[None, str, Iterable[str]]


def normalize_selection(value: CategoryInput) -> Optional[FrozenSet[str]]:
    """
    Collapse a category selection to None (accept everything) or a non-empty
    frozenset. "All", ["All"], an empty list and None all mean everything.
    """
    if value is None:
        return None
    if isinstance(value, str):
        values = frozenset([value])
    else:
        values = frozenset(value)
    if not values or ALL in values:
        return None
    return values


@dataclass(frozen=True)
class FilterSpec:
    """
    Multi-field view filter, recreated per interaction.

    Category selections (fund_codes, account_codes, payment_types,
    line_numbers) are either None, meaning "All", or a non-empty frozenset of
    accepted values. Raw inputs such as "All" or ["P2026", "G2026"] are
    normalized on construction.
    """
    status_filter: StatusFilter = StatusFilter.ALL
    search_text: str = ""
    date_range: DateRange = field(default_factory=DateRange)
    amount_range: AmountRange = field(default_factory=AmountRange)
    fund_codes: Optional[FrozenSet[str]] = None
    account_codes: Optional[FrozenSet[str]] = None
    payment_types: Optional[FrozenSet[str]] = None
    line_numbers: Optional[FrozenSet[str]] = None

    def __post_init__(self):
        object.__setattr__(self, "status_filter", StatusFilter(self.status_filter))
        for name in ("fund_codes", "account_codes", "payment_types", "line_numbers"):
            object.__setattr__(self, name, normalize_selection(getattr(self, name)))


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuditEntry:
    """An immutable entry in the audit log."""
    action: AuditAction
    details: str
    user: str
    transaction_ids: Tuple[str, ...] = ()
    amount_cents: Optional[int] = None
    confidence: Optional[float] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"audit-{uuid4().hex[:12]}")
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        object.__setattr__(self, "transaction_ids", tuple(self.transaction_ids))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def amount(self) -> Optional[float]:
        if self.amount_cents is None:
            return None
        return from_cents(self.amount_cents)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "user": self.user,
            "action": self.action.value,
            "details": self.details,
            "transaction_ids": list(self.transaction_ids),
            "amount": self.amount,
            "confidence": self.confidence,
            "metadata": dict(self.metadata),
        }


# ---------------------------------------------------------------------------
# Summary statistics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReconciliationStats:
    """Point-in-time statistics derived from both collections."""
    total_ledger_transactions: int = 0
    total_bank_transactions: int = 0
    reconciled_ledger_transactions: int = 0
    reconciled_bank_transactions: int = 0

    # Amounts (in cents, signed)
    total_ledger_amount_cents: int = 0
    total_bank_amount_cents: int = 0
    unreconciled_ledger_amount_cents: int = 0
    unreconciled_bank_amount_cents: int = 0

    suggestion_count: int = 0
    nrit_count: int = 0
    discrepancy_tolerance_cents: int = 1

    @property
    def reconciliation_progress(self) -> float:
        """Percentage of ledger transactions reconciled."""
        if self.total_ledger_transactions == 0:
            return 0.0
        return (self.reconciled_ledger_transactions / self.total_ledger_transactions) * 100

    @property
    def discrepancy_cents(self) -> int:
        return self.unreconciled_ledger_amount_cents - self.unreconciled_bank_amount_cents

    @property
    def discrepancy(self) -> float:
        return from_cents(self.discrepancy_cents)

    @property
    def has_discrepancy(self) -> bool:
        return abs(self.discrepancy_cents) > self.discrepancy_tolerance_cents

    @property
    def unreconciled_ledger_transactions(self) -> int:
        return self.total_ledger_transactions - self.reconciled_ledger_transactions

    @property
    def unreconciled_bank_transactions(self) -> int:
        return self.total_bank_transactions - self.reconciled_bank_transactions


@dataclass(frozen=True)
class BreakdownRow:
    """Reconciled vs unreconciled totals for one fund code or line number."""
    reconciled_transactions: int = 0
    reconciled_amount_cents: int = 0
    unreconciled_transactions: int = 0
    unreconciled_amount_cents: int = 0


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Period:
    """Bounded reconciliation period."""
    start: date
    end: date
    period_type: PeriodType = PeriodType.CUSTOM

    def __post_init__(self):
        if self.end < self.start:
            raise ValidationError(f"Period ends ({self.end}) before it starts ({self.start})")


@dataclass(frozen=True)
class SessionSummary:
    """Figures over both collections, taken at session start and refreshed on completion."""
    total_ledger_transactions: int
    total_bank_transactions: int
    reconciled_ledger_transactions: int
    reconciled_bank_transactions: int
    total_ledger_amount_cents: int
    total_bank_amount_cents: int
    discrepancy_cents: int
    has_discrepancy: bool


@dataclass(frozen=True)
class InProgress:
    started_at: datetime
    status = SessionStatus.IN_PROGRESS


@dataclass(frozen=True)
class Completed:
    completed_at: datetime
    status = SessionStatus.COMPLETED


@dataclass(frozen=True)
class Certified:
    completed_at: datetime
    certified_at: datetime
    certified_by: str
    status = SessionStatus.CERTIFIED


@dataclass(frozen=True)
class Archived:
    archived_at: datetime
    previous: Union[Completed, Certified]
    status = SessionStatus.ARCHIVED


SessionState = Union[InProgress, Completed, Certified, Archived]


@dataclass
class ReconciliationSession:
    """A bounded-period reconciliation effort and its lifecycle state."""
    name: str
    period: Period
    created_by: str
    summary: SessionSummary
    state: SessionState
    fund_results: Dict[str, BreakdownRow] = field(default_factory=dict)
    line_results: Dict[str, BreakdownRow] = field(default_factory=dict)
    action_ids: Tuple[str, ...] = ()
    compliance_notes: str = ""
    material_discrepancies: str = ""
    internal_controls_assessment: str = ""
    id: str = field(default_factory=lambda: f"session-{uuid4().hex[:12]}")
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    @property
    def completed_at(self) -> Optional[datetime]:
        state = self.state.previous if isinstance(self.state, Archived) else self.state
        return getattr(state, "completed_at", None)

    @property
    def certified_at(self) -> Optional[datetime]:
        state = self.state.previous if isinstance(self.state, Archived) else self.state
        return getattr(state, "certified_at", None)

    @property
    def certified_by(self) -> Optional[str]:
        state = self.state.previous if isinstance(self.state, Archived) else self.state
        return getattr(state, "certified_by", None)


@dataclass(frozen=True)
class ReportParameters:
    """Typed parameters an external report renderer works from."""
    session_id: str
    date_range: Optional[DateRange] = None
    fund_codes: Tuple[str, ...] = ()
    line_numbers: Tuple[str, ...] = ()
    account_codes: Tuple[str, ...] = ()
    include_resolved: bool = True
    include_unresolved: bool = True
    detail_level: DetailLevel = DetailLevel.SUMMARY
