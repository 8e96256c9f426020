"""Data models for the treasury reconciliation engine."""

from .enums import (
    AuditAction,
    CashOnHandSource,
    DetailLevel,
    IssueCategory,
    IssueSeverity,
    MoneyType,
    PeriodType,
    ReportType,
    SessionStatus,
    StatusFilter,
    TransactionSide,
)
from .transaction import (
    AnyTransaction,
    BankTransaction,
    BatchDetail,
    LedgerTransaction,
    SplitDetails,
    Transaction,
)
from .reconciliation import (
    ALL,
    AmountRange,
    Archived,
    AuditEntry,
    BreakdownRow,
    Certified,
    Completed,
    DateRange,
    FilterSpec,
    InProgress,
    MatchedPair,
    Period,
    ReconciliationSession,
    ReconciliationStats,
    ReportParameters,
    SessionState,
    SessionSummary,
)

__all__ = [
    # Enums
    "AuditAction",
    "CashOnHandSource",
    "DetailLevel",
    "IssueCategory",
    "IssueSeverity",
    "MoneyType",
    "PeriodType",
    "ReportType",
    "SessionStatus",
    "StatusFilter",
    "TransactionSide",
    # Transactions
    "AnyTransaction",
    "BankTransaction",
    "BatchDetail",
    "LedgerTransaction",
    "SplitDetails",
    "Transaction",
    # Reconciliation
    "ALL",
    "AmountRange",
    "Archived",
    "AuditEntry",
    "BreakdownRow",
    "Certified",
    "Completed",
    "DateRange",
    "FilterSpec",
    "InProgress",
    "MatchedPair",
    "Period",
    "ReconciliationSession",
    "ReconciliationStats",
    "ReportParameters",
    "SessionState",
    "SessionSummary",
]
