"""Enumerations for the treasury reconciliation engine."""

from enum import Enum


class TransactionSide(str, Enum):
    """Which collection a transaction belongs to."""
    LEDGER = "ledger"      # Internal (Crimson) bookkeeping records
    BANK = "bank"          # Bank statement / feed records


class MoneyType(str, Enum):
    """Classification of a ledger transaction."""
    CONTRIBUTION = "Contribution"
    OTHER_RECEIPT = "Other Receipt"
    DISBURSEMENT = "Disbursement"
    CHARGEBACK = "Chargeback"
    DEBIT = "Debit"
    WINRED = "Winred"
    WINRED_CHARGEBACK = "Winred Chargeback"


class StatusFilter(str, Enum):
    """Reconciliation status filter for transaction views."""
    ALL = "All"
    UNRECONCILED = "Unreconciled"


class AuditAction(str, Enum):
    """Type of audit action."""
    RECONCILE = "reconcile"
    UNRECONCILE = "unreconcile"
    MARK_NRIT = "mark_nrit"
    UNMARK_NRIT = "unmark_nrit"
    SPLIT = "split"
    IMPORT = "import"
    AI_SUGGEST = "ai_suggest"
    BULK_ACTION = "bulk_action"
    CREATE_TRANSACTION = "create_transaction"
    SESSION_STATUS = "session_status"


class SessionStatus(str, Enum):
    """
    Status of a reconciliation session.

    IN_PROGRESS -> COMPLETED -> CERTIFIED, with ARCHIVED reachable from
    COMPLETED or CERTIFIED. Nothing moves backward.
    """
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CERTIFIED = "certified"
    ARCHIVED = "archived"


class PeriodType(str, Enum):
    """Length of a reconciliation period."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"
    CUSTOM = "custom"


class ReportType(str, Enum):
    """Reports an external renderer can produce from a session."""
    RECONCILIATION_SUMMARY = "reconciliation_summary"
    FUND_BY_FUND = "fund_by_fund"
    FEC_LINE_ITEM = "fec_line_item"
    BANK_ACCOUNT_REC = "bank_account_rec"
    DISCREPANCY_ANALYSIS = "discrepancy_analysis"
    COMPLIANCE_CERTIFICATION = "compliance_certification"
    AUDIT_TRAIL = "audit_trail"
    CASH_FLOW_BY_FUND = "cash_flow_by_fund"
    CONTRIBUTION_ANALYSIS = "contribution_analysis"
    VENDOR_PAYMENT_REC = "vendor_payment_rec"


class DetailLevel(str, Enum):
    """How much detail a report should carry."""
    SUMMARY = "summary"
    DETAILED = "detailed"
    FULL = "full"


class IssueSeverity(str, Enum):
    """Severity of a data validation issue, most severe first."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class IssueCategory(str, Enum):
    """Area a data validation issue belongs to."""
    AMOUNT = "amount"
    DATE = "date"
    DUPLICATE = "duplicate"
    MISSING = "missing"
    FORMAT = "format"


class CashOnHandSource(str, Enum):
    """Where a cash-on-hand balance came from."""
    PREVIOUS_SESSION = "previous_session"
    MANUAL_ENTRY = "manual_entry"
