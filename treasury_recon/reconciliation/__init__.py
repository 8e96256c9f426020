"""Reconciliation engine modules."""

from .filters import CREDIT, DEBIT, FilterEngine
from .matching import MatchingEngine
from .orchestrator import ReconciliationWorkspace
from .sessions import ReportScope, SessionManager
from .store import ReconciliationStore, SplitPart, StoreEvent
from .summary import compute_stats, fund_breakdown, line_breakdown
from .validation import DataValidator, Issue

__all__ = [
    "CREDIT",
    "DEBIT",
    "DataValidator",
    "FilterEngine",
    "Issue",
    "MatchingEngine",
    "ReconciliationStore",
    "ReconciliationWorkspace",
    "ReportScope",
    "SessionManager",
    "SplitPart",
    "StoreEvent",
    "compute_stats",
    "fund_breakdown",
    "line_breakdown",
]
