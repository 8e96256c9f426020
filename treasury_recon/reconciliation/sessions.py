"""
Reconciliation sessions - bounded-period efforts with a one-way lifecycle.

    in_progress -> completed -> certified -> archived
    completed -> archived

Archived is terminal. Every transition is audited.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from ..exceptions import InvalidStateError, NotFoundError, ValidationError
from ..models import (
    Archived,
    AuditAction,
    BankTransaction,
    Certified,
    Completed,
    DateRange,
    FilterSpec,
    InProgress,
    LedgerTransaction,
    MatchedPair,
    Period,
    PeriodType,
    ReconciliationSession,
    ReconciliationStats,
    ReportParameters,
    SessionStatus,
    SessionSummary,
    TransactionSide,
)
from .filters import FilterEngine
from .store import ReconciliationStore
from .summary import compute_stats, fund_breakdown, line_breakdown

logger = structlog.get_logger()


ALLOWED_TRANSITIONS: Dict[SessionStatus, Tuple[SessionStatus, ...]] = {
    SessionStatus.IN_PROGRESS: (SessionStatus.COMPLETED,),
    SessionStatus.COMPLETED: (SessionStatus.CERTIFIED, SessionStatus.ARCHIVED),
    SessionStatus.CERTIFIED: (SessionStatus.ARCHIVED,),
    SessionStatus.ARCHIVED: (),
}


@dataclass(frozen=True)
class ReportScope:
    """Read-only data an external report renderer works from."""
    session: ReconciliationSession
    parameters: ReportParameters
    ledger: Tuple[LedgerTransaction, ...]
    bank: Tuple[BankTransaction, ...]
    stats: ReconciliationStats


class SessionManager:
    """Creates sessions and moves them through their lifecycle."""

    def __init__(
        self,
        store: ReconciliationStore,
        suggestions: Optional[Callable[[], Sequence[MatchedPair]]] = None,
    ):
        self.store = store
        self._suggestions = suggestions or (lambda: ())
        self._sessions: Dict[str, ReconciliationSession] = {}
        self._start_entries: Dict[str, str] = {}

    def start(
        self,
        name: str,
        period: Optional[Period] = None,
        created_by: Optional[str] = None,
        compliance_notes: str = "",
    ) -> ReconciliationSession:
        """
        Open a session over the given period.

        Without a period, the session spans the earliest to the latest
        transaction date currently in the store.
        """
        if not name.strip():
            raise ValidationError("A session needs a name")

        session = ReconciliationSession(
            name=name,
            period=period or self._default_period(),
            created_by=created_by or self.store.audit.user,
            summary=self._snapshot(),
            state=InProgress(started_at=datetime.utcnow()),
            fund_results=fund_breakdown(self.store.ledger_snapshot()),
            line_results=line_breakdown(self.store.ledger_snapshot()),
            compliance_notes=compliance_notes,
        )
        entry = self._audit(session, f"Started reconciliation session '{name}'")
        self._sessions[session.id] = session
        self._start_entries[session.id] = entry.id
        return session

    def complete(
        self,
        session_id: str,
        material_discrepancies: str = "",
        internal_controls_assessment: str = "",
    ) -> ReconciliationSession:
        """
        Close an in-progress session: refresh its figures and capture the
        audit entries recorded since it started.
        """
        session = self.get(session_id)
        self._check_transition(session, SessionStatus.COMPLETED)

        trail = self.store.audit.since(self._start_entries.get(session.id))
        session.action_ids = tuple(e.id for e in reversed(trail))
        session.summary = self._snapshot()
        session.fund_results = fund_breakdown(self.store.ledger_snapshot())
        session.line_results = line_breakdown(self.store.ledger_snapshot())
        session.material_discrepancies = material_discrepancies
        session.internal_controls_assessment = internal_controls_assessment
        session.state = Completed(completed_at=datetime.utcnow())

        self._audit(session, f"Completed reconciliation session '{session.name}'")
        return session

    def certify(self, session_id: str, certified_by: str) -> ReconciliationSession:
        session = self.get(session_id)
        self._check_transition(session, SessionStatus.CERTIFIED)
        if not certified_by:
            raise ValidationError("Certification requires a certifier")

        session.state = Certified(
            completed_at=session.state.completed_at,
            certified_at=datetime.utcnow(),
            certified_by=certified_by,
        )
        self._audit(session, f"Certified reconciliation session '{session.name}'", user=certified_by)
        return session

    def archive(self, session_id: str) -> ReconciliationSession:
        session = self.get(session_id)
        self._check_transition(session, SessionStatus.ARCHIVED)

        session.state = Archived(archived_at=datetime.utcnow(), previous=session.state)
        self._audit(session, f"Archived reconciliation session '{session.name}'")
        return session

    def get(self, session_id: str) -> ReconciliationSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise NotFoundError(f"Session not found: {session_id}", [session_id])

    def list(self, status: Optional[SessionStatus] = None) -> List[ReconciliationSession]:
        """Sessions, newest first, optionally restricted to one status."""
        sessions = sorted(self._sessions.values(), key=lambda s: s.created_at, reverse=True)
        if status is not None:
            status = SessionStatus(status)
            sessions = [s for s in sessions if s.status == status]
        return sessions

    def report_scope(self, params: ReportParameters) -> ReportScope:
        """Snapshot of the transactions a report over `params` covers."""
        session = self.get(params.session_id)

        engine = FilterEngine()
        common = dict(
            date_range=params.date_range or DateRange(),
            account_codes=params.account_codes or None,
        )
        ledger = engine.apply(
            self.store.ledger_snapshot(),
            FilterSpec(
                fund_codes=params.fund_codes or None,
                line_numbers=params.line_numbers or None,
                **common,
            ),
            TransactionSide.LEDGER,
        )
        bank = engine.apply(self.store.bank_snapshot(), FilterSpec(**common), TransactionSide.BANK)

        def wanted(txn) -> bool:
            return params.include_resolved if txn.is_reconciled else params.include_unresolved

        ledger = tuple(t for t in ledger if wanted(t))
        bank = tuple(t for t in bank if wanted(t))

        return ReportScope(
            session=session,
            parameters=params,
            ledger=ledger,
            bank=bank,
            stats=compute_stats(ledger, bank),
        )

    # ------------------------------------------------------------------

    def _check_transition(self, session: ReconciliationSession, target: SessionStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[session.status]:
            raise InvalidStateError(
                f"Session {session.id} cannot move from {session.status.value} to {target.value}"
            )

    def _snapshot(self) -> SessionSummary:
        stats = compute_stats(
            self.store.ledger_snapshot(),
            self.store.bank_snapshot(),
            self._suggestions(),
        )
        return SessionSummary(
            total_ledger_transactions=stats.total_ledger_transactions,
            total_bank_transactions=stats.total_bank_transactions,
            reconciled_ledger_transactions=stats.reconciled_ledger_transactions,
            reconciled_bank_transactions=stats.reconciled_bank_transactions,
            total_ledger_amount_cents=stats.total_ledger_amount_cents,
            total_bank_amount_cents=stats.total_bank_amount_cents,
            discrepancy_cents=stats.discrepancy_cents,
            has_discrepancy=stats.has_discrepancy,
        )

    def _default_period(self) -> Period:
        dates = [t.transaction_date for t in self.store.ledger_snapshot()]
        dates += [t.transaction_date for t in self.store.bank_snapshot()]
        if not dates:
            today = date.today()
            return Period(start=today, end=today)
        return Period(start=min(dates), end=max(dates), period_type=PeriodType.CUSTOM)

    def _audit(self, session: ReconciliationSession, details: str, user: Optional[str] = None):
        logger.info("Session status changed", session_id=session.id, status=session.status.value)
        return self.store.audit.record(
            AuditAction.SESSION_STATUS,
            details,
            metadata={"session_id": session.id, "status": session.status.value},
            user=user,
        )
