"""
Reconciliation Workspace - wires the engine's components together.

Data flow for every user action:
1. The action reaches the store or the matching engine
2. The store applies the mutation and records its audit entry
3. Statistics are derived from the new collections
4. Filtered views are recomputed on request
"""

from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

import structlog

from ..config import get_settings
from ..integrations import MatchProvider, build_match_provider
from ..models import (
    AuditEntry,
    BankTransaction,
    FilterSpec,
    LedgerTransaction,
    MatchedPair,
    ReconciliationStats,
    TransactionSide,
)
from ..utils.audit_logger import AuditRecorder
from ..utils.storage import CashOnHandBook, KeyValueStore, MemoryStore
from .filters import FilterEngine
from .matching import MatchingEngine
from .sessions import SessionManager
from .store import ReconciliationStore
from .summary import compute_stats
from .validation import DataValidator, Issue

logger = structlog.get_logger()


class ReconciliationWorkspace:
    """
    One reconciliation working set: the two collections, the audit trail,
    the selection and suggestions, sessions and cash-on-hand records.
    """

    def __init__(
        self,
        ledger: Iterable[LedgerTransaction] = (),
        bank: Iterable[BankTransaction] = (),
        provider: Optional[MatchProvider] = None,
        user: Optional[str] = None,
        storage: Optional[KeyValueStore] = None,
    ):
        self.settings = get_settings()
        self.audit = AuditRecorder(user=user)
        self.store = ReconciliationStore(ledger, bank, audit=self.audit)
        self.provider = provider if provider is not None else build_match_provider(self.settings)
        self.matching = MatchingEngine(self.store, self.provider)
        self.filters = FilterEngine()
        self.sessions = SessionManager(self.store, suggestions=lambda: self.matching.suggestions)
        self.validator = DataValidator()
        self.cash_on_hand = CashOnHandBook(storage if storage is not None else MemoryStore())

        logger.info(
            "Workspace ready",
            ledger=len(self.store.ledger_snapshot()),
            bank=len(self.store.bank_snapshot()),
            provider=type(self.provider).__name__,
        )

    async def close(self) -> None:
        close = getattr(self.provider, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "ReconciliationWorkspace":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def visible_ledger(self, spec: Optional[FilterSpec] = None) -> List[LedgerTransaction]:
        self.filters.update_suggestions(self.matching.suggestions)
        return self.filters.apply(self.store.ledger_snapshot(), spec or FilterSpec(), TransactionSide.LEDGER)

    def visible_bank(self, spec: Optional[FilterSpec] = None) -> List[BankTransaction]:
        self.filters.update_suggestions(self.matching.suggestions)
        return self.filters.apply(self.store.bank_snapshot(), spec or FilterSpec(), TransactionSide.BANK)

    def stats(self) -> ReconciliationStats:
        return compute_stats(
            self.store.ledger_snapshot(),
            self.store.bank_snapshot(),
            self.matching.suggestions,
        )

    def validate(self, today: Optional[date] = None) -> List[Issue]:
        return self.validator.validate(
            self.store.ledger_snapshot(),
            self.store.bank_snapshot(),
            today=today,
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def suggest(self) -> Optional[List[MatchedPair]]:
        """Request AI suggestions for everything still unreconciled."""
        return await self.matching.request_suggestions()

    def reconcile_selection(self):
        return self.matching.reconcile_selection()

    def accept_suggestions(self):
        return self.matching.accept_suggestions()

    def decline_suggestions(self) -> int:
        return self.matching.decline_suggestions()

    async def import_bank(
        self,
        transactions: Sequence[BankTransaction],
        source: Optional[str] = None,
        suggest: bool = True,
    ) -> Tuple[AuditEntry, Optional[List[MatchedPair]]]:
        """
        Import bank rows, then ask for suggestions over the new collections.

        The import stays applied if the suggestion request fails. A request
        already in flight is discarded, since it was built from the old rows.
        """
        entry = self.store.import_bank_transactions(transactions, source=source)
        if not suggest:
            return entry, None

        self.matching.discard_pending()
        return entry, await self.matching.request_suggestions()
