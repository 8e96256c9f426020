"""
Matching Engine - selection totals, manual match gate and AI suggestions.

Manual matches require the selected ledger and bank totals to be exactly
equal (in cents) and non-zero. Accepted AI suggestions are applied without
re-checking totals: the collaborator's pairing is trusted once the user
accepts the batch.
"""

from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

import structlog

from ..config import get_settings
from ..exceptions import CollaboratorUnavailableError, InvalidStateError, ValidationError
from ..integrations.base import MatchingServiceError, MatchProvider
from ..models import AuditAction, AuditEntry, MatchedPair, TransactionSide
from .store import ReconciliationStore, StoreEvent

logger = structlog.get_logger()


class MatchingEngine:
    """
    Working state on top of the store: the current selection on each side
    and the live list of AI suggestions.
    """

    def __init__(
        self,
        store: ReconciliationStore,
        provider: Optional[MatchProvider] = None,
        confidence_threshold: Optional[float] = None,
    ):
        self.settings = get_settings()
        self.store = store
        self.provider = provider
        self.confidence_threshold = (
            confidence_threshold
            if confidence_threshold is not None
            else self.settings.suggestion_confidence_threshold
        )

        self._selected: Dict[TransactionSide, Set[str]] = {
            TransactionSide.LEDGER: set(),
            TransactionSide.BANK: set(),
        }
        self._suggestions: List[MatchedPair] = []
        self._generation = 0
        self._in_flight = False

        store.subscribe(self._on_store_event)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def selected_ledger_ids(self) -> FrozenSet[str]:
        return frozenset(self._selected[TransactionSide.LEDGER])

    @property
    def selected_bank_ids(self) -> FrozenSet[str]:
        return frozenset(self._selected[TransactionSide.BANK])

    def select(self, side: TransactionSide, ids: Iterable[str]) -> None:
        self._selected[TransactionSide(side)].update(ids)

    def deselect(self, side: TransactionSide, ids: Iterable[str]) -> None:
        self._selected[TransactionSide(side)].difference_update(ids)

    def toggle(self, side: TransactionSide, transaction_id: str) -> bool:
        """Flip one id in or out of the selection; returns True if now selected."""
        selected = self._selected[TransactionSide(side)]
        if transaction_id in selected:
            selected.discard(transaction_id)
            return False
        selected.add(transaction_id)
        return True

    def clear_selection(self, side: Optional[TransactionSide] = None) -> None:
        sides = [TransactionSide(side)] if side is not None else list(self._selected)
        for s in sides:
            self._selected[s].clear()

    @property
    def selected_ledger_total_cents(self) -> int:
        ids = self._selected[TransactionSide.LEDGER]
        return sum(t.amount_cents for t in self.store.ledger_snapshot() if t.id in ids)

    @property
    def selected_bank_total_cents(self) -> int:
        ids = self._selected[TransactionSide.BANK]
        return sum(t.amount_cents for t in self.store.bank_snapshot() if t.id in ids)

    @property
    def selection_difference_cents(self) -> int:
        return self.selected_ledger_total_cents - self.selected_bank_total_cents

    @property
    def can_reconcile(self) -> bool:
        ledger_total = self.selected_ledger_total_cents
        return ledger_total != 0 and ledger_total - self.selected_bank_total_cents == 0

    def reconcile_selection(self) -> AuditEntry:
        """Reconcile the current selection; rejected unless it balances exactly."""
        if not self.can_reconcile:
            raise InvalidStateError(
                "Selection does not balance: ledger "
                f"{self.selected_ledger_total_cents} vs bank {self.selected_bank_total_cents} cents"
            )

        entry = self.store.apply_reconciliation(
            sorted(self._selected[TransactionSide.LEDGER]),
            sorted(self._selected[TransactionSide.BANK]),
        )
        self.clear_selection()
        return entry

    def bulk_reconcile_selection(self) -> AuditEntry:
        """Reconcile everything selected on either side, without the balance check."""
        ledger_ids = sorted(self._selected[TransactionSide.LEDGER])
        bank_ids = sorted(self._selected[TransactionSide.BANK])
        if not ledger_ids and not bank_ids:
            raise ValidationError("No transactions selected")

        entry = self.store.apply_reconciliation(
            ledger_ids,
            bank_ids,
            details=f"Bulk reconciled {len(ledger_ids) + len(bank_ids)} transactions",
            action=AuditAction.BULK_ACTION,
        )
        self.clear_selection()
        return entry

    # ------------------------------------------------------------------
    # AI suggestions
    # ------------------------------------------------------------------

    @property
    def suggestions(self) -> Tuple[MatchedPair, ...]:
        return tuple(self._suggestions)

    @property
    def is_loading(self) -> bool:
        return self._in_flight

    def is_suggested(self, transaction_id: str, side: TransactionSide) -> bool:
        if TransactionSide(side) == TransactionSide.LEDGER:
            return any(p.ledger_transaction_id == transaction_id for p in self._suggestions)
        return any(transaction_id in p.bank_transaction_ids for p in self._suggestions)

    async def request_suggestions(self) -> Optional[List[MatchedPair]]:
        """
        Ask the collaborator for pairings of the unreconciled collections.

        Returns the accepted suggestions (possibly empty), or None when the
        request was discarded while in flight. Raises
        CollaboratorUnavailableError when the collaborator fails; the
        previous suggestion list is kept in that case.
        """
        if self.provider is None:
            raise CollaboratorUnavailableError("No matching service configured")
        if self._in_flight:
            raise InvalidStateError("A suggestion request is already in progress")

        self._generation += 1
        token = self._generation
        self._in_flight = True

        ledger = self.store.unreconciled_ledger()
        bank = self.store.unreconciled_bank()

        try:
            raw = await self.provider.suggest_matches(ledger, bank)
        except Exception as e:
            if token != self._generation:
                logger.info("Discarding stale suggestion failure", error=str(e))
                return None
            if isinstance(e, MatchingServiceError):
                logger.error("Matching service failed", error=str(e), status_code=e.status_code)
                details = e.details
            else:
                logger.exception("Matching service raised unexpectedly", error=str(e))
                details = None
            raise CollaboratorUnavailableError(
                "Failed to get reconciliation suggestions from AI.", details=details,
            ) from e
        finally:
            if token == self._generation:
                self._in_flight = False

        if token != self._generation:
            logger.info("Discarding stale suggestion response", pairs=len(raw))
            return None

        accepted = self.filter_suggestions(
            raw,
            ledger_ids={t.id for t in ledger},
            bank_ids={t.id for t in bank},
        )
        self._suggestions = accepted

        mean_confidence = (
            sum(p.confidence_score for p in accepted) / len(accepted) if accepted else None
        )
        self.store.audit.record(
            AuditAction.AI_SUGGEST,
            f"AI suggested {len(accepted)} potential match(es)",
            transaction_ids=[tid for p in accepted for tid in p.transaction_ids],
            confidence=mean_confidence,
            metadata={"returned": len(raw), "accepted": len(accepted)},
        )
        return list(accepted)

    def discard_pending(self) -> None:
        """Mark the outstanding request stale; its response will be dropped."""
        if self._in_flight:
            self._generation += 1
            logger.info("Pending suggestion request discarded")

    def filter_suggestions(
        self,
        pairs: Sequence[MatchedPair],
        ledger_ids: Optional[Set[str]] = None,
        bank_ids: Optional[Set[str]] = None,
    ) -> List[MatchedPair]:
        """
        Keep pairs above the confidence threshold that reference known
        unreconciled ids and do not overlap an earlier kept pair.
        """
        kept: List[MatchedPair] = []
        claimed_ledger: Set[str] = set()
        claimed_bank: Set[str] = set()
        dropped = {"confidence": 0, "empty": 0, "unknown": 0, "overlap": 0}

        for pair in pairs:
            if not pair.confidence_score > self.confidence_threshold:
                dropped["confidence"] += 1
                continue
            bank_set = set(pair.bank_transaction_ids)
            if not bank_set:
                dropped["empty"] += 1
                continue
            if (ledger_ids is not None and pair.ledger_transaction_id not in ledger_ids) or (
                bank_ids is not None and not bank_set <= bank_ids
            ):
                dropped["unknown"] += 1
                continue
            if pair.ledger_transaction_id in claimed_ledger or bank_set & claimed_bank:
                dropped["overlap"] += 1
                continue

            kept.append(pair)
            claimed_ledger.add(pair.ledger_transaction_id)
            claimed_bank.update(bank_set)

        if any(dropped.values()):
            logger.info("Suggestions filtered", kept=len(kept), **dropped)
        return kept

    def accept_suggestions(self) -> AuditEntry:
        """Reconcile everything in the current suggestion list, then clear it."""
        if not self._suggestions:
            raise InvalidStateError("There are no suggestions to accept")

        ledger_ids = [p.ledger_transaction_id for p in self._suggestions]
        bank_ids = list(dict.fromkeys(
            tid for p in self._suggestions for tid in p.bank_transaction_ids
        ))
        count = len(self._suggestions)

        entry = self.store.apply_reconciliation(
            ledger_ids,
            bank_ids,
            details=f"Accepted {count} AI suggestion(s); reconciled "
                    f"{len(ledger_ids) + len(bank_ids)} transactions",
        )
        self._suggestions = []
        return entry

    def decline_suggestions(self) -> int:
        """Drop the whole suggestion list; no transaction changes."""
        count = len(self._suggestions)
        self._suggestions = []
        logger.info("AI suggestions cleared", count=count)
        return count

    # ------------------------------------------------------------------

    def _on_store_event(self, event: StoreEvent) -> None:
        # Rows removed by a split can no longer be selected or suggested.
        if event.action == AuditAction.SPLIT:
            present = {t.id for t in self.store.bank_snapshot()}
            self._selected[TransactionSide.BANK] &= present

            kept = [p for p in self._suggestions if set(p.bank_transaction_ids) <= present]
            if len(kept) != len(self._suggestions):
                logger.info(
                    "Suggestions dropped after split",
                    dropped=len(self._suggestions) - len(kept),
                )
                self._suggestions = kept
