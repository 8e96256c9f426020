"""
Reconciliation State Store - authoritative model of both collections.

Every mutation validates first, builds the new collection, records its audit
entry and only then swaps the collection in. A rejected operation leaves
both the collections and the audit log untouched.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import structlog

from ..exceptions import AmountMismatchError, InvalidStateError, NotFoundError, ValidationError
from ..models import (
    AnyTransaction,
    AuditAction,
    AuditEntry,
    BankTransaction,
    LedgerTransaction,
    MoneyType,
)
from ..money import format_amount
from ..utils.audit_logger import AuditRecorder

logger = structlog.get_logger()

_LEDGER_ID = re.compile(r"^C(\d+)$")


@dataclass(frozen=True)
class SplitPart:
    """One replacement piece of a split bank transaction."""
    amount_cents: int
    transaction_date: Optional[date] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class StoreEvent:
    """Published to subscribers after a mutation has been committed."""
    action: AuditAction
    transaction_ids: Tuple[str, ...]
    audit_entry: Optional[AuditEntry] = None


Listener = Callable[[StoreEvent], None]


def _unique(ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(ids))


class ReconciliationStore:
    """
    Owns the ledger and bank collections, their reconciled/NRIT flags and
    the operations that change them.
    """

    def __init__(
        self,
        ledger: Iterable[LedgerTransaction] = (),
        bank: Iterable[BankTransaction] = (),
        audit: Optional[AuditRecorder] = None,
    ):
        self._ledger: List[LedgerTransaction] = list(ledger)
        self._bank: List[BankTransaction] = list(bank)
        self.audit = audit if audit is not None else AuditRecorder()
        self._retired_ids: Set[str] = set()
        self._listeners: List[Listener] = []

        self._check_unique(t.id for t in self._ledger)
        self._check_unique(t.id for t in self._bank)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def ledger_snapshot(self) -> Tuple[LedgerTransaction, ...]:
        return tuple(self._ledger)

    def bank_snapshot(self) -> Tuple[BankTransaction, ...]:
        return tuple(self._bank)

    def get_ledger(self, transaction_id: str) -> LedgerTransaction:
        for txn in self._ledger:
            if txn.id == transaction_id:
                return txn
        raise NotFoundError(f"Ledger transaction not found: {transaction_id}", [transaction_id])

    def get_bank(self, transaction_id: str) -> BankTransaction:
        for txn in self._bank:
            if txn.id == transaction_id:
                return txn
        raise NotFoundError(f"Bank transaction not found: {transaction_id}", [transaction_id])

    def ledger_by_id(self) -> Dict[str, LedgerTransaction]:
        return {t.id: t for t in self._ledger}

    def bank_by_id(self) -> Dict[str, BankTransaction]:
        return {t.id: t for t in self._bank}

    def unreconciled_ledger(self) -> List[LedgerTransaction]:
        return [t for t in self._ledger if not t.is_reconciled]

    def unreconciled_bank(self) -> List[BankTransaction]:
        return [t for t in self._bank if not t.is_reconciled]

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, entry: AuditEntry) -> None:
        event = StoreEvent(
            action=entry.action,
            transaction_ids=entry.transaction_ids,
            audit_entry=entry,
        )
        for listener in list(self._listeners):
            listener(event)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def apply_reconciliation(
        self,
        ledger_ids: Iterable[str],
        bank_ids: Iterable[str],
        details: Optional[str] = None,
        action: AuditAction = AuditAction.RECONCILE,
    ) -> AuditEntry:
        """
        Mark every listed transaction reconciled.

        Ids not in the collections are ignored. Re-applying the same ids
        changes nothing but still records a new audit entry.
        """
        ledger_ids = _unique(ledger_ids)
        bank_ids = _unique(bank_ids)
        ledger_set, bank_set = set(ledger_ids), set(bank_ids)

        affected: List[AnyTransaction] = [t for t in self._ledger if t.id in ledger_set]
        affected += [t for t in self._bank if t.id in bank_set]
        total_cents = sum(t.abs_amount_cents for t in affected)

        new_ledger = [t.with_reconciled(True) if t.id in ledger_set and not t.is_reconciled else t
                      for t in self._ledger]
        new_bank = [t.with_reconciled(True) if t.id in bank_set and not t.is_reconciled else t
                    for t in self._bank]

        count = len(ledger_ids) + len(bank_ids)
        entry = self.audit.record(
            action,
            details or f"Reconciled {count} transactions",
            transaction_ids=[*ledger_ids, *bank_ids],
            amount_cents=total_cents,
        )
        self._ledger, self._bank = new_ledger, new_bank
        self._publish(entry)
        return entry

    def unreconcile(
        self,
        ledger_ids: Iterable[str] = (),
        bank_ids: Iterable[str] = (),
    ) -> AuditEntry:
        """Clear the reconciled flag; NRIT rows lose their NRIT flag with it."""
        ledger_ids = _unique(ledger_ids)
        bank_ids = _unique(bank_ids)
        self._require_known(ledger_ids, self.ledger_by_id(), "Ledger")
        self._require_known(bank_ids, self.bank_by_id(), "Bank")
        ledger_set, bank_set = set(ledger_ids), set(bank_ids)

        new_ledger = [t.with_reconciled(False) if t.id in ledger_set else t for t in self._ledger]
        new_bank = [t.with_reconciled(False) if t.id in bank_set else t for t in self._bank]

        entry = self.audit.record(
            AuditAction.UNRECONCILE,
            f"Unreconciled {len(ledger_ids) + len(bank_ids)} transactions",
            transaction_ids=[*ledger_ids, *bank_ids],
        )
        self._ledger, self._bank = new_ledger, new_bank
        self._publish(entry)
        return entry

    # ------------------------------------------------------------------
    # NRIT
    # ------------------------------------------------------------------

    def mark_nrit(self, bank_ids: Iterable[str]) -> AuditEntry:
        """Flag bank rows as non-reportable items; they become reconciled too."""
        return self._set_nrit(_unique(bank_ids), True)

    def unmark_nrit(self, bank_ids: Iterable[str]) -> AuditEntry:
        """Clear the NRIT flag; this also unreconciles the rows."""
        return self._set_nrit(_unique(bank_ids), False)

    def _set_nrit(self, bank_ids: List[str], nrit: bool) -> AuditEntry:
        if not bank_ids:
            raise ValidationError("No bank transactions given")
        self._require_known(bank_ids, self.bank_by_id(), "Bank")
        targets = set(bank_ids)

        new_bank = [t.with_nrit(nrit) if t.id in targets else t for t in self._bank]

        action = AuditAction.MARK_NRIT if nrit else AuditAction.UNMARK_NRIT
        verb = "Marked" if nrit else "Unmarked"
        entry = self.audit.record(
            action,
            f"{verb} {len(bank_ids)} bank transaction(s) as NRIT",
            transaction_ids=bank_ids,
            metadata={"bulk": len(bank_ids) > 1},
        )
        self._bank = new_bank
        self._publish(entry)
        return entry

    # ------------------------------------------------------------------
    # Split
    # ------------------------------------------------------------------

    def split_transaction(
        self,
        original_id: str,
        parts: Sequence[SplitPart],
    ) -> Tuple[BankTransaction, ...]:
        """
        Replace a bank transaction, in place, by partial transactions.

        The parts must add up exactly to the original amount. Each part gets
        the id "<original>-split-<index>" and starts unreconciled. An unknown
        original id is a no-op that returns the collection unchanged.
        """
        index = next((i for i, t in enumerate(self._bank) if t.id == original_id), None)
        if index is None:
            logger.warning("Split requested for unknown transaction", transaction_id=original_id)
            return self.bank_snapshot()

        original = self._bank[index]
        if original.is_reconciled:
            raise InvalidStateError(f"Cannot split reconciled transaction {original_id}")
        if not parts:
            raise ValidationError("A split needs at least one part")

        allocated = sum(p.amount_cents for p in parts)
        if allocated != original.amount_cents:
            raise AmountMismatchError(
                f"Split parts total {format_amount(allocated)}, "
                f"expected {format_amount(original.amount_cents)}",
                expected_cents=original.amount_cents,
                actual_cents=allocated,
            )

        existing = {t.id for t in self._bank} | self._retired_ids
        replacements = []
        for i, part in enumerate(parts):
            new_id = f"{original_id}-split-{i}"
            if new_id in existing:
                raise ValidationError(f"Split id already in use: {new_id}")
            replacements.append(BankTransaction(
                id=new_id,
                transaction_date=part.transaction_date or original.transaction_date,
                amount_cents=part.amount_cents,
                description=part.description if part.description is not None else original.description,
                account_code=original.account_code,
            ))

        new_bank = self._bank[:index] + replacements + self._bank[index + 1:]

        entry = self.audit.record(
            AuditAction.SPLIT,
            f"Split {original_id} into {len(replacements)} transactions",
            transaction_ids=[original_id, *(t.id for t in replacements)],
            amount_cents=original.abs_amount_cents,
        )
        self._bank = new_bank
        self._retired_ids.add(original_id)
        self._publish(entry)
        return self.bank_snapshot()

    def split_by_item(
        self,
        original_id: str,
        items: Sequence[Tuple[str, int]],
    ) -> Tuple[BankTransaction, ...]:
        """Split into (item type, amount cents) pieces that keep the original date."""
        original = self._find_bank(original_id)
        if original is None:
            return self.split_transaction(original_id, [])
        parts = [
            SplitPart(
                amount_cents=amount_cents,
                description=f"SPLIT from: {original.description} - {item_type}",
            )
            for item_type, amount_cents in items
        ]
        return self.split_transaction(original_id, parts)

    def split_by_date(
        self,
        original_id: str,
        pieces: Sequence[Tuple[date, int]],
    ) -> Tuple[BankTransaction, ...]:
        """Split into (date, amount cents) pieces."""
        original = self._find_bank(original_id)
        if original is None:
            return self.split_transaction(original_id, [])
        parts = [
            SplitPart(
                amount_cents=amount_cents,
                transaction_date=day,
                description=f"SPLIT from: {original.description}",
            )
            for day, amount_cents in pieces
        ]
        return self.split_transaction(original_id, parts)

    # ------------------------------------------------------------------
    # Import and derived transactions
    # ------------------------------------------------------------------

    def import_bank_transactions(
        self,
        transactions: Sequence[BankTransaction],
        source: Optional[str] = None,
    ) -> AuditEntry:
        """Prepend newly imported bank rows to the bank collection."""
        incoming = list(transactions)
        if not incoming:
            raise ValidationError("Nothing to import")
        self._check_unique(t.id for t in incoming)
        clashes = [t.id for t in incoming if t.id in self.bank_by_id() or t.id in self._retired_ids]
        if clashes:
            raise ValidationError(f"Bank transaction ids already used: {', '.join(clashes)}")

        metadata = {"record_count": len(incoming)}
        if source:
            metadata["file_name"] = source

        entry = self.audit.record(
            AuditAction.IMPORT,
            f"Imported {len(incoming)} bank transactions",
            transaction_ids=[t.id for t in incoming],
            metadata=metadata,
        )
        self._bank = incoming + self._bank
        self._publish(entry)
        return entry

    def create_expenditure(
        self,
        bank_transaction_id: Optional[str] = None,
        *,
        transaction_date: Optional[date] = None,
        amount_cents: Optional[int] = None,
        payment_type: str = "CH",
        fund_code: str = "P2026",
        account_code: str = "Operating P2026",
        line_number: str = "SB21B",
        reconcile_bank: bool = True,
    ) -> LedgerTransaction:
        """
        Create a disbursement in the ledger, optionally from a bank row.

        Disbursements are outflows, so the amount is stored negative whatever
        sign it was given in.
        """
        return self._create_derived(
            MoneyType.DISBURSEMENT,
            "EXP",
            bank_transaction_id,
            transaction_date=transaction_date,
            amount_cents=amount_cents,
            sign=-1,
            payment_type=payment_type,
            fund_code=fund_code,
            account_code=account_code,
            line_number=line_number,
            reconcile_bank=reconcile_bank,
        )

    def create_receipt(
        self,
        bank_transaction_id: Optional[str] = None,
        *,
        transaction_date: Optional[date] = None,
        amount_cents: Optional[int] = None,
        payment_type: str = "CH",
        fund_code: str = "P2026",
        account_code: str = "Operating P2026",
        line_number: str = "SA11A",
        reconcile_bank: bool = True,
    ) -> LedgerTransaction:
        """Create an other-receipt in the ledger, optionally from a bank row."""
        return self._create_derived(
            MoneyType.OTHER_RECEIPT,
            "REC",
            bank_transaction_id,
            transaction_date=transaction_date,
            amount_cents=amount_cents,
            sign=None,
            payment_type=payment_type,
            fund_code=fund_code,
            account_code=account_code,
            line_number=line_number,
            reconcile_bank=reconcile_bank,
        )

    def _create_derived(
        self,
        money_type: MoneyType,
        group_prefix: str,
        bank_transaction_id: Optional[str],
        *,
        transaction_date: Optional[date],
        amount_cents: Optional[int],
        sign: Optional[int],
        payment_type: str,
        fund_code: str,
        account_code: str,
        line_number: str,
        reconcile_bank: bool,
    ) -> LedgerTransaction:
        source = self.get_bank(bank_transaction_id) if bank_transaction_id else None

        if amount_cents is None:
            if source is None:
                raise ValidationError("An amount is required without a source bank transaction")
            amount_cents = source.amount_cents
        if transaction_date is None:
            transaction_date = source.transaction_date if source else date.today()
        if sign is not None:
            amount_cents = sign * abs(amount_cents)

        new_id = self._next_ledger_id()
        created = LedgerTransaction(
            id=new_id,
            transaction_date=transaction_date,
            amount_cents=amount_cents,
            money_type=money_type,
            payment_type=payment_type,
            group=f"{group_prefix}-{source.id if source else new_id}",
            fund_code=fund_code,
            account_code=account_code,
            line_number=line_number,
        )

        new_bank = self._bank
        linked = source is not None and reconcile_bank
        if linked:
            new_bank = [t.with_reconciled(True) if t.id == source.id and not t.is_reconciled else t
                        for t in self._bank]

        entry = self.audit.record(
            AuditAction.CREATE_TRANSACTION,
            f"Created {money_type.value.lower()} {new_id}"
            + (f" from bank transaction {source.id}" if source else ""),
            transaction_ids=[new_id, *([source.id] if source else [])],
            amount_cents=abs(amount_cents),
            metadata={"money_type": money_type.value, "bank_reconciled": linked},
        )
        self._ledger = self._ledger + [created]
        self._bank = new_bank
        self._publish(entry)
        return created

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _find_bank(self, transaction_id: str) -> Optional[BankTransaction]:
        return next((t for t in self._bank if t.id == transaction_id), None)

    def _next_ledger_id(self) -> str:
        highest = 0
        for txn in self._ledger:
            match = _LEDGER_ID.match(txn.id)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"C{highest + 1}"

    @staticmethod
    def _check_unique(ids: Iterable[str]) -> None:
        seen: Set[str] = set()
        duplicates = []
        for tid in ids:
            if tid in seen:
                duplicates.append(tid)
            seen.add(tid)
        if duplicates:
            raise ValidationError(f"Duplicate transaction ids: {', '.join(duplicates)}")

    @staticmethod
    def _require_known(ids: Sequence[str], index: Dict[str, AnyTransaction], side: str) -> None:
        missing = [tid for tid in ids if tid not in index]
        if missing:
            raise NotFoundError(f"{side} transactions not found: {', '.join(missing)}", missing)
