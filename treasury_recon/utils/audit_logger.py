"""
Audit recording for reconciliation decisions.
"""

from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

from ..config import get_settings
from ..models import AuditAction, AuditEntry

logger = structlog.get_logger()


class AuditRecorder:
    """
    Append-only audit trail.

    Entries are kept most-recent-first. Nothing in this class edits or
    removes an entry once recorded; queries return new lists.
    """

    def __init__(self, user: Optional[str] = None, entries: Iterable[AuditEntry] = ()):
        self.user = user or get_settings().default_user
        self._entries: List[AuditEntry] = list(entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> Tuple[AuditEntry, ...]:
        return tuple(self._entries)

    def record(
        self,
        action: AuditAction,
        details: str,
        transaction_ids: Iterable[str] = (),
        amount_cents: Optional[int] = None,
        confidence: Optional[float] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        user: Optional[str] = None,
    ) -> AuditEntry:
        """Create an entry and prepend it to the log."""
        entry = AuditEntry(
            action=AuditAction(action),
            details=details,
            user=user or self.user,
            transaction_ids=tuple(transaction_ids),
            amount_cents=amount_cents,
            confidence=confidence,
            metadata=metadata or {},
        )
        self._entries.insert(0, entry)

        logger.info(
            details,
            action=entry.action.value,
            audit_id=entry.id,
            user=entry.user,
            transaction_ids=list(entry.transaction_ids),
            amount_cents=amount_cents,
        )
        return entry

    def get_entries(
        self,
        action: Optional[AuditAction] = None,
        user: Optional[str] = None,
        search: str = "",
    ) -> List[AuditEntry]:
        """Filter entries by action kind, user and free text (details or ids)."""
        entries = self._entries

        if action is not None:
            action = AuditAction(action)
            entries = [e for e in entries if e.action == action]

        if user is not None:
            entries = [e for e in entries if e.user == user]

        if search:
            needle = search.lower()
            entries = [
                e for e in entries
                if needle in e.details.lower()
                or any(needle in tid.lower() for tid in e.transaction_ids)
            ]

        return list(entries)

    def since(self, entry_id: Optional[str]) -> List[AuditEntry]:
        """Entries recorded after the given entry, most recent first."""
        if entry_id is None:
            return list(self._entries)
        for index, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return self._entries[:index]
        return list(self._entries)

    def users(self) -> List[str]:
        return list(dict.fromkeys(e.user for e in self._entries))

    def actions(self) -> List[AuditAction]:
        return list(dict.fromkeys(e.action for e in self._entries))

    def summary(self) -> Dict[str, Any]:
        """Get summary statistics of audit log."""
        action_counts = Counter(e.action.value for e in self._entries)

        return {
            "total_entries": len(self._entries),
            "users": self.users(),
            "action_counts": dict(action_counts),
        }
