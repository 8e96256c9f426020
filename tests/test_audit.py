"""
Tests for the audit recorder.
"""

import dataclasses

import pytest

from treasury_recon.exceptions import AmountMismatchError
from treasury_recon.models import AuditAction
from treasury_recon.reconciliation import SplitPart
from treasury_recon.utils import AuditRecorder


class TestAuditRecorder:
    """Test suite for the audit recorder."""

    def test_entries_are_most_recent_first(self, audit):
        """Test that the newest entry is listed first."""
        first = audit.record(AuditAction.IMPORT, "Imported 3 bank transactions")
        second = audit.record(AuditAction.RECONCILE, "Reconciled 2 transactions")

        assert audit.entries == (second, first)
        assert first.id != second.id

    def test_default_user(self):
        """Test attribution to the default user."""
        recorder = AuditRecorder(user="ops")
        assert recorder.record(AuditAction.SPLIT, "x").user == "ops"
        assert recorder.record(AuditAction.SPLIT, "y", user="auditor").user == "auditor"

    def test_entries_cannot_be_edited(self, audit):
        """Test that recorded entries are immutable."""
        entry = audit.record(AuditAction.MARK_NRIT, "Marked 1", metadata={"bulk": False})

        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.details = "changed"
        with pytest.raises(TypeError):
            entry.metadata["bulk"] = True

    def test_log_only_grows_across_operations(self, store, audit):
        """Test that every mutation appends and nothing is removed."""
        snapshots = []

        def check():
            snapshots.append(audit.entries)

        store.apply_reconciliation(["C1"], ["B1"])
        check()
        store.mark_nrit(["B4"])
        check()
        with pytest.raises(AmountMismatchError):
            store.split_transaction("B3", [SplitPart(1)])
        check()
        store.unreconcile(ledger_ids=["C1"])
        check()

        for older, newer in zip(snapshots, snapshots[1:]):
            assert len(newer) >= len(older)
            assert newer[len(newer) - len(older):] == older

    def test_query_by_action_user_and_text(self, audit):
        """Test filtering entries by action, user and free text."""
        audit.record(AuditAction.RECONCILE, "Reconciled 2 transactions", transaction_ids=["C1", "B1"])
        audit.record(AuditAction.MARK_NRIT, "Marked 1 bank transaction(s) as NRIT",
                     transaction_ids=["B4"], user="auditor")
        audit.record(AuditAction.RECONCILE, "Reconciled 2 transactions", transaction_ids=["C2", "B2"])

        assert len(audit.get_entries(action=AuditAction.RECONCILE)) == 2
        assert len(audit.get_entries(action="mark_nrit")) == 1
        assert len(audit.get_entries(user="auditor")) == 1
        assert [e.transaction_ids for e in audit.get_entries(search="c2")] == [("C2", "B2")]
        assert len(audit.get_entries(search="nrit")) == 1

    def test_since(self, audit):
        """Test selecting the entries recorded after a given one."""
        start = audit.record(AuditAction.SESSION_STATUS, "Started")
        later = audit.record(AuditAction.RECONCILE, "Reconciled 2 transactions")

        assert audit.since(start.id) == [later]
        assert audit.since(later.id) == []

    def test_summary(self, audit):
        """Test action counts in the log summary."""
        audit.record(AuditAction.RECONCILE, "a")
        audit.record(AuditAction.RECONCILE, "b", user="auditor")
        audit.record(AuditAction.SPLIT, "c")

        summary = audit.summary()
        assert summary["total_entries"] == 3
        assert summary["action_counts"] == {"reconcile": 2, "split": 1}
        assert set(summary["users"]) == {"treasurer", "auditor"}

    def test_to_dict(self, audit):
        """Test serialization of an audit entry."""
        entry = audit.record(AuditAction.RECONCILE, "Reconciled", amount_cents=50000)
        data = entry.to_dict()

        assert data["action"] == "reconcile"
        assert data["amount"] == 500.0
        assert data["id"].startswith("audit-")
