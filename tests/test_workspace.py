"""
Integration tests for the reconciliation workspace.
"""

from datetime import date

import pytest

from treasury_recon.exceptions import CollaboratorUnavailableError
from treasury_recon.integrations import HeuristicMatchProvider, MatchingServiceError
from treasury_recon.models import AuditAction, FilterSpec, MatchedPair, StatusFilter, TransactionSide
from treasury_recon.reconciliation import ReconciliationWorkspace, SplitPart
from treasury_recon.utils import MemoryStore


class FailingProvider:
    async def suggest_matches(self, ledger, bank):
        raise MatchingServiceError("Request timeout", retryable=True)


class RecordingProvider:
    def __init__(self, pairs=()):
        self.pairs = list(pairs)
        self.bank_ids = []

    async def suggest_matches(self, ledger, bank):
        self.bank_ids.append([t.id for t in bank])
        return list(self.pairs)


@pytest.fixture
def workspace(ledger, bank):
    return ReconciliationWorkspace(ledger, bank, provider=HeuristicMatchProvider(), user="treasurer")


UNRECONCILED = FilterSpec(status_filter=StatusFilter.UNRECONCILED)


class TestReconciliationWorkspace:
    """Integration tests for the workspace."""

    def test_manual_flow_updates_views_and_stats(self, workspace):
        """Test that a manual match updates views and stats."""
        workspace.matching.select(TransactionSide.LEDGER, ["C2"])
        workspace.matching.select(TransactionSide.BANK, ["B2"])
        workspace.reconcile_selection()

        assert [t.id for t in workspace.visible_ledger(UNRECONCILED)] == ["C1", "C3", "C4"]
        assert [t.id for t in workspace.visible_bank(UNRECONCILED)] == ["B1", "B3", "B4"]
        stats = workspace.stats()
        assert stats.reconciled_ledger_transactions == 1
        assert stats.discrepancy_cents == 85000 - 72500

    @pytest.mark.asyncio
    async def test_suggest_accept_flow(self, workspace):
        """Test suggesting then accepting matches."""
        suggestions = await workspace.suggest()

        assert [p.ledger_transaction_id for p in suggestions] == ["C1", "C2"]
        assert workspace.stats().suggestion_count == 2

        workspace.accept_suggestions()

        assert [t.id for t in workspace.visible_ledger(UNRECONCILED)] == ["C3", "C4"]
        actions = [e.action for e in workspace.audit.entries]
        assert actions == [AuditAction.RECONCILE, AuditAction.AI_SUGGEST]

    @pytest.mark.asyncio
    async def test_suggested_rows_visible_until_decided(self, workspace):
        """Test visibility of suggested rows until decided."""
        await workspace.suggest()
        workspace.store.apply_reconciliation(["C1"], ["B1"])

        assert "C1" in [t.id for t in workspace.visible_ledger(UNRECONCILED)]

        workspace.decline_suggestions()
        assert "C1" not in [t.id for t in workspace.visible_ledger(UNRECONCILED)]

    @pytest.mark.asyncio
    async def test_unavailable_collaborator_leaves_workspace_usable(self, ledger, bank):
        """Test the workspace after a collaborator failure."""
        workspace = ReconciliationWorkspace(ledger, bank, provider=FailingProvider())

        with pytest.raises(CollaboratorUnavailableError):
            await workspace.suggest()

        workspace.store.split_transaction("B3", [SplitPart(20000), SplitPart(30000)])
        assert len(workspace.visible_bank()) == 5

    def test_components_share_one_attributed_audit_log(self, workspace):
        """Test that all components write to the workspace log."""
        entry = workspace.store.apply_reconciliation(["C1"], ["B1"])

        assert workspace.audit is workspace.store.audit
        assert workspace.audit.entries == (entry,)
        assert entry.user == "treasurer"

    @pytest.mark.asyncio
    async def test_import_then_suggest(self, ledger, bank, make_bank):
        """Test that an import triggers suggestions."""
        provider = RecordingProvider([MatchedPair("C4", ("B5",), 0.9)])
        workspace = ReconciliationWorkspace(ledger, bank, provider=provider)

        entry, suggestions = await workspace.import_bank(
            [make_bank("B5", 10000)], source="april.csv",
        )

        assert entry.action == AuditAction.IMPORT
        assert provider.bank_ids == [["B5", "B1", "B2", "B3", "B4"]]
        assert [p.bank_transaction_ids for p in suggestions] == [("B5",)]
        assert [e.action for e in workspace.audit.entries] == [
            AuditAction.AI_SUGGEST,
            AuditAction.IMPORT,
        ]

    @pytest.mark.asyncio
    async def test_import_without_suggestions(self, ledger, bank, make_bank):
        """Test an import with suggestions turned off."""
        provider = RecordingProvider()
        workspace = ReconciliationWorkspace(ledger, bank, provider=provider)

        _, suggestions = await workspace.import_bank([make_bank("B5", 10000)], suggest=False)

        assert suggestions is None
        assert provider.bank_ids == []
        assert workspace.store.get_bank("B5").amount_cents == 10000

    @pytest.mark.asyncio
    async def test_import_survives_failed_suggestions(self, ledger, bank, make_bank):
        """Test that a failed request keeps the import."""
        workspace = ReconciliationWorkspace(ledger, bank, provider=FailingProvider())

        with pytest.raises(CollaboratorUnavailableError):
            await workspace.import_bank([make_bank("B5", 10000)])

        assert workspace.store.get_bank("B5").amount_cents == 10000
        assert workspace.audit.entries[0].action == AuditAction.IMPORT

    def test_session_over_workspace(self, workspace):
        """Test a session run over the workspace."""
        session = workspace.sessions.start("April 2024")
        workspace.store.mark_nrit(["B4"])
        workspace.sessions.complete(session.id)

        assert len(session.action_ids) == 1
        assert session.summary.reconciled_bank_transactions == 1

    def test_validate_and_cash_on_hand(self, ledger, bank):
        """Test validation and cash-on-hand access."""
        workspace = ReconciliationWorkspace(
            ledger, bank, provider=HeuristicMatchProvider(), storage=MemoryStore(),
        )

        assert workspace.validate(today=date(2024, 4, 10)) == []
        assert workspace.cash_on_hand.get("P2026").account_name == "Primary Campaign Account"

    @pytest.mark.asyncio
    async def test_context_manager_closes_provider(self, ledger, bank):
        """Test that leaving the context closes the provider."""
        closed = []

        class ClosingProvider(HeuristicMatchProvider):
            async def close(self):
                closed.append(True)

        async with ReconciliationWorkspace(ledger, bank, provider=ClosingProvider()):
            pass

        assert closed == [True]
