"""
Scoring / fines ledger service.
"""

import pytest

from taskflow.core.exceptions import NotFoundError, ValidationError
from taskflow.models import db
from taskflow.models.ledger import Fine
from taskflow.services import ledger_service


class TestFines:

    def test_add_fine_defaults(self, designer, make_node):
        node = make_node(designer)
        fine = ledger_service.add_fine(designer.id, node.id, "Missed deadline")
        assert fine.amount == 10.0
        assert fine.resolved is False
        assert fine.resolved_at is None

    def test_add_fine_uses_configured_default(self, app, monkeypatch, designer):
        monkeypatch.setitem(app.config, "DEFAULT_FINE_AMOUNT", 25)
        fine = ledger_service.add_fine(designer.id, None, "Late report")
        assert fine.amount == 25.0

    def test_resolve_is_idempotent(self, designer):
        fine = ledger_service.add_fine(designer.id, None, "Late")
        first = ledger_service.resolve_fine(fine.id)
        stamp = first.resolved_at
        second = ledger_service.resolve_fine(fine.id)
        assert second.resolved is True
        assert second.resolved_at == stamp

    def test_resolve_missing(self):
        with pytest.raises(NotFoundError):
            ledger_service.resolve_fine(404)

    def test_list_fines_filters(self, designer, manager):
        f1 = ledger_service.add_fine(designer.id, None, "one")
        ledger_service.add_fine(designer.id, None, "two")
        ledger_service.add_fine(manager.id, None, "three")
        ledger_service.resolve_fine(f1.id)

        assert len(ledger_service.list_fines()) == 3
        assert len(ledger_service.list_fines(user_id=designer.id)) == 2
        open_fines = ledger_service.list_fines(user_id=designer.id, resolved=False)
        assert [f.reason for f in open_fines] == ["two"]


class TestScore:

    def test_adjust_score(self, designer):
        assert ledger_service.adjust_score(designer.id, -5) == 95.0
        assert ledger_service.adjust_score(designer.id, 2.5) == 97.5

    def test_no_floor(self, designer):
        assert ledger_service.adjust_score(designer.id, -250) == -150.0

    def test_unknown_user(self):
        with pytest.raises(NotFoundError):
            ledger_service.adjust_score(999, -5)

    def test_uncommitted_adjust_rolls_back(self, designer):
        ledger_service.adjust_score(designer.id, -5, commit=False)
        db.session.rollback()
        db.session.refresh(designer)
        assert designer.score == 100.0


class TestManualPenalty:

    def test_penalty_does_not_change_score(self, designer, make_node):
        node = make_node(designer)
        fine = ledger_service.issue_penalty(designer.id, node.id, "Sloppy handover", 15)
        db.session.refresh(designer)
        assert fine.amount == 15.0
        assert designer.score == 100.0

    def test_penalty_without_node(self, designer):
        fine = ledger_service.issue_penalty(designer.id, None, "Conduct")
        assert fine.node_id is None

    def test_penalty_unknown_references(self, designer):
        with pytest.raises(NotFoundError):
            ledger_service.issue_penalty(999, None, "x")
        with pytest.raises(NotFoundError):
            ledger_service.issue_penalty(designer.id, 999, "x")
        assert Fine.query.count() == 0

    def test_penalty_requires_reason(self, designer):
        with pytest.raises(ValidationError):
            ledger_service.issue_penalty(designer.id, None, "  ")

    def test_negative_amount_rejected(self, designer):
        with pytest.raises(ValidationError):
            ledger_service.issue_penalty(designer.id, None, "x", -1)


class TestSummary:

    def test_user_summary(self, designer):
        f1 = ledger_service.add_fine(designer.id, None, "one")
        ledger_service.add_fine(designer.id, None, "two", 7)
        ledger_service.resolve_fine(f1.id)
        ledger_service.adjust_score(designer.id, -5)

        summary = ledger_service.user_summary(designer.id)

        assert summary["score"] == 95.0
        assert summary["open_fines"] == 1
        assert summary["open_fine_amount"] == 7.0
        assert summary["total_fines"] == 2
        assert len(summary["recent_fines"]) == 2

    def test_summary_unknown_user(self):
        with pytest.raises(NotFoundError):
            ledger_service.user_summary(999)
