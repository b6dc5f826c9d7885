"""
Enforcement sweep: overdue transition, fines, score penalty.

Covers:
    1. Past-due pending task → overdue + one fine + score -5
    2. At-most-once: a second sweep changes nothing
    3. in_progress / completed / overdue / future tasks are untouched
    4. Completing an overdue task keeps its fine and the score penalty
    5. A failed consequence leaves the node overdue and the sweep continues
    6. End-to-end: chain of tasks, one missed deadline
"""

from datetime import timedelta

import pytest

from taskflow.models import db
from taskflow.models.ledger import Fine
from taskflow.services import enforcement, task_lifecycle
from taskflow.services.enforcement import run_sweep
from taskflow.services.graph_store import create_edge
from taskflow.utils.helpers import utcnow


def _refresh(*objs):
    for obj in objs:
        db.session.refresh(obj)


# ═════════════════════════════════════════════════════════════════════════════
# Core behaviour
# ═════════════════════════════════════════════════════════════════════════════


class TestSweep:

    def test_past_due_pending_becomes_overdue(self, designer, make_node):
        node = make_node(designer, due_in=timedelta(minutes=-5))

        result = run_sweep()

        _refresh(node, designer)
        assert node.status == "overdue"
        assert designer.score == 95.0
        fines = Fine.query.filter_by(node_id=node.id).all()
        assert len(fines) == 1
        assert fines[0].user_id == designer.id
        assert fines[0].reason == "Missed deadline"
        assert fines[0].amount == 10.0
        assert fines[0].resolved is False
        assert result["overdue"] == 1
        assert result["fined"] == 1
        assert result["failed"] == []
        assert result["node_ids"] == [node.id]

    def test_second_sweep_is_noop(self, designer, make_node):
        make_node(designer, due_in=timedelta(minutes=-5))
        run_sweep()

        result = run_sweep()

        _refresh(designer)
        assert result["overdue"] == 0
        assert Fine.query.count() == 1
        assert designer.score == 95.0

    @pytest.mark.parametrize("status", ["in_progress", "completed", "overdue"])
    def test_non_pending_statuses_untouched(self, designer, make_node, status):
        node = make_node(designer, status=status, due_in=timedelta(days=-1))

        result = run_sweep()

        _refresh(node, designer)
        assert node.status == status
        assert result["overdue"] == 0
        assert Fine.query.count() == 0
        assert designer.score == 100.0

    def test_future_due_date_untouched(self, designer, make_node):
        node = make_node(designer, due_in=timedelta(hours=1))
        run_sweep()
        _refresh(node)
        assert node.status == "pending"

    def test_explicit_reference_time(self, designer, make_node):
        node = make_node(designer, due_in=timedelta(hours=1))

        run_sweep(now=utcnow() + timedelta(hours=2))

        _refresh(node)
        assert node.status == "overdue"

    def test_multiple_overdue_tasks_same_assignee(self, designer, make_node):
        make_node(designer, title="A", due_in=timedelta(hours=-1))
        make_node(designer, title="B", due_in=timedelta(hours=-2))

        result = run_sweep()

        _refresh(designer)
        assert result["fined"] == 2
        assert designer.score == 90.0
        assert Fine.query.filter_by(user_id=designer.id).count() == 2

    def test_node_without_assignee_is_not_fined(self, make_node):
        node = make_node(None, due_in=timedelta(hours=-1))

        result = run_sweep()

        _refresh(node)
        assert node.status == "overdue"
        assert result["overdue"] == 1
        assert result["fined"] == 0
        assert Fine.query.count() == 0

    def test_penalty_is_configurable(self, app, monkeypatch, designer, make_node):
        monkeypatch.setitem(app.config, "ENFORCEMENT_SCORE_PENALTY", 2.5)
        make_node(designer, due_in=timedelta(hours=-1))
        run_sweep()
        _refresh(designer)
        assert designer.score == 97.5

    def test_score_can_go_negative(self, make_user, make_node):
        user = make_user("low", score=3.0)
        make_node(user, due_in=timedelta(hours=-1))
        run_sweep()
        _refresh(user)
        assert user.score == -2.0


# ═════════════════════════════════════════════════════════════════════════════
# Interaction with completion
# ═════════════════════════════════════════════════════════════════════════════


class TestOverdueThenComplete:

    def test_completion_keeps_fine_and_penalty(self, designer, make_node):
        node = make_node(designer, due_in=timedelta(minutes=-1))
        run_sweep()

        task_lifecycle.complete_task(node.id, designer.id)
        run_sweep()

        _refresh(node, designer)
        assert node.status == "completed"
        assert designer.score == 95.0
        fine = Fine.query.filter_by(node_id=node.id).one()
        assert fine.resolved is False

    def test_completed_before_deadline_never_penalised(self, designer, make_node):
        node = make_node(designer, due_in=timedelta(hours=1))
        task_lifecycle.complete_task(node.id, designer.id)

        run_sweep(now=utcnow() + timedelta(days=1))

        _refresh(node, designer)
        assert node.status == "completed"
        assert designer.score == 100.0


# ═════════════════════════════════════════════════════════════════════════════
# Failure isolation
# ═════════════════════════════════════════════════════════════════════════════


class TestFailureIsolation:

    def test_failed_consequence_does_not_stop_sweep(self, monkeypatch, make_user, make_node):
        unlucky = make_user("unlucky")
        lucky = make_user("lucky")
        bad = make_node(unlucky, title="Bad", due_in=timedelta(hours=-2))
        good = make_node(lucky, title="Good", due_in=timedelta(hours=-1))

        bad_id = bad.id
        real_add_fine = enforcement.add_fine

        def flaky_add_fine(user_id, node_id, reason, amount=None, *, commit=True):
            if node_id == bad_id:
                raise RuntimeError("ledger unavailable")
            return real_add_fine(user_id, node_id, reason, amount, commit=commit)

        monkeypatch.setattr(enforcement, "add_fine", flaky_add_fine)

        result = run_sweep()

        _refresh(bad, good, unlucky, lucky)
        assert result["overdue"] == 2
        assert result["fined"] == 1
        assert result["failed"] == [bad.id]
        # Both nodes overdue; only the healthy one carries consequences
        assert bad.status == "overdue"
        assert good.status == "overdue"
        assert unlucky.score == 100.0
        assert lucky.score == 95.0
        assert Fine.query.filter_by(node_id=bad.id).count() == 0

    def test_failed_node_is_not_retried(self, monkeypatch, designer, make_node):
        make_node(designer, due_in=timedelta(hours=-1))

        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(enforcement, "adjust_score", broken)
        run_sweep()
        monkeypatch.undo()

        result = run_sweep()

        _refresh(designer)
        assert result["overdue"] == 0
        assert Fine.query.count() == 0
        assert designer.score == 100.0


# ═════════════════════════════════════════════════════════════════════════════
# End-to-end
# ═════════════════════════════════════════════════════════════════════════════


class TestEndToEnd:

    def test_chain_with_missed_deadline(self, manager, designer, supervisor, admin):
        due_soon = (utcnow() + timedelta(minutes=30)).isoformat()
        due_later = (utcnow() + timedelta(days=2)).isoformat()
        a = task_lifecycle.create_task(manager, {
            "title": "A", "assignee_id": designer.id, "due_date": due_soon,
        })
        b = task_lifecycle.create_task(manager, {
            "title": "B", "assignee_id": supervisor.id, "due_date": due_later,
        })
        create_edge(a.id, b.id)

        # An hour later A has been missed
        result = run_sweep(now=utcnow() + timedelta(hours=1))
        assert result["node_ids"] == [a.id]

        items = task_lifecycle.list_my_tasks(supervisor.id)
        assert items[0]["blocked_by_count"] == 1

        task_lifecycle.complete_task(a.id, designer.id)
        assert task_lifecycle.list_my_tasks(supervisor.id)[0]["blocked_by_count"] == 0
        task_lifecycle.complete_task(b.id, supervisor.id)

        _refresh(designer, supervisor)
        assert designer.score == 95.0
        assert supervisor.score == 100.0
        assert Fine.query.count() == 1
