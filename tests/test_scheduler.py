"""
Scheduler service: job registry, run bookkeeping and timer resilience.
"""

import threading
import time
from datetime import timedelta

from taskflow.models import db
from taskflow.models.scheduling import ScheduledJob
from taskflow.models.workflow import Node
from taskflow.services import scheduler_service
from taskflow.services.scheduler_service import SchedulerService, get_registered_jobs


class TestRegistry:

    def test_enforcement_sweep_registered(self):
        assert "enforcement_sweep" in get_registered_jobs()

    def test_ensure_jobs_registered_creates_rows(self, app):
        SchedulerService.ensure_jobs_registered()
        db.session.expire_all()
        job = ScheduledJob.query.filter_by(job_name="enforcement_sweep").one()
        assert job.interval_seconds == app.config["ENFORCEMENT_INTERVAL_SECONDS"]
        assert job.is_enabled is True

        # Second call is a no-op
        assert SchedulerService.ensure_jobs_registered() == []


class TestRunJob:

    def test_unknown_job(self):
        result = SchedulerService.run_job("nope")
        assert result["status"] == "error"

    def test_runs_sweep_and_records(self, designer, make_node):
        node = make_node(designer, due_in=timedelta(hours=-1))
        SchedulerService.ensure_jobs_registered()

        result = SchedulerService.run_job("enforcement_sweep")

        assert result["status"] == "success"
        assert result["result"]["overdue"] == 1
        db.session.expire_all()
        assert db.session.get(Node, node.id).status == "overdue"
        job = ScheduledJob.query.filter_by(job_name="enforcement_sweep").one()
        assert job.run_count == 1
        assert job.last_run_status == "success"

    def test_failing_job_is_recorded_not_raised(self, monkeypatch):
        def exploding(app):
            raise RuntimeError("kaput")

        monkeypatch.setitem(scheduler_service._job_registry, "exploding", exploding)
        SchedulerService.ensure_jobs_registered()

        result = SchedulerService.run_job("exploding")

        assert result["status"] == "failed"
        assert "kaput" in result["error"]
        db.session.expire_all()
        job = ScheduledJob.query.filter_by(job_name="exploding").one()
        assert job.error_count == 1
        assert job.last_error == "kaput"

    def test_tick_skips_disabled_jobs(self, monkeypatch):
        calls = []
        monkeypatch.setitem(scheduler_service._job_registry, "counted",
                            lambda app: calls.append(1) or {"ok": True})
        SchedulerService.ensure_jobs_registered()
        for job in ScheduledJob.query.all():
            job.is_enabled = job.job_name == "counted"
        db.session.commit()

        results = SchedulerService.tick()

        assert [r["job_name"] for r in results] == ["counted"]
        assert calls == [1]


class TestTimer:

    def test_failed_tick_does_not_stop_timer(self, monkeypatch):
        ticks = []
        reached = threading.Event()

        def flaky_tick():
            ticks.append(1)
            if len(ticks) == 1:
                raise RuntimeError("first tick fails")
            if len(ticks) >= 3:
                reached.set()
            return []

        monkeypatch.setattr(SchedulerService, "tick", flaky_tick)

        assert SchedulerService.start(interval=0.01) is True
        try:
            assert SchedulerService.start(interval=0.01) is False
            assert reached.wait(5), "timer stopped after a failed tick"
        finally:
            SchedulerService.stop()

        assert SchedulerService.is_running() is False
        count = len(ticks)
        time.sleep(0.05)
        assert len(ticks) == count
