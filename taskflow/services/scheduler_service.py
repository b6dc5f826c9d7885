"""
Taskflow
Scheduler Service.

Lightweight background job runner: a daemon thread wakes every
``ENFORCEMENT_INTERVAL_SECONDS`` and runs every enabled registered job
inside a Flask app context.  Jobs can also be triggered by hand through
the admin API (and are, in tests, where the timer is disabled).

Architecture:
    - register_job: decorator filling the in-process job registry
    - SchedulerService: persistence (ScheduledJob rows), execution, timer
    - A failing job or tick is logged and the timer keeps running
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from flask import Flask

from taskflow.models import db
from taskflow.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("enforcement_sweep")
        def enforcement_sweep(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


class SchedulerService:
    """
    Lightweight scheduler service.

    Manages job registration, persistence, execution and the timer thread.
    Jobs are executed within Flask app context.
    """

    _app: Flask | None = None
    _thread: threading.Thread | None = None
    _stop_event: threading.Event | None = None

    @classmethod
    def init_app(cls, app: Flask) -> None:
        """Initialize scheduler with Flask app context."""
        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("SchedulerService initialized with %d registered jobs",
                    len(_job_registry))

    @classmethod
    def ensure_jobs_registered(cls) -> list[ScheduledJob]:
        """
        Ensure all registered jobs have a corresponding DB record.
        Creates missing records with default config.
        """
        if not cls._app:
            return []

        created = []
        interval = int(cls._app.config.get("ENFORCEMENT_INTERVAL_SECONDS", 60))
        with cls._app.app_context():
            for name, fn in _job_registry.items():
                existing = ScheduledJob.query.filter_by(job_name=name).first()
                if not existing:
                    job = ScheduledJob(
                        job_name=name,
                        description=(fn.__doc__ or f"Scheduled job: {name}").strip(),
                        interval_seconds=interval,
                        status="active",
                        is_enabled=True,
                    )
                    db.session.add(job)
                    created.append(job)
            if created:
                db.session.commit()
                logger.info("Created %d scheduled job records", len(created))
        return created

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """
        Execute a single job by name.  Never raises.

        Returns:
            Dict with job_name, status, duration_ms, result and error.
        """
        fn = _job_registry.get(job_name)
        if not fn:
            return {"job_name": job_name, "status": "error", "error": f"Unknown job: {job_name}"}

        if not cls._app:
            return {"job_name": job_name, "status": "error", "error": "Scheduler not initialized"}

        start = time.monotonic()
        result = None
        error = None
        status = "success"

        try:
            with cls._app.app_context():
                result = fn(cls._app)
        except Exception as exc:
            status = "failed"
            error = str(exc)
            logger.exception("Job %s failed: %s", job_name, exc, extra={"job_name": job_name})

        duration_ms = int((time.monotonic() - start) * 1000)

        # Update DB record
        try:
            with cls._app.app_context():
                job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
                if job_record:
                    job_record.record_run(
                        status=status,
                        duration_ms=duration_ms,
                        result=result if isinstance(result, dict) else {"output": str(result)},
                        error=error,
                    )
                    db.session.commit()
        except Exception:
            logger.exception("Failed to update job record for %s", job_name,
                             extra={"job_name": job_name})

        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    @classmethod
    def list_jobs(cls) -> list[dict]:
        """List all registered jobs with their DB status."""
        jobs = []
        for name in _job_registry:
            job_record = ScheduledJob.query.filter_by(job_name=name).first()
            jobs.append({
                "job_name": name,
                "registered": True,
                "db_record": job_record.to_dict() if job_record else None,
            })
        return jobs

    @classmethod
    def _enabled_job_names(cls) -> list[str]:
        with cls._app.app_context():
            disabled = {
                j.job_name
                for j in ScheduledJob.query.filter(ScheduledJob.is_enabled.is_(False)).all()
            }
        return [name for name in _job_registry if name not in disabled]

    @classmethod
    def tick(cls) -> list[dict]:
        """Run every enabled job once.  Never raises."""
        if not cls._app:
            return []
        try:
            names = cls._enabled_job_names()
        except Exception:
            logger.exception("Scheduler tick could not read job table")
            names = list(_job_registry)
        return [cls.run_job(name) for name in names]

    # ── Timer thread ────────────────────────────────────────────────────────

    @classmethod
    def _loop(cls, interval: float, stop_event: threading.Event) -> None:
        logger.info("Scheduler timer started (interval=%ss)", interval)
        while not stop_event.wait(interval):
            try:
                cls.tick()
            except Exception:
                logger.exception("Scheduler tick failed")
        logger.info("Scheduler timer stopped")

    @classmethod
    def start(cls, interval: float | None = None) -> bool:
        """Start the daemon timer thread. Returns False if already running."""
        if not cls._app:
            raise RuntimeError("SchedulerService.init_app() must be called first")
        if cls.is_running():
            return False
        if interval is None:
            interval = cls._app.config.get("ENFORCEMENT_INTERVAL_SECONDS", 60)

        cls.ensure_jobs_registered()
        cls._stop_event = threading.Event()
        cls._thread = threading.Thread(
            target=cls._loop,
            args=(float(interval), cls._stop_event),
            name="taskflow-scheduler",
            daemon=True,
        )
        cls._thread.start()
        return True

    @classmethod
    def stop(cls, timeout: float | None = 5.0) -> None:
        """Signal the timer thread to exit and wait for it."""
        if cls._stop_event is not None:
            cls._stop_event.set()
        if cls._thread is not None:
            cls._thread.join(timeout)
        cls._thread = None
        cls._stop_event = None

    @classmethod
    def is_running(cls) -> bool:
        return cls._thread is not None and cls._thread.is_alive()
