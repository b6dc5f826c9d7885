"""
Taskflow
Flask Application Factory.

Usage:
    from taskflow import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import importlib
import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError

from taskflow.config import config
from taskflow.core.exceptions import (
    BlockedError,
    ConflictError,
    DependencyCycleError,
    ForbiddenError,
    NotFoundError,
    SelfDependencyError,
    ValidationError,
)
from taskflow.middleware.jwt_auth import init_jwt_middleware
from taskflow.middleware.logging_config import configure_logging
from taskflow.middleware.rate_limiter import init_rate_limits
from taskflow.middleware.timing import init_request_timing
from taskflow.models import db
from taskflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit — apply per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def _register_error_handlers(app):
    """Map domain exceptions onto standard JSON error responses."""

    @app.errorhandler(NotFoundError)
    def _not_found(e):
        return api_error(E.NOT_FOUND, str(e))

    @app.errorhandler(ForbiddenError)
    def _forbidden(e):
        return api_error(E.FORBIDDEN, str(e))

    @app.errorhandler(BlockedError)
    def _blocked(e):
        return api_error(E.BLOCKED, str(e), details={"blocking_node_ids": e.blocking_ids})

    @app.errorhandler(SelfDependencyError)
    def _self_dependency(e):
        return api_error(E.SELF_DEPENDENCY, str(e), details=e.details)

    @app.errorhandler(DependencyCycleError)
    def _cycle(e):
        return api_error(E.DEPENDENCY_CYCLE, str(e), details=e.details)

    @app.errorhandler(ValidationError)
    def _validation(e):
        db.session.rollback()
        return api_error(E.VALIDATION_RULE, str(e), details=e.details)

    @app.errorhandler(ConflictError)
    def _conflict(e):
        return api_error(E.CONFLICT_DUPLICATE, str(e))

    @app.errorhandler(SQLAlchemyError)
    def _database(e):
        db.session.rollback()
        logger.exception("Database error on %s %s", request.method, request.path)
        return api_error(E.DATABASE, "Database error")

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: "development", "testing" or "production".
            Falls back to the APP_ENV environment variable.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiate so ProductionConfig can refuse a missing DATABASE_URL
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing + JWT auth middleware ─────────────────────────────
    init_request_timing(app)
    init_jwt_middleware(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from taskflow.models import audit as _audit_models            # noqa: F401
    from taskflow.models import auth as _auth_models              # noqa: F401
    from taskflow.models import ledger as _ledger_models          # noqa: F401
    from taskflow.models import scheduling as _scheduling_models  # noqa: F401
    from taskflow.models import workflow as _workflow_models      # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if config_name != "testing":
        if "sqlite" in (app.config.get("SQLALCHEMY_DATABASE_URI") or ""):
            os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except SQLAlchemyError as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from taskflow.blueprints.admin_bp import admin_bp
    from taskflow.blueprints.auth_bp import auth_bp
    from taskflow.blueprints.health_bp import health_bp
    from taskflow.blueprints.ledger_bp import ledger_bp
    from taskflow.blueprints.task_bp import tasks_bp
    from taskflow.blueprints.workflow_bp import workflows_bp

    for bp in (auth_bp, tasks_bp, workflows_bp, ledger_bp, admin_bp, health_bp):
        app.register_blueprint(bp)

    _register_error_handlers(app)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("sweep")
    def sweep_cmd():
        """Run one enforcement sweep now."""
        from taskflow.services.enforcement import run_sweep
        result = run_sweep()
        logger.info("Sweep: %s overdue, %s fined, %s failed.",
                    result["overdue"], result["fined"], len(result["failed"]))

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── Scheduler initialization (import jobs to register them) ──────────
    importlib.import_module("taskflow.services.scheduled_jobs")  # registers @register_job handlers
    from taskflow.services.scheduler_service import SchedulerService
    SchedulerService.init_app(app)
    if app.config.get("SCHEDULER_ENABLED"):
        SchedulerService.start(app.config.get("ENFORCEMENT_INTERVAL_SECONDS", 60))

    return app
