"""
Logging formatters: context fields from requests and sweep jobs.
"""

import json
import logging

from flask import Flask

from taskflow.middleware.logging_config import (
    JSONFormatter,
    ReadableFormatter,
    select_formatter,
)


def _record(msg="Node %s marked overdue", args=(7,), **extra):
    record = logging.LogRecord(
        name="taskflow.services.enforcement", level=logging.INFO,
        pathname=__file__, lineno=10, msg=msg, args=args, exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_includes_sweep_context(self):
        out = json.loads(JSONFormatter().format(_record(node_id=7, job_name="enforcement_sweep")))
        assert out["msg"] == "Node 7 marked overdue"
        assert out["level"] == "INFO"
        assert out["node_id"] == 7
        assert out["job_name"] == "enforcement_sweep"

    def test_omits_unset_fields(self):
        out = json.loads(JSONFormatter().format(_record()))
        assert "node_id" not in out
        assert "user_id" not in out


class TestReadableFormatter:

    def test_context_and_duration(self):
        line = ReadableFormatter().format(
            _record("GET /api/v1/tasks/mine", (), duration_ms=12.4, user_id=3)
        )
        assert "GET /api/v1/tasks/mine" in line
        assert "[12ms]" in line
        assert "(user_id=3)" in line


class TestSelectFormatter:

    def _app(self, **cfg):
        app = Flask(__name__)
        app.config.update(cfg)
        return app

    def test_explicit_format_wins(self):
        assert isinstance(select_formatter(self._app(LOG_FORMAT="json", DEBUG=True)), JSONFormatter)
        assert isinstance(select_formatter(self._app(LOG_FORMAT="readable")), ReadableFormatter)

    def test_defaults_by_environment(self):
        assert isinstance(select_formatter(self._app(DEBUG=False, TESTING=False)), JSONFormatter)
        assert isinstance(select_formatter(self._app(TESTING=True)), ReadableFormatter)
