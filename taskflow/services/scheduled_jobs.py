"""
Taskflow
Scheduled Jobs.

Concrete job implementations run by the scheduler timer.

Jobs:
    - enforcement_sweep: marks past-due pending tasks overdue and fines
      their assignees
"""

from __future__ import annotations

from typing import Any

from taskflow.services.enforcement import run_sweep
from taskflow.services.scheduler_service import register_job


@register_job("enforcement_sweep")
def enforcement_sweep(app) -> dict[str, Any]:
    """Mark pending tasks past their due date overdue and fine the assignees."""
    return run_sweep()
