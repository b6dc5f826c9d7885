"""
Admin Blueprint — cross-workflow views and scheduler control.

Endpoints:
  GET  /admin/master-flow            — every workflow node and edge
  GET  /admin/jobs                   — registered jobs with last-run info
  POST /admin/jobs/<name>/run        — run a job now
"""

from flask import Blueprint, jsonify

from taskflow.middleware.permission_required import admin_required
from taskflow.services import graph_store
from taskflow.services.scheduler_service import SchedulerService, get_registered_jobs

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")


@admin_bp.route("/master-flow", methods=["GET"])
@admin_required
def master_flow():
    return jsonify(graph_store.master_flow())


@admin_bp.route("/jobs", methods=["GET"])
@admin_required
def list_jobs():
    jobs = SchedulerService.list_jobs()
    return jsonify({"items": jobs, "total": len(jobs), "running": SchedulerService.is_running()})


@admin_bp.route("/jobs/<job_name>/run", methods=["POST"])
@admin_required
def run_job(job_name):
    if job_name not in get_registered_jobs():
        return jsonify({"error": f"Unknown job: {job_name}"}), 404
    SchedulerService.ensure_jobs_registered()
    result = SchedulerService.run_job(job_name)
    status = 200 if result["status"] == "success" else 500
    return jsonify(result), status
