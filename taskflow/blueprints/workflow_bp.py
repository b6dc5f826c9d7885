"""
Workflow Blueprint — admin workflow management and graph views.

Endpoints:
  GET/POST   /workflows
  GET/DELETE /workflows/<id>      (GET returns nodes, edges and stats)
"""

from flask import Blueprint, jsonify, request

from taskflow.middleware.permission_required import admin_required
from taskflow.services import graph_store

workflows_bp = Blueprint("workflows", __name__, url_prefix="/api/v1/workflows")


@workflows_bp.route("", methods=["GET"])
@admin_required
def list_workflows():
    items = graph_store.list_workflows()
    return jsonify({"items": [w.to_dict() for w in items], "total": len(items)})


@workflows_bp.route("", methods=["POST"])
@admin_required
def create_workflow():
    data = request.get_json(silent=True) or {}
    if not (data.get("name") or "").strip():
        return jsonify({"error": "name is required"}), 400
    wf = graph_store.create_workflow(data)
    return jsonify(wf.to_dict()), 201


@workflows_bp.route("/<int:workflow_id>", methods=["GET"])
@admin_required
def get_workflow(workflow_id):
    return jsonify(graph_store.workflow_graph(workflow_id))


@workflows_bp.route("/<int:workflow_id>", methods=["DELETE"])
@admin_required
def delete_workflow(workflow_id):
    graph_store.delete_workflow(workflow_id)
    return jsonify({"deleted": True}), 200
