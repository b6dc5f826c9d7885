"""
Task Blueprint — task lifecycle and dependency edges.

Endpoints:
  Tasks:  POST /tasks, GET /tasks/mine, GET/PUT/DELETE /tasks/<id>
          POST /tasks/<id>/seen
          POST /tasks/<id>/complete
          POST /tasks/<id>/force-complete
          GET  /tasks/<id>/history
  Edges:  GET /tasks/<id>/dependencies, POST /edges, DELETE /edges/<id>

Domain exceptions raised by the services are rendered by the app-level
error handlers.
"""

from flask import Blueprint, g, jsonify, request

from taskflow.middleware.permission_required import admin_required, login_required
from taskflow.services import graph_store, task_lifecycle
from taskflow.services.dependency_resolver import blocking_node_ids

tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/v1")


def _int_field(data, name):
    try:
        return int(data.get(name)), None
    except (TypeError, ValueError):
        return None, (jsonify({"error": f"{name} must be an integer"}), 400)


# ═════════════════════════════════════════════════════════════════════════════
# Tasks
# ═════════════════════════════════════════════════════════════════════════════

@tasks_bp.route("/tasks", methods=["POST"])
@login_required
def create_task():
    """Create a task assigned to a user of equal or lower role."""
    data = request.get_json(silent=True) or {}
    if not data.get("title") or not data.get("assignee_id") or not data.get("due_date"):
        return jsonify({"error": "title, assignee_id and due_date are required"}), 400
    node = task_lifecycle.create_task(g.current_user, data)
    return jsonify(node.to_dict(include_people=True)), 201


@tasks_bp.route("/tasks/mine", methods=["GET"])
@login_required
def my_tasks():
    """Open tasks the caller is assignee or supervisor of."""
    items = task_lifecycle.list_my_tasks(g.current_user.id)
    return jsonify({"items": items, "total": len(items)})


@tasks_bp.route("/tasks/<int:node_id>", methods=["GET"])
@login_required
def get_task(node_id):
    node = graph_store.get_node(node_id)
    d = node.to_dict(include_people=True)
    d["blocked_by"] = blocking_node_ids(node_id)
    return jsonify(d)


@tasks_bp.route("/tasks/<int:node_id>", methods=["PUT"])
@admin_required
def update_task(node_id):
    data = request.get_json(silent=True) or {}
    node = task_lifecycle.update_task(node_id, g.current_user, data)
    return jsonify(node.to_dict(include_people=True))


@tasks_bp.route("/tasks/<int:node_id>", methods=["DELETE"])
@admin_required
def delete_task(node_id):
    task_lifecycle.delete_task(node_id, g.current_user)
    return jsonify({"deleted": True}), 200


@tasks_bp.route("/tasks/<int:node_id>/seen", methods=["POST"])
@login_required
def mark_seen(node_id):
    """Record the assignee's first view. Always 200."""
    changed = task_lifecycle.mark_seen(node_id, g.current_user.id)
    return jsonify({"updated": changed})


@tasks_bp.route("/tasks/<int:node_id>/complete", methods=["POST"])
@login_required
def complete_task(node_id):
    node = task_lifecycle.complete_task(node_id, g.current_user.id)
    return jsonify({"message": "Task completed", "task": node.to_dict()})


@tasks_bp.route("/tasks/<int:node_id>/force-complete", methods=["POST"])
@admin_required
def force_complete(node_id):
    node = task_lifecycle.force_complete(node_id, g.current_user)
    return jsonify({"message": "Task force-completed", "task": node.to_dict()})


@tasks_bp.route("/tasks/<int:node_id>/history", methods=["GET"])
@admin_required
def task_history(node_id):
    logs = task_lifecycle.task_history(node_id)
    return jsonify({"items": [entry.to_dict() for entry in logs], "total": len(logs)})


# ═════════════════════════════════════════════════════════════════════════════
# Dependency edges
# ═════════════════════════════════════════════════════════════════════════════

@tasks_bp.route("/tasks/<int:node_id>/dependencies", methods=["GET"])
@login_required
def list_dependencies(node_id):
    """Direct predecessors and successors of a task."""
    graph_store.get_node(node_id)
    return jsonify({
        "predecessors": [e.to_dict() for e in graph_store.get_incoming_edges(node_id)],
        "successors": [e.to_dict() for e in graph_store.get_outgoing_edges(node_id)],
        "blocked_by": blocking_node_ids(node_id),
    })


@tasks_bp.route("/edges", methods=["POST"])
@admin_required
def create_edge():
    """Body: { "source_node_id": 1, "target_node_id": 2 }"""
    data = request.get_json(silent=True) or {}
    source_id, err = _int_field(data, "source_node_id")
    if err:
        return err
    target_id, err = _int_field(data, "target_node_id")
    if err:
        return err
    edge = graph_store.create_edge(source_id, target_id)
    return jsonify(edge.to_dict()), 201


@tasks_bp.route("/edges/<int:edge_id>", methods=["DELETE"])
@admin_required
def delete_edge(edge_id):
    graph_store.delete_edge(edge_id)
    return jsonify({"deleted": True}), 200
