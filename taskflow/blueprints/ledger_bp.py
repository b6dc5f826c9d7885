"""
Ledger Blueprint — fines, scores and assignable users.

Endpoints:
  GET  /fines                   — filter by ?user_id= and ?resolved=
  POST /fines                   — manual penalty
  POST /fines/<id>/resolve
  GET  /users/assignable        — users the caller may assign tasks to
  GET  /users/<id>/summary      — admin, or the user themself
"""

from flask import Blueprint, g, jsonify, request

from taskflow.core.exceptions import ForbiddenError
from taskflow.middleware.permission_required import admin_required, login_required
from taskflow.services import ledger_service
from taskflow.services.user_service import assignable_users
from taskflow.utils.helpers import parse_bool

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/v1")


@ledger_bp.route("/fines", methods=["GET"])
@admin_required
def list_fines():
    user_id = request.args.get("user_id", type=int)
    resolved = request.args.get("resolved")
    resolved = parse_bool(resolved) if resolved is not None else None
    fines = ledger_service.list_fines(user_id=user_id, resolved=resolved)
    return jsonify({"items": [f.to_dict() for f in fines], "total": len(fines)})


@ledger_bp.route("/fines", methods=["POST"])
@admin_required
def issue_penalty():
    """
    Body: { "user_id": 3, "node_id": 7, "reason": "...", "amount": 10 }
    ``node_id`` and ``amount`` are optional.
    """
    data = request.get_json(silent=True) or {}
    try:
        user_id = int(data.get("user_id"))
        node_id = int(data["node_id"]) if data.get("node_id") not in (None, "") else None
        amount = float(data["amount"]) if data.get("amount") not in (None, "") else None
    except (TypeError, ValueError):
        return jsonify({"error": "user_id, node_id and amount must be numeric"}), 400
    if not (data.get("reason") or "").strip():
        return jsonify({"error": "reason is required"}), 400

    fine = ledger_service.issue_penalty(user_id, node_id, data["reason"], amount)
    return jsonify({"message": "Penalty issued", "fine": fine.to_dict()}), 201


@ledger_bp.route("/fines/<int:fine_id>/resolve", methods=["POST"])
@admin_required
def resolve_fine(fine_id):
    fine = ledger_service.resolve_fine(fine_id)
    return jsonify(fine.to_dict())


@ledger_bp.route("/users/assignable", methods=["GET"])
@login_required
def list_assignable():
    users = assignable_users(g.current_user)
    return jsonify({
        "items": [{"id": u.id, "username": u.username, "role": u.role} for u in users],
        "total": len(users),
    })


@ledger_bp.route("/users/<int:user_id>/summary", methods=["GET"])
@login_required
def user_summary(user_id):
    if not g.current_user.is_admin and g.current_user.id != user_id:
        raise ForbiddenError("You may only view your own summary")
    return jsonify(ledger_service.user_summary(user_id))
