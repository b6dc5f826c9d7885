"""
Task Lifecycle — Service Layer.

State machine for Node.status:

    pending ──(sweep, due_date < now)──▶ overdue
    pending | in_progress | overdue ──(assignee completes)──▶ completed
    any non-terminal ──(admin edit)──▶ any status
    completed is terminal

Business logic for:
    - Task creation with role-ordered assignment rules
    - "My tasks" listing with one-hop blocked_by_count
    - Idempotent seen marking
    - Assignee completion gated on identity and direct prerequisites
    - Admin overrides (force complete, edit, delete) with an append-only
      edit history
"""

import logging

from sqlalchemy import or_, update

from taskflow.core.exceptions import (
    BlockedError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from taskflow.models import db
from taskflow.models.audit import TaskLog, write_task_log
from taskflow.models.auth import Role, User
from taskflow.models.workflow import (
    NODE_STATUSES,
    Node,
    Workflow,
    validate_node_transition,
)
from taskflow.services import graph_store
from taskflow.services.dependency_resolver import blocked_by_counts, blocking_node_ids
from taskflow.utils.helpers import parse_bool, parse_datetime, utcnow

logger = logging.getLogger(__name__)


def _require_admin(user: User) -> None:
    if user is None or user.role != Role.ADMIN:
        raise ForbiddenError("Admin access required")


def _parse_due_date(value):
    try:
        return parse_datetime(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("due_date is not a valid ISO timestamp",
                              details={"due_date": value}) from exc


def _get_user(user_id, label="User") -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(label, user_id)
    return user


# ── Creation & listing ───────────────────────────────────────────────────────


def create_task(requester: User, data: dict) -> Node:
    """Create a pending task.

    The assignee's role must not exceed the requester's and must not be
    Admin.

    Raises:
        ValidationError: missing title / assignee_id / due_date.
        NotFoundError: unknown assignee, supervisor or workflow.
        ForbiddenError: assignment rule violated.
    """
    title = (data.get("title") or "").strip()
    missing = [f for f in ("assignee_id", "due_date") if data.get(f) in (None, "")]
    if not title:
        missing.insert(0, "title")
    if missing:
        raise ValidationError(
            f"{', '.join(missing)} required",
            details={f: "required" for f in missing},
        )

    assignee = _get_user(data["assignee_id"], "Assignee")
    if assignee.role > requester.role or assignee.role == Role.ADMIN:
        raise ForbiddenError(
            "You cannot assign tasks to users with a higher role or to Admins."
        )

    supervisor_id = data.get("supervisor_id") or None
    if supervisor_id is not None:
        _get_user(supervisor_id, "Supervisor")

    workflow_id = data.get("workflow_id") or None
    if workflow_id is not None and not db.session.get(Workflow, workflow_id):
        raise NotFoundError("Workflow", workflow_id)

    node = Node(
        workflow_id=workflow_id,
        title=title,
        description=data.get("description", "") or "",
        creator_id=requester.id,
        assignee_id=assignee.id,
        supervisor_id=supervisor_id,
        due_date=_parse_due_date(data["due_date"]),
        is_urgent=parse_bool(data.get("is_urgent")),
        status="pending",
    )
    db.session.add(node)
    db.session.commit()
    logger.info("Node created id=%s creator=%s assignee=%s due=%s",
                node.id, requester.id, assignee.id, node.due_date)
    return node


def list_my_tasks(user_id: int) -> list[dict]:
    """
    Open tasks the user is assignee or supervisor of, urgent first then
    earliest deadline.  Each entry carries ``is_assignee`` and the one-hop
    ``blocked_by_count``.
    """
    nodes = (
        Node.query
        .filter(
            or_(Node.assignee_id == user_id, Node.supervisor_id == user_id),
            Node.status != "completed",
        )
        .order_by(Node.is_urgent.desc(), Node.due_date.asc(), Node.id.asc())
        .all()
    )
    counts = blocked_by_counts(n.id for n in nodes)
    items = []
    for n in nodes:
        d = n.to_dict(include_people=True)
        d["is_assignee"] = n.assignee_id == user_id
        d["blocked_by_count"] = counts.get(n.id, 0)
        items.append(d)
    return items


# ── Assignee actions ─────────────────────────────────────────────────────────


def mark_seen(node_id: int, user_id: int) -> bool:
    """
    Stamp seen_at the first time the assignee views the task.

    Single conditional UPDATE; any other caller, a missing node or an
    already-seen node is a silent no-op.  Returns True if a row changed.
    """
    result = db.session.execute(
        update(Node)
        .where(
            Node.id == node_id,
            Node.assignee_id == user_id,
            Node.seen_at.is_(None),
        )
        .values(seen_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    changed = result.rowcount > 0
    if changed:
        logger.debug("Node seen id=%s user=%s", node_id, user_id)
    return changed


def complete_task(node_id: int, requester_id: int) -> Node:
    """
    Complete a task on behalf of its assignee.

    Checks, in order:
        1. the node exists             → NotFoundError
        2. requester is the assignee   → ForbiddenError
        3. no incomplete direct prerequisite → BlockedError

    Overdue nodes may still be completed.  Re-completing a completed node
    returns it unchanged.  The status write is conditional on
    ``status != 'completed'`` so a racing sweep cannot clobber it.
    """
    node = graph_store.get_node(node_id)
    if node.assignee_id != requester_id:
        raise ForbiddenError("You are not the assignee for this task")

    if node.status == "completed":
        return node

    blockers = blocking_node_ids(node_id)
    if blockers:
        raise BlockedError(node_id, blockers)

    _commit_completion(node)
    logger.info("Node completed id=%s by=%s", node_id, requester_id)
    return node


def _commit_completion(node: Node) -> bool:
    result = db.session.execute(
        update(Node)
        .where(Node.id == node.id, Node.status != "completed")
        .values(status="completed", updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    db.session.refresh(node)
    return result.rowcount > 0


def force_complete(node_id: int, admin: User) -> Node:
    """Admin completion: bypasses assignee and dependency checks, logs the edit."""
    _require_admin(admin)
    node = graph_store.get_node(node_id)
    if node.status == "completed":
        return node

    old_status = node.status
    if _commit_completion(node):
        write_task_log(
            node_id=node.id,
            editor_id=admin.id,
            change_description=(
                f"Task edited by {admin.username}: status changed to \"completed\" (force complete)"
            ),
            diff={"status": {"old": old_status, "new": "completed"}},
        )
        db.session.commit()
        logger.info("Node force-completed id=%s by admin=%s", node_id, admin.id)
    return node


# ── Admin edits ──────────────────────────────────────────────────────────────

# Field → human label used in the change description
_EDITABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "assignee_id": "assignee",
    "supervisor_id": "supervisor",
    "due_date": "due date",
    "is_urgent": "urgency",
    "status": "status",
    "workflow_id": "workflow",
}


def _coerce_update_value(field: str, value):
    if field == "due_date":
        return _parse_due_date(value)
    if field == "is_urgent":
        return parse_bool(value)
    if field == "title":
        value = (value or "").strip()
        if not value:
            raise ValidationError("title must not be empty", details={"title": "required"})
        return value
    if field == "status":
        if value not in NODE_STATUSES:
            raise ValidationError(
                f"Invalid status: {value!r}",
                details={"status": sorted(NODE_STATUSES)},
            )
        return value
    if field in ("assignee_id", "supervisor_id"):
        if value in (None, ""):
            if field == "assignee_id":
                raise ValidationError("assignee_id must not be empty",
                                      details={"assignee_id": "required"})
            return None
        _get_user(value, "Assignee" if field == "assignee_id" else "Supervisor")
        return int(value)
    if field == "workflow_id":
        if value in (None, ""):
            return None
        if not db.session.get(Workflow, value):
            raise NotFoundError("Workflow", value)
        return int(value)
    return value


def _describe(field: str, new) -> str:
    label = _EDITABLE_FIELDS[field]
    if field in ("title", "status"):
        return f'{label} changed to "{new}"'
    if field == "due_date":
        return f"{label} changed to {new.isoformat() if new else 'none'}"
    if field == "is_urgent":
        return "marked urgent" if new else "urgency removed"
    return f"{label} changed"


def _same(old, new) -> bool:
    # SQLite hands back naive datetimes; compare on the UTC wall clock
    if hasattr(old, "tzinfo") and hasattr(new, "tzinfo") and old is not None and new is not None:
        return old.replace(tzinfo=None) == new.replace(tzinfo=None)
    return old == new


def update_task(node_id: int, admin: User, data: dict) -> Node:
    """
    Administrative edit of any node field, bypassing completion rules.

    Only fields present in *data* are touched.  When something actually
    changed, one TaskLog row enumerating the changed fields is appended in
    the same transaction.  A completed node cannot be moved back out of
    ``completed``.
    """
    _require_admin(admin)
    node = graph_store.get_node(node_id)

    # Validate everything before touching the instance
    pending = {}
    for field in _EDITABLE_FIELDS:
        if field not in data:
            continue
        new = _coerce_update_value(field, data[field])
        old = getattr(node, field)
        if _same(old, new):
            continue
        if field == "status" and not validate_node_transition(node.status, new):
            raise ValidationError(
                f"Invalid transition: {node.status} → {new}",
                details={"status": {"old": node.status, "new": new}},
            )
        pending[field] = (old, new)

    changes = []
    diff = {}
    for field, (old, new) in pending.items():
        setattr(node, field, new)
        changes.append(_describe(field, new))
        diff[field] = {"old": old, "new": new}

    if changes:
        write_task_log(
            node_id=node.id,
            editor_id=admin.id,
            change_description=f"Task edited by {admin.username}: " + ", ".join(changes),
            diff=diff,
        )
    db.session.commit()
    logger.info("Node updated id=%s by admin=%s fields=%s", node_id, admin.id, list(diff))
    return node


def delete_task(node_id: int, admin: User) -> None:
    """Admin delete; removes the node with its edges, fines and history."""
    _require_admin(admin)
    graph_store.delete_node(node_id)


def task_history(node_id: int) -> list[TaskLog]:
    """Edit history for a node, newest first."""
    graph_store.get_node(node_id)
    return (
        TaskLog.query
        .filter_by(node_id=node_id)
        .order_by(TaskLog.created_at.desc(), TaskLog.id.desc())
        .all()
    )
