"""
Taskflow
Workflow graph domain models.

Models:
    - Workflow:  named container of related tasks
    - Node:      a single task with assignee, due date and status
    - Edge:      source → target precedence between two nodes

Architecture:
    Workflow ──1:N──▶ Node
    Node ──N:M──▶ Node  (via Edge, source must complete before target)

Lifecycle states:
    Node:  pending → in_progress → completed
           pending → overdue → completed
           completed is terminal
"""

from datetime import datetime, timezone

from taskflow.models import db


# ── Constants ────────────────────────────────────────────────────────────────

NODE_STATUSES = {"pending", "in_progress", "completed", "overdue"}

# Statuses an admin edit may move a node into, keyed by current status.
# The sweep only ever performs pending → overdue.
NODE_TRANSITIONS = {
    "pending":     ["in_progress", "completed", "overdue"],
    "in_progress": ["pending", "completed", "overdue"],
    "overdue":     ["pending", "in_progress", "completed"],
    "completed":   [],
}


def validate_node_transition(old_status, new_status):
    """Return True if a Node may move from old_status to new_status."""
    if old_status == new_status:
        return True
    return new_status in NODE_TRANSITIONS.get(old_status, [])


def _utcnow():
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════════════
# 1. Workflow
# ═════════════════════════════════════════════════════════════════════════════


class Workflow(db.Model):
    """Named grouping of nodes. Deleting it removes its nodes and their edges."""

    __tablename__ = "workflows"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    nodes = db.relationship(
        "Node", backref="workflow", lazy="dynamic",
        cascade="all, delete-orphan", order_by="Node.id",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "node_count": self.nodes.count(),
        }

    def __repr__(self):
        return f"<Workflow {self.id}: {self.name}>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. Node
# ═════════════════════════════════════════════════════════════════════════════


class Node(db.Model):
    """
    A unit of work owned by exactly one assignee.
    May belong to a workflow or stand alone (ad-hoc task).
    """

    __tablename__ = "nodes"

    id = db.Column(db.Integer, primary_key=True)
    workflow_id = db.Column(
        db.Integer, db.ForeignKey("workflows.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )

    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")

    creator_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    assignee_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    supervisor_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )

    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    is_urgent = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(
        db.String(20), nullable=False, default="pending",
        comment="pending | in_progress | completed | overdue",
    )
    seen_at = db.Column(
        db.DateTime(timezone=True), nullable=True,
        comment="Set once, when the assignee first opens the task",
    )

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending','in_progress','completed','overdue')",
            name="ck_node_status",
        ),
        db.Index("ix_nodes_status_due_date", "status", "due_date"),
    )

    creator = db.relationship("User", foreign_keys=[creator_id])
    assignee = db.relationship("User", foreign_keys=[assignee_id])
    supervisor = db.relationship("User", foreign_keys=[supervisor_id])

    incoming_edges = db.relationship(
        "Edge", foreign_keys="Edge.target_node_id",
        backref="target_node", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    outgoing_edges = db.relationship(
        "Edge", foreign_keys="Edge.source_node_id",
        backref="source_node", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_people=False):
        result = {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "title": self.title,
            "description": self.description,
            "creator_id": self.creator_id,
            "assignee_id": self.assignee_id,
            "supervisor_id": self.supervisor_id,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "is_urgent": bool(self.is_urgent),
            "status": self.status,
            "seen_at": self.seen_at.isoformat() if self.seen_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_people:
            result["creator_name"] = self.creator.username if self.creator else None
            result["assignee_name"] = self.assignee.username if self.assignee else None
            result["supervisor_name"] = self.supervisor.username if self.supervisor else None
        return result

    def __repr__(self):
        return f"<Node {self.id}: {self.title} [{self.status}]>"


# ═════════════════════════════════════════════════════════════════════════════
# 3. Edge
# ═════════════════════════════════════════════════════════════════════════════


class Edge(db.Model):
    """
    Source → target dependency: the source must be completed before the
    target may be completed.
    """

    __tablename__ = "edges"

    id = db.Column(db.Integer, primary_key=True)
    source_node_id = db.Column(
        db.Integer, db.ForeignKey("nodes.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    target_node_id = db.Column(
        db.Integer, db.ForeignKey("nodes.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("source_node_id", "target_node_id", name="uq_edge_pair"),
        db.CheckConstraint("source_node_id != target_node_id", name="ck_edge_no_self"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "source_node_id": self.source_node_id,
            "target_node_id": self.target_node_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Edge {self.source_node_id} → {self.target_node_id}>"
