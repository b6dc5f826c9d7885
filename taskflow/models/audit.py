"""
Taskflow
Task edit history model.

Models:
    - TaskLog: immutable, append-only record of an admin edit to a node.

One row per edit.  ``change_description`` is the human-readable line shown
in the Edit History view; ``diff_json`` carries the field-level
``{field: {old, new}}`` snapshot.
"""

import json
from datetime import UTC, datetime

from taskflow.models import db


class TaskLog(db.Model):
    __tablename__ = "task_logs"
    __table_args__ = (
        db.Index("idx_task_logs_node_ts", "node_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    node_id = db.Column(
        db.Integer, db.ForeignKey("nodes.id", ondelete="CASCADE"),
        nullable=False,
    )
    editor_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    change_description = db.Column(db.Text, nullable=False)
    diff_json = db.Column(db.Text, default="{}")
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    editor = db.relationship("User", foreign_keys=[editor_id])

    @property
    def diff(self) -> dict:
        try:
            return json.loads(self.diff_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "node_id": self.node_id,
            "editor_id": self.editor_id,
            "editor_name": self.editor.username if self.editor else None,
            "change_description": self.change_description,
            "diff": self.diff,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<TaskLog {self.id}: node={self.node_id} editor={self.editor_id}>"


def write_task_log(
    *,
    node_id: int,
    editor_id: int | None,
    change_description: str,
    diff: dict | None = None,
) -> TaskLog:
    """
    Append a single task log row.  Uses ``flush`` so callers keep
    transaction control.
    """
    log = TaskLog(
        node_id=node_id,
        editor_id=editor_id,
        change_description=change_description,
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
