"""
Taskflow
Scoring / fines ledger model.

Models:
    - Fine: append-only penalty record tying a user to (optionally) a node.

Fines are created by the enforcement sweep ("Missed deadline") or by an
admin manual penalty.  They are only ever resolved by explicit admin
action; nothing auto-resolves a fine.  The user's running score lives on
``User.score`` and is adjusted separately by the ledger service.
"""

from datetime import datetime, timezone

from taskflow.models import db

DEFAULT_FINE_AMOUNT = 10.0

OVERDUE_FINE_REASON = "Missed deadline"


class Fine(db.Model):
    __tablename__ = "fines"
    __table_args__ = (
        db.Index("ix_fines_user_resolved", "user_id", "resolved"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    node_id = db.Column(
        db.Integer, db.ForeignKey("nodes.id", ondelete="CASCADE"),
        nullable=True, index=True,
        comment="NULL for manual penalties not tied to a task",
    )
    amount = db.Column(db.Float, nullable=False, default=DEFAULT_FINE_AMOUNT)
    reason = db.Column(db.String(500), nullable=False, default="")
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    resolved = db.Column(db.Boolean, nullable=False, default=False)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", back_populates="fines", foreign_keys=[user_id])
    node = db.relationship("Node", foreign_keys=[node_id])

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "node_id": self.node_id,
            "amount": self.amount,
            "reason": self.reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "resolved": bool(self.resolved),
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }

    def __repr__(self):
        state = "resolved" if self.resolved else "open"
        return f"<Fine {self.id}: user={self.user_id} node={self.node_id} [{state}]>"
