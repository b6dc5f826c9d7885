"""
Auth Models — users and the ordered role hierarchy.

Roles are an ordered integer enum so authorization checks are plain
comparisons:  DESIGNER < SUPERVISOR < MANAGER < ADMIN.

The legacy binary scheme (0 = user, 1 = admin) is accepted on input and
mapped with ``Role.from_legacy``.
"""

from datetime import datetime, timezone
from enum import IntEnum

from taskflow.models import db


class Role(IntEnum):
    DESIGNER = 0
    SUPERVISOR = 1
    MANAGER = 2
    ADMIN = 3

    @classmethod
    def parse(cls, value) -> "Role":
        """Accept an int, a numeric string or a role name (case-insensitive)."""
        if isinstance(value, Role):
            return value
        if isinstance(value, str) and not value.strip().lstrip("-").isdigit():
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown role: {value!r}") from None
        return cls(int(value))

    @classmethod
    def from_legacy(cls, is_admin) -> "Role":
        """Map the old user/admin flag onto the ordered hierarchy."""
        return cls.ADMIN if int(is_admin) == 1 else cls.DESIGNER


DEFAULT_SCORE = 100.0


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(150), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.Integer, nullable=False, default=int(Role.DESIGNER))
    score = db.Column(
        db.Float, nullable=False, default=DEFAULT_SCORE,
        comment="Running reputation score; may go negative",
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    fines = db.relationship(
        "Fine", back_populates="user", lazy="dynamic",
        cascade="all, delete-orphan", foreign_keys="Fine.user_id",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "role_name": Role(self.role).name.lower() if self.role is not None else None,
            "score": self.score,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.username} [{Role(self.role).name}]>"
