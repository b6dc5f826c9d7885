"""
User Service — registration, login and role-scoped user lookups.
"""

import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from taskflow.core.exceptions import ConflictError, ValidationError
from taskflow.models import db
from taskflow.models.auth import DEFAULT_SCORE, Role, User
from taskflow.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)


class UserServiceError(Exception):
    """Authentication failure carrying the HTTP status to return."""
    def __init__(self, message, status_code=400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def register_user(username: str, password: str, role=Role.DESIGNER) -> User:
    """Create a user with a hashed password.

    Raises:
        ValidationError: blank username/password or unknown role.
        ConflictError: username already taken.
    """
    username = (username or "").strip()
    if not username or not password:
        raise ValidationError("username and password are required")
    try:
        role = Role.parse(role)
    except (TypeError, ValueError) as exc:
        raise ValidationError(str(exc), details={"role": role}) from exc

    if User.query.filter_by(username=username).first():
        raise ConflictError("User", "username", username)

    user = User(
        username=username,
        password_hash=hash_password(password),
        role=int(role),
        score=current_app.config.get("DEFAULT_USER_SCORE", DEFAULT_SCORE),
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent registration
        db.session.rollback()
        raise ConflictError("User", "username", username) from exc
    logger.info("User registered id=%s username=%s role=%s", user.id, username, role.name)
    return user


def authenticate_user(username: str, password: str) -> User:
    """Authenticate with username + password. Returns User on success."""
    user = User.query.filter_by(username=(username or "").strip()).first()
    if not user:
        raise UserServiceError("User not found", 404)
    if not verify_password(password or "", user.password_hash):
        raise UserServiceError("Invalid password", 401)
    return user


def assignable_users(requester: User) -> list[User]:
    """Users the requester may assign tasks to: role ≤ requester, never Admin."""
    return (
        User.query
        .filter(User.role <= requester.role, User.role < int(Role.ADMIN))
        .order_by(User.username)
        .all()
    )
