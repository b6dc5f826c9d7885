"""
Scoring / Fines Ledger — Service Layer.

Business logic for:
    - Appending fine rows (sweep "Missed deadline" fines, admin penalties)
    - Resolving fines (idempotent; never automatic)
    - Atomic score adjustment: one ``UPDATE users SET score = score + :delta``
      statement, so concurrent adjustments never lose an update
    - Per-user summary for the admin surface
"""

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import func, select, update

from taskflow.core.exceptions import NotFoundError, ValidationError
from taskflow.models import db
from taskflow.models.auth import User
from taskflow.models.ledger import DEFAULT_FINE_AMOUNT, Fine
from taskflow.models.workflow import Node

logger = logging.getLogger(__name__)


def _default_amount() -> float:
    return float(current_app.config.get("DEFAULT_FINE_AMOUNT", DEFAULT_FINE_AMOUNT))


def add_fine(
    user_id: int,
    node_id: int | None,
    reason: str,
    amount: float | None = None,
    *,
    commit: bool = True,
) -> Fine:
    """Insert an unresolved fine.

    Args:
        user_id: The fined user.
        node_id: The task the fine relates to, or None for a free-standing penalty.
        reason: Free-text reason shown to the user.
        amount: Defaults to ``DEFAULT_FINE_AMOUNT``.
        commit: Pass False to keep the insert in the caller's transaction
            (the sweep pairs it with the score decrement).
    """
    fine = Fine(
        user_id=user_id,
        node_id=node_id,
        reason=reason or "",
        amount=_default_amount() if amount is None else float(amount),
        resolved=False,
    )
    db.session.add(fine)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    logger.info("Fine added id=%s user=%s node=%s amount=%s",
                fine.id, user_id, node_id, fine.amount)
    return fine


def resolve_fine(fine_id: int) -> Fine:
    """Mark a fine resolved. Resolving an already-resolved fine is a no-op."""
    fine = db.session.get(Fine, fine_id)
    if not fine:
        raise NotFoundError("Fine", fine_id)
    if fine.resolved:
        return fine
    fine.resolved = True
    fine.resolved_at = datetime.now(timezone.utc)
    db.session.commit()
    logger.info("Fine resolved id=%s", fine_id)
    return fine


def adjust_score(user_id: int, delta: float, *, commit: bool = True) -> float:
    """
    Add *delta* (may be negative) to the user's running score.

    Single atomic UPDATE; no floor or ceiling, so scores can go negative.
    Returns the new score.
    """
    result = db.session.execute(
        update(User)
        .where(User.id == user_id)
        .values(score=User.score + delta)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError("User", user_id)
    if commit:
        db.session.commit()
    else:
        db.session.flush()

    # Refresh any identity-map copy so callers see the committed value
    user = db.session.get(User, user_id)
    db.session.refresh(user)
    logger.debug("Score adjusted user=%s delta=%s new=%s", user_id, delta, user.score)
    return user.score


def issue_penalty(
    user_id: int,
    node_id: int | None,
    reason: str,
    amount: float | None = None,
) -> Fine:
    """Admin manual fine. Validates both references; does not touch the score."""
    if not (reason or "").strip():
        raise ValidationError("reason is required", details={"reason": "required"})
    if not db.session.get(User, user_id):
        raise NotFoundError("User", user_id)
    if node_id is not None and not db.session.get(Node, node_id):
        raise NotFoundError("Node", node_id)
    if amount is not None and float(amount) < 0:
        raise ValidationError("amount must not be negative", details={"amount": amount})
    return add_fine(user_id, node_id, reason.strip(), amount)


def list_fines(user_id: int | None = None, resolved: bool | None = None) -> list[Fine]:
    q = Fine.query
    if user_id is not None:
        q = q.filter(Fine.user_id == user_id)
    if resolved is not None:
        q = q.filter(Fine.resolved.is_(resolved))
    return q.order_by(Fine.created_at.desc(), Fine.id.desc()).all()


def user_summary(user_id: int) -> dict:
    """Score plus fine totals for one user."""
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)

    open_count, open_amount = db.session.execute(
        select(func.count(Fine.id), func.coalesce(func.sum(Fine.amount), 0.0))
        .where(Fine.user_id == user_id, Fine.resolved.is_(False))
    ).one()
    total_count = db.session.execute(
        select(func.count(Fine.id)).where(Fine.user_id == user_id)
    ).scalar() or 0

    return {
        "user": user.to_dict(),
        "score": user.score,
        "open_fines": open_count,
        "open_fine_amount": float(open_amount),
        "total_fines": total_count,
        "recent_fines": [f.to_dict() for f in list_fines(user_id=user_id)[:10]],
    }
