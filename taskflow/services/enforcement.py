"""
Enforcement Sweep — marks missed deadlines and applies their consequences.

One sweep:
    1. A single ``UPDATE nodes SET status='overdue' WHERE status='pending'
       AND due_date < :now RETURNING id, assignee_id`` claims every newly
       overdue node.  The status predicate is the check-and-set, so two
       overlapping sweeps can never both claim the same node and a node
       is penalised at most once in its lifetime.
    2. For each claimed node: one unresolved "Missed deadline" fine for
       the assignee plus a score decrement, committed together.  A failure
       rolls back that node's consequences only; the node stays overdue
       and the sweep moves on.

Nodes that are in_progress, completed or already overdue are never
touched.  Nodes without an assignee are marked overdue but not fined.
"""

import logging

from flask import current_app
from sqlalchemy import update

from taskflow.models import db
from taskflow.models.ledger import OVERDUE_FINE_REASON
from taskflow.models.workflow import Node
from taskflow.services.ledger_service import add_fine, adjust_score
from taskflow.utils.helpers import parse_datetime, utcnow

logger = logging.getLogger(__name__)


def claim_overdue(now) -> list[tuple[int, int | None]]:
    """Atomically flip pending → overdue for nodes past due.

    Returns ``[(node_id, assignee_id), ...]`` for the rows this call changed.
    """
    rows = db.session.execute(
        update(Node)
        .where(Node.status == "pending", Node.due_date < now)
        .values(status="overdue", updated_at=now)
        .returning(Node.id, Node.assignee_id)
        .execution_options(synchronize_session=False)
    ).all()
    db.session.commit()
    return [(r[0], r[1]) for r in rows]


def apply_consequences(node_id: int, assignee_id: int, *, reason: str, penalty: float) -> None:
    """Fine the assignee and decrement their score as one unit. Caller handles errors."""
    add_fine(assignee_id, node_id, reason, commit=False)
    adjust_score(assignee_id, -penalty, commit=False)
    db.session.commit()


def run_sweep(now=None) -> dict:
    """
    Run one enforcement pass.

    Args:
        now: Reference time; defaults to the current UTC time.

    Returns:
        Dict with ``checked_at``, ``overdue`` (nodes flipped), ``fined``
        (consequences committed), ``failed`` (consequences rolled back)
        and ``node_ids``.
    """
    now = parse_datetime(now) if now is not None else utcnow()
    reason = current_app.config.get("OVERDUE_FINE_REASON", OVERDUE_FINE_REASON)
    penalty = float(current_app.config.get("ENFORCEMENT_SCORE_PENALTY", 5))

    claimed = claim_overdue(now)

    fined = 0
    failed = []
    for node_id, assignee_id in claimed:
        if assignee_id is None:
            logger.warning("Overdue node has no assignee, no fine issued",
                           extra={"node_id": node_id})
            continue
        try:
            apply_consequences(node_id, assignee_id, reason=reason, penalty=penalty)
        except Exception:
            db.session.rollback()
            failed.append(node_id)
            logger.exception("Overdue consequences failed node=%s assignee=%s",
                             node_id, assignee_id, extra={"node_id": node_id})
            continue
        fined += 1
        logger.info("Node overdue id=%s assignee=%s fined, score -%s",
                    node_id, assignee_id, penalty, extra={"node_id": node_id})

    if claimed:
        logger.info("Enforcement sweep: %d overdue, %d fined, %d failed",
                    len(claimed), fined, len(failed))
    else:
        logger.debug("Enforcement sweep: nothing overdue")

    return {
        "checked_at": now.isoformat(),
        "overdue": len(claimed),
        "fined": fined,
        "failed": failed,
        "node_ids": [nid for nid, _ in claimed],
    }
