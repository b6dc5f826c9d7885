"""
Dependency Resolver — answers "can this node be completed now?".

Blocking is a one-hop check: a node is blocked iff at least one of its
*direct* predecessors (sources of incoming edges) is not completed.
Ancestors further up the chain are never consulted, so a node becomes
completable the instant all of its direct predecessors are completed.
This keeps the gate at O(in-degree) per check.

Cycle detection (``would_create_cycle``) is the only full-graph walk and
runs at edge-creation time, not on completion.
"""

import logging

from sqlalchemy import func, select

from taskflow.models import db
from taskflow.models.workflow import Edge, Node

logger = logging.getLogger(__name__)


def _incomplete_predecessors_stmt(node_id: int):
    return (
        select(Node.id)
        .join(Edge, Edge.source_node_id == Node.id)
        .where(Edge.target_node_id == node_id, Node.status != "completed")
    )


def is_blocked(node_id: int) -> bool:
    """Return True if any direct predecessor of *node_id* is not completed.

    A node with no incoming edges is never blocked.
    """
    first = db.session.execute(_incomplete_predecessors_stmt(node_id).limit(1)).first()
    return first is not None


def blocking_node_ids(node_id: int) -> list[int]:
    """Ids of the direct predecessors that still block *node_id*."""
    rows = db.session.execute(
        _incomplete_predecessors_stmt(node_id).order_by(Node.id)
    ).all()
    return [r[0] for r in rows]


def blocked_by_counts(node_ids) -> dict[int, int]:
    """Batch version of the blocking check for task listings.

    Returns ``{node_id: number_of_incomplete_direct_predecessors}`` with an
    entry (possibly 0) for every id passed in.
    """
    node_ids = list(node_ids)
    counts = {nid: 0 for nid in node_ids}
    if not node_ids:
        return counts

    rows = db.session.execute(
        select(Edge.target_node_id, func.count(Edge.id))
        .join(Node, Edge.source_node_id == Node.id)
        .where(Edge.target_node_id.in_(node_ids), Node.status != "completed")
        .group_by(Edge.target_node_id)
    ).all()
    for target_id, count in rows:
        counts[target_id] = count
    return counts


def would_create_cycle(source_id: int, target_id: int) -> bool:
    """
    Check whether adding the edge source_id → target_id closes a cycle.

    Uses iterative DFS from source_id, walking backwards through existing
    predecessor chains.  Reaching target_id means target already precedes
    source, so the new edge would loop.
    """
    if source_id == target_id:
        return True

    visited = set()
    stack = [source_id]

    while stack:
        current = stack.pop()
        if current == target_id:
            return True
        if current in visited:
            continue
        visited.add(current)

        preds = db.session.execute(
            select(Edge.source_node_id).where(Edge.target_node_id == current)
        ).all()
        for (pred_id,) in preds:
            stack.append(pred_id)

    return False
