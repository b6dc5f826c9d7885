"""
Graph Store — persistence of workflows, nodes and dependency edges.

Business logic for:
    - Node / edge lookups used by the resolver and the sweep
    - Edge creation: self-dependency, duplicate and cycle guards
    - Cascading deletes: node → fines, task logs, edges (both directions)
      and workflow → every node it owns, each as one transaction
    - Pending-overdue scan on the (status, due_date) index
    - Workflow CRUD and graph views (per-workflow stats, master flow)
"""

import logging
from datetime import datetime

from flask import current_app
from sqlalchemy import delete, or_, select

from taskflow.core.exceptions import (
    ConflictError,
    DependencyCycleError,
    NotFoundError,
    SelfDependencyError,
    ValidationError,
)
from taskflow.models import db
from taskflow.models.audit import TaskLog
from taskflow.models.ledger import Fine
from taskflow.models.workflow import Edge, Node, Workflow
from taskflow.services.dependency_resolver import would_create_cycle

logger = logging.getLogger(__name__)


# ── Nodes & edges ────────────────────────────────────────────────────────────


def get_node(node_id: int) -> Node:
    """Return the node or raise NotFoundError."""
    node = db.session.get(Node, node_id)
    if not node:
        raise NotFoundError("Node", node_id)
    return node


def get_incoming_edges(node_id: int) -> list[Edge]:
    """Edges whose target is *node_id* (its prerequisites)."""
    return (
        Edge.query
        .filter(Edge.target_node_id == node_id)
        .order_by(Edge.id)
        .all()
    )


def get_outgoing_edges(node_id: int) -> list[Edge]:
    """Edges whose source is *node_id* (nodes that depend on it)."""
    return (
        Edge.query
        .filter(Edge.source_node_id == node_id)
        .order_by(Edge.id)
        .all()
    )


def create_edge(source_id: int, target_id: int) -> Edge:
    """
    Add a source → target dependency.

    Raises:
        SelfDependencyError: source_id == target_id (checked first, for any id).
        NotFoundError: either endpoint does not exist.
        ConflictError: the same edge already exists.
        DependencyCycleError: the edge would close a cycle and
            REJECT_DEPENDENCY_CYCLES is enabled.
    """
    if source_id == target_id:
        raise SelfDependencyError(source_id)

    get_node(source_id)
    get_node(target_id)

    existing = Edge.query.filter_by(
        source_node_id=source_id, target_node_id=target_id,
    ).first()
    if existing:
        raise ConflictError("Edge", "source_node_id→target_node_id", f"{source_id}→{target_id}")

    if current_app.config.get("REJECT_DEPENDENCY_CYCLES", True):
        if would_create_cycle(source_id, target_id):
            raise DependencyCycleError(source_id, target_id)

    edge = Edge(source_node_id=source_id, target_node_id=target_id)
    db.session.add(edge)
    db.session.commit()
    logger.info("Edge created id=%s %s → %s", edge.id, source_id, target_id)
    return edge


def delete_edge(edge_id: int) -> None:
    """Remove a dependency edge. May unblock its target."""
    edge = db.session.get(Edge, edge_id)
    if not edge:
        raise NotFoundError("Edge", edge_id)
    db.session.delete(edge)
    db.session.commit()
    logger.info("Edge deleted id=%s", edge_id)


def _delete_nodes(node_ids: list[int]) -> None:
    """Delete nodes and everything that references them. Caller commits."""
    if not node_ids:
        return
    db.session.execute(delete(Fine).where(Fine.node_id.in_(node_ids)))
    db.session.execute(delete(TaskLog).where(TaskLog.node_id.in_(node_ids)))
    db.session.execute(
        delete(Edge).where(
            or_(Edge.source_node_id.in_(node_ids), Edge.target_node_id.in_(node_ids))
        )
    )
    db.session.execute(delete(Node).where(Node.id.in_(node_ids)))


def delete_node(node_id: int) -> None:
    """
    Delete a node together with its fines, task logs and incident edges.

    All four deletes run in one transaction; a failure leaves nothing
    half-removed.
    """
    get_node(node_id)
    try:
        _delete_nodes([node_id])
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Node delete failed id=%s", node_id)
        raise
    logger.info("Node deleted id=%s", node_id)


def scan_pending(now: datetime) -> list[Node]:
    """Pending nodes whose due date has passed, oldest deadline first."""
    return (
        Node.query
        .filter(Node.status == "pending", Node.due_date < now)
        .order_by(Node.due_date, Node.id)
        .all()
    )


# ── Workflows ────────────────────────────────────────────────────────────────


def create_workflow(data: dict) -> Workflow:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    wf = Workflow(name=name, description=data.get("description", "") or "")
    db.session.add(wf)
    db.session.commit()
    logger.info("Workflow created id=%s name=%s", wf.id, wf.name)
    return wf


def list_workflows() -> list[Workflow]:
    return Workflow.query.order_by(Workflow.id).all()


def get_workflow(workflow_id: int) -> Workflow:
    wf = db.session.get(Workflow, workflow_id)
    if not wf:
        raise NotFoundError("Workflow", workflow_id)
    return wf


def delete_workflow(workflow_id: int) -> None:
    """Delete a workflow and cascade to its nodes, their edges, fines and logs."""
    get_workflow(workflow_id)
    node_ids = list(db.session.scalars(
        select(Node.id).where(Node.workflow_id == workflow_id)
    ))
    try:
        _delete_nodes(node_ids)
        db.session.execute(delete(Workflow).where(Workflow.id == workflow_id))
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Workflow delete failed id=%s", workflow_id)
        raise
    logger.info("Workflow deleted id=%s (nodes=%d)", workflow_id, len(node_ids))


def workflow_graph(workflow_id: int) -> dict:
    """Nodes, edges and headline stats for one workflow."""
    wf = get_workflow(workflow_id)
    nodes = Node.query.filter_by(workflow_id=workflow_id).order_by(Node.id).all()
    node_ids = [n.id for n in nodes]
    edges = []
    if node_ids:
        edges = (
            Edge.query
            .filter(or_(Edge.source_node_id.in_(node_ids), Edge.target_node_id.in_(node_ids)))
            .order_by(Edge.id)
            .all()
        )
    stats = {
        "total_tasks": len(nodes),
        "completed_tasks": sum(1 for n in nodes if n.status == "completed"),
        "overdue_tasks": sum(1 for n in nodes if n.status == "overdue"),
        "urgent_tasks": sum(1 for n in nodes if n.is_urgent),
    }
    return {
        "workflow": wf.to_dict(),
        "nodes": [n.to_dict(include_people=True) for n in nodes],
        "edges": [e.to_dict() for e in edges],
        "stats": stats,
    }


def master_flow() -> dict:
    """Every workflow-owned node (with its workflow name) and every edge."""
    rows = db.session.execute(
        select(Node, Workflow.name)
        .join(Workflow, Node.workflow_id == Workflow.id)
        .order_by(Node.id)
    ).all()
    nodes = [
        {"id": n.id, "title": n.title, "status": n.status, "workflow_name": wf_name}
        for n, wf_name in rows
    ]
    edges = [e.to_dict() for e in Edge.query.order_by(Edge.id).all()]
    return {"nodes": nodes, "edges": edges}
