"""
Domain exception hierarchy.

Services raise these; the application factory registers one handler per
type so every blueprint gets the same HTTP status and error code.

Usage:
    from taskflow.core.exceptions import NotFoundError, BlockedError

    raise NotFoundError(resource="Node", resource_id=42)
    raise BlockedError(node_id=7, blocking_ids=[3, 5])
"""


class NotFoundError(Exception):
    """Raised when a requested entity does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Node", "Fine").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ForbiddenError(Exception):
    """Raised when the caller's role or ownership does not permit the action.

    Maps to HTTP 403.
    """

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(message)


class BlockedError(Exception):
    """Raised when a node cannot be completed because a direct prerequisite
    is not completed.

    Maps to HTTP 409.

    Args:
        node_id: The node whose completion was attempted.
        blocking_ids: Ids of the incomplete direct predecessors.
    """

    def __init__(self, node_id: int, blocking_ids: list[int] | None = None) -> None:
        self.node_id = node_id
        self.blocking_ids = list(blocking_ids or [])
        super().__init__("Task is blocked by an incomplete dependency.")


class ValidationError(Exception):
    """Raised when well-formed input violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class SelfDependencyError(ValidationError):
    """Raised when an edge would make a node depend on itself."""

    def __init__(self, node_id: int) -> None:
        self.node_id = node_id
        super().__init__(
            "A task cannot depend on itself.",
            details={"source_node_id": node_id, "target_node_id": node_id},
        )


class DependencyCycleError(ValidationError):
    """Raised when an edge would close a cycle in the dependency graph."""

    def __init__(self, source_id: int, target_id: int) -> None:
        self.source_id = source_id
        self.target_id = target_id
        super().__init__(
            "Adding this dependency would create a cycle.",
            details={"source_node_id": source_id, "target_node_id": target_id},
        )


class ConflictError(Exception):
    """Raised when an operation would violate a uniqueness rule.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)
