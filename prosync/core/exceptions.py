"""
Platform-wide exception hierarchy.

Repositories, backends and the sync coordinator raise only these types.
Blueprints register handlers against them once (see
``prosync.utils.errors.register_error_handlers``) and get consistent HTTP
status codes everywhere.

Usage:
    from prosync.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id="a1b2")
    raise ValidationError("title is required", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested record does not exist in the collection.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Task").
        resource_id: The identifier that was looked up.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class CorruptSnapshotError(ValidationError):
    """Raised when an imported or fetched snapshot does not have the expected shape.

    Nothing is written when this is raised: snapshots are validated and
    hydrated completely before any collection is replaced.
    """

    def __init__(self, reason: str, details: dict | None = None) -> None:
        self.reason = reason
        super().__init__(f"Corrupt backup: {reason}", details=details)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value.

    Maps to HTTP 409.

    Args:
        resource: Entity name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class PersistenceError(Exception):
    """Raised when a storage or transport operation fails.

    The underlying cause is kept verbatim in ``cause`` so the caller can show
    something actionable (a missing column, a refused connection, ...).

    Args:
        operation: What was being attempted ("save project", "fetch remote snapshot").
        cause: Text of the underlying failure.
        hint: Optional remedial action for the operator.
    """

    def __init__(self, operation: str, cause: str, hint: str | None = None) -> None:
        self.operation = operation
        self.cause = cause
        self.hint = hint
        msg = f"{operation} failed: {cause}"
        if hint:
            msg += f" ({hint})"
        super().__init__(msg)
