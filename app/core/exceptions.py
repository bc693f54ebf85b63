"""
Portal-wide exception hierarchy.

Services raise these types; the app factory registers one JSON handler per
type so every blueprint gets the same HTTP status and error code.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id="p1")
    raise ValidationError("Phase IDEA must be completed first", details={"blocking": ["IDEA"]})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Also used when a client asks for a project they do not own, so the
    response never confirms the project exists.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Template").
        resource_id: The key that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed input, caught in blueprint) — this
    exception signals that the data was well-formed but violated a business
    rule (out-of-order phase, approval gate, unknown service type).

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique value.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class TransitionError(ConflictError):
    """Raised when a phase is not in the status an operation requires.

    Maps to HTTP 409 like any other state conflict.
    """

    def __init__(self, phase_key: str, action: str, current: str, reason: str | None = None) -> None:
        msg = f"Cannot '{action}' phase {phase_key} (status={current})"
        if reason:
            msg += f": {reason}"
        Exception.__init__(self, msg)
        self.resource = "ProjectPhase"
        self.field = "status"
        self.value = current
        self.phase_key = phase_key
        self.action = action
        self.current_status = current
        self.reason = reason


class ProjectArchivedError(ConflictError):
    """Raised when a write targets an archived (read-only) project. HTTP 409."""

    def __init__(self, project_id: str) -> None:
        Exception.__init__(self, f"Project {project_id} is archived")
        self.resource = "Project"
        self.field = "status"
        self.value = "archived"
        self.project_id = project_id


class AuthError(Exception):
    """Missing, expired or invalid credentials. Maps to HTTP 401."""


class PermissionDenied(Exception):
    """Authenticated caller lacks the role or ownership. Maps to HTTP 403."""


class SignatureVerificationError(Exception):
    """Payment webhook signature header missing, malformed or wrong. Maps to HTTP 400."""


class ConfigurationError(Exception):
    """A required setting (e.g. webhook secret) is not configured. Maps to HTTP 503."""
