"""
Platform-wide exception hierarchy.

Services and the phase workflow raise these types; blueprints register
handlers against them once and get consistent HTTP status codes
everywhere.

Usage:
    from residentone.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Stage", resource_id=42)
    raise ValidationError("Unknown phase 'SKETCH'", details={"phase": "SKETCH"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Stage", "Room").
        resource_id: The PK that was looked up. Included in logs and message.
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
    """Raised when input fails business-rule validation.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation conflicts with the current resource state.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The field whose current value blocks the operation.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class AmbiguousPhaseError(ValidationError):
    """Raised when two stages of one room resolve to the same phase kind.

    Happens when a room carries both the legacy ``RENDERING`` stage and the
    current ``THREE_D`` stage. Neither is treated as authoritative; the
    caller must resolve the data.
    """

    def __init__(self, phase: str, stage_ids: list) -> None:
        self.phase = phase
        self.stage_ids = list(stage_ids)
        super().__init__(
            f"Multiple stages resolve to phase {phase}: {self.stage_ids}",
            details={"phase": phase, "stage_ids": self.stage_ids},
        )
