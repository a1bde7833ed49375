"""
Application-wide exception hierarchy.

Services raise these types; the app registers one handler per type
(``coverage_tracker.utils.errors.register_error_handlers``) so every
endpoint maps them to the same HTTP status and error code.

Repository failures are NOT wrapped: any ``sqlalchemy.exc.SQLAlchemyError``
propagates unmodified out of the service layer and is treated as fatal for
the current request.

Usage:
    from coverage_tracker.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Story", resource_id=story_id)
    raise ValidationError("Score must be between 0 and 100")
"""


class NotFoundError(Exception):
    """Raised when a referenced story or user does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Story", "User").
        resource_id: The id that was looked up.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.public_message = f"{resource} not found"
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ForbiddenError(Exception):
    """Raised when the access policy denies an operation.

    The message depends on the attempted action only. It never says whether
    the denial came from the caller's role or from their relationship to the
    story, so a reviewer cannot probe which stories exist for someone else.
    """

    def __init__(self, message: str = "Not authorized") -> None:
        super().__init__(message)


class ValidationError(Exception):
    """Raised when input fails validation in the service layer.

    Covers out-of-range or non-numeric scores, missing required fields and
    malformed identifiers or filter values. Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)
