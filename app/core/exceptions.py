"""
Service-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
(see ``app.utils.errors.register_error_handlers``) and get consistent HTTP
status codes everywhere.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="RepairItem", resource_id=42)
    raise ValidationError("name is required", details={"name": "required"})
    raise ConflictError("Cannot delete an authorised repair item")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Used for BOTH genuinely missing records AND cross-organisation access
    attempts. A 403 would confirm the resource exists; a 404 does not.

    Args:
        resource: Human-readable model/entity name (e.g. "RepairItem").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
        organization_id: Optional — the scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        organization_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.organization_id = organization_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if organization_id is not None:
            msg += f" (org={organization_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails validation in the service layer.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
        code: ``ERR_VALIDATION_INVALID`` (default) or ``ERR_VALIDATION_REQUIRED``.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        code: str = "ERR_VALIDATION_INVALID",
    ) -> None:
        self.details = details or {}
        self.code = code
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation conflicts with the current state of a resource.

    Covers invalid outcome transitions, non-top-level targets, duplicate
    check-result links and findings already owned by another item.

    Maps to HTTP 409.

    Args:
        message: Human-readable explanation.
        code: ``ERR_CONFLICT_STATE`` (default) or ``ERR_CONFLICT_DUPLICATE``.
        details: Optional structured payload (current state, offending ids).
    """

    def __init__(
        self,
        message: str,
        code: str = "ERR_CONFLICT_STATE",
        details: dict | None = None,
    ) -> None:
        self.code = code
        self.details = details or {}
        super().__init__(message)
