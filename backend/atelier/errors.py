"""Service error taxonomy rendered into the response envelope."""

from __future__ import annotations

# purpose: give services one exception family whose status codes map onto the envelope
# status: active


class AtelierError(RuntimeError):
    """Base error for service-layer failures."""

    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None, *, details: dict | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details or {}


class ValidationError(AtelierError):
    """Raised for malformed, missing or out-of-range input."""

    status_code = 400
    default_message = "Invalid input"


class AuthenticationError(AtelierError):
    """Raised when no authenticated principal is available."""

    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(AtelierError):
    """Raised when the principal lacks rights (or the entity is hidden)."""

    status_code = 403
    default_message = "Access denied"


class NotFoundError(AtelierError):
    """Raised when an entity is absent after authorization passed."""

    status_code = 404
    default_message = "Not found"


class ConflictError(AtelierError):
    """Raised when a business rule blocks the operation."""

    status_code = 400
    default_message = "Operation conflicts with current state"


class StorageError(AtelierError):
    """Raised when an insert or update fails at the database layer."""

    status_code = 500
    default_message = "Storage failure"
