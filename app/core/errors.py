"""Domain errors surfaced to API callers as readable messages."""

from typing import Any, Dict, Optional


class SafhaError(Exception):
    """Base class for request-scoped domain errors."""

    status_code = 400
    default_message = "Request could not be completed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "detail": self.message}


class AlreadyRegisteredError(SafhaError):
    status_code = 409
    default_message = "You are already registered for this opportunity"


class NotRegisteredError(SafhaError):
    status_code = 404
    default_message = "You are not registered for this opportunity"


class CapacityExceededError(SafhaError):
    status_code = 409
    default_message = "No spots available for this opportunity"


class InvalidHoursError(SafhaError):
    status_code = 422
    default_message = "Hours logged cannot be negative"


class StorageConflictError(SafhaError):
    """Another writer changed the opportunity while this request held it."""

    status_code = 409
    default_message = "This opportunity was updated by someone else, please try again"


class InvalidTransitionError(SafhaError):
    status_code = 409
    default_message = "This registration cannot change to the requested status"


class OpportunityUnavailableError(SafhaError):
    status_code = 409
    default_message = "This opportunity is not open for registration"


class NotFoundError(SafhaError):
    status_code = 404
    default_message = "Not found"


class PermissionDeniedError(SafhaError):
    status_code = 403
    default_message = "You do not have permission to do that"


class DuplicateOrganizationError(SafhaError):
    status_code = 409
    default_message = "An organization with this name already exists"


class InvalidInputError(SafhaError):
    status_code = 422
    default_message = "Some of the submitted values are invalid"


class ProfileExistsError(SafhaError):
    status_code = 409
    default_message = "A profile already exists for this account"
