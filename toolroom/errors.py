"""Domain error hierarchy.

Services raise these; the handlers registered in ``toolroom.main`` turn
them into ``{"message": ...}`` JSON responses with the matching status.
"""
from fastapi import status


class ToolroomError(Exception):
    """Base class for errors that are safe to show to the caller."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ToolroomError):
    """Malformed or missing input."""
    default_message = "Invalid request"


class Unauthorized(ToolroomError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(ToolroomError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(ToolroomError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class BusinessRuleError(ToolroomError):
    """A well-formed request that the current state does not allow."""
    default_message = "Operation not allowed"


class ConfirmationFailed(BusinessRuleError):
    """Recipient authentication for a loan did not succeed."""
    default_message = "User confirmation failed"


class InsufficientAvailability(BusinessRuleError):
    default_message = "Tool not available in requested quantity"
