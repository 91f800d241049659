"""
Custom exception hierarchy for structured error handling.

WHY: Custom exceptions provide:
1. Consistent error handling across the API
2. HTTP status code mapping for FastAPI
3. Structured error responses with contextual data
4. No sensitive data leaks in error messages
5. Easier debugging with detailed context

IMPORTANT: NEVER use base Exception class. Always use custom exceptions.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    WHY: Centralizing exception handling in a base class ensures consistent
    error responses, HTTP status code mapping, and prevents sensitive data
    leaks in error messages.

    All custom exceptions should inherit from this class.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Additional context for debugging (filtered in to_dict)
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for JSON response.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        sensitive_fields = {"password", "token", "secret", "key", "api_key"}
        filtered_context = {
            k: v for k, v in self.context.items() if k.lower() not in sensitive_fields
        }

        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": filtered_context if filtered_context else None,
        }


# ============================================================================
# Authentication & Authorization Exceptions
# ============================================================================


class AuthenticationError(AppException):
    """
    Raised when authentication fails.

    WHY: A single exception for bad credentials and bad tokens avoids
    disclosing which step of authentication failed.

    HTTP Status: 401 Unauthorized
    """

    status_code = 401
    default_message = "Authentication failed"


class AuthorizationError(AppException):
    """
    Raised when user lacks permissions for an action.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "You do not have permission to perform this action"


class TokenExpiredError(AuthenticationError):
    """Raised when a JWT has expired (client should log in again)."""

    default_message = "Token has expired"


class TokenInvalidError(AuthenticationError):
    """Raised when a JWT is malformed or has an invalid signature."""

    default_message = "Token is invalid"


class InsufficientPermissionsError(AuthorizationError):
    """
    Raised when user's role doesn't allow an action.

    WHY: Role checks guard every mutating alert/ticket endpoint, and the
    required roles are echoed back in the error context.

    HTTP Status: 403 Forbidden
    """

    default_message = "Insufficient permissions"


# ============================================================================
# Validation & Input Exceptions
# ============================================================================


class ValidationError(AppException):
    """
    Raised when input validation fails.

    WHY: Validation happens before any mutation, so a 400 guarantees the
    caller that no partial state was written.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Validation failed"


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceNotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist.

    HTTP Status: 404 Not Found
    """

    status_code = 404
    default_message = "Resource not found"


class ResourceAlreadyExistsError(AppException):
    """
    Raised when attempting to create a resource that already exists.

    HTTP Status: 409 Conflict
    """

    status_code = 409
    default_message = "Resource already exists"


class AlertNotFoundError(ResourceNotFoundError):
    """Raised when an alert doesn't exist."""

    default_message = "Alert not found"


class TicketNotFoundError(ResourceNotFoundError):
    """Raised when a ticket doesn't exist."""

    default_message = "Ticket not found"


class NotificationNotFoundError(ResourceNotFoundError):
    """Raised when a notification doesn't exist or belongs to another user."""

    default_message = "Notification not found"


class UserNotFoundError(ResourceNotFoundError):
    """Raised when a user doesn't exist."""

    default_message = "User not found"


class TicketConflictError(ResourceAlreadyExistsError):
    """
    Raised when the store rejects a second ticket for the same alert.

    WHY: The unique constraint on tickets.alert_id is the last line of
    defence for idempotent escalation. The escalation engine catches this
    and returns the ticket that won the race, so it only surfaces to
    callers that insert tickets directly.
    """

    default_message = "A ticket already exists for this alert"


# ============================================================================
# Business Logic Exceptions
# ============================================================================


class BusinessRuleViolation(AppException):
    """
    Raised when a business rule is violated.

    HTTP Status: 422 Unprocessable Entity
    """

    status_code = 422
    default_message = "Business rule violation"


class InvalidStateTransitionError(BusinessRuleViolation):
    """
    Raised when an invalid state transition is attempted.

    WHY: Alerts only move forward (OPEN -> ACKNOWLEDGED -> RESOLVED ->
    CLOSED) and tickets follow their own transition table. Attempting
    anything else fails with the current and requested status in context.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Invalid state transition"


# ============================================================================
# Database Exceptions
# ============================================================================


class DatabaseError(AppException):
    """
    Raised when database operations fail.

    WHY: Database errors are converted to application exceptions with
    safe error messages (no SQL exposed).

    HTTP Status: 500 Internal Server Error
    """

    status_code = 500
    default_message = "Database error"
