"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the HTTP and WebSocket surfaces
- Machine-readable error codes for client handling
- A single mapping from error kind to HTTP status

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed or missing input (400)
    ├── AuthError - Missing/invalid credential (401)
    ├── ForbiddenError - Authenticated but not authorized (403)
    ├── NotFoundError - Referenced entity absent (404)
    └── StoreError - Persistence failure or timeout (503, retryable)

Usage:
    from core.exceptions import ValidationError, NotFoundError

    # Raise with message only
    raise ValidationError("Group conversations require a name")

    # Raise with error code for client handling
    raise ForbiddenError("Admin access required", error_code="NOT_ADMIN")

    # Raise with additional details
    raise ValidationError(
        "Invalid metadata",
        error_code="INVALID_METADATA",
        details={"file_url": ["This field is required."]},
    )

Note:
    Services raise these exceptions. DRF views render them through
    api_exception_handler (configured as REST_FRAMEWORK["EXCEPTION_HANDLER"]),
    WebSocket consumers render them as error frames.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rest_framework import exceptions as drf_exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Provides a consistent interface for error handling across the application.
    All custom exceptions should inherit from this class.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
        status_code: HTTP status used when rendered by the API layer
        retryable: Whether the caller may safely retry the operation

    Example:
        try:
            conversation = ConversationService.get_conversation(user, conversation_id)
        except NotFoundError as e:
            logger.warning(f"Conversation not found: {e.error_code}")
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = 400
    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to the failure response envelope.

        Returns:
            Dict with success, message, error_code, and optional details

        Example:
            {
                "success": False,
                "message": "Conversation not found",
                "error_code": "CONVERSATION_NOT_FOUND",
            }
        """
        result: dict[str, Any] = {
            "success": False,
            "message": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input is malformed or a required value is missing.

    Use for:
    - Wrong participant count for a direct conversation
    - Missing group name
    - Missing content-type metadata
    - Business rule violations (removing the last admin)

    Never retried automatically.
    """

    default_error_code: str = "VALIDATION_ERROR"
    status_code: int = 400


class AuthError(BaseApplicationError):
    """
    Raised when a credential is missing, malformed, expired, or revoked.

    Surfaced as request rejection (401) or WebSocket close code 4001.
    """

    default_error_code: str = "AUTHENTICATION_FAILED"
    status_code: int = 401


class ForbiddenError(BaseApplicationError):
    """
    Raised when an authenticated user lacks permission for an operation.

    Use for:
    - Acting on a conversation the user does not participate in
    - Editing or deleting someone else's message
    - Admin-only conversation changes by a member

    Note:
        Messages should not reveal more about the target entity than the
        caller could already know.
    """

    default_error_code: str = "FORBIDDEN"
    status_code: int = 403


class NotFoundError(BaseApplicationError):
    """
    Raised when a referenced entity does not exist.

    Example:
        message = Message.all_objects.filter(id=message_id).first()
        if not message:
            raise NotFoundError(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
                details={"message_id": message_id},
            )
    """

    default_error_code: str = "NOT_FOUND"
    status_code: int = 404


class StoreError(BaseApplicationError):
    """
    Raised when the persistence layer fails (connection loss, timeout).

    Rendered as a generic server error; the original exception is logged,
    never exposed. Callers may retry, except for message sends which are
    not idempotent.
    """

    default_error_code: str = "STORE_UNAVAILABLE"
    status_code: int = 503
    retryable: bool = True


# =============================================================================
# DRF integration
# =============================================================================


def api_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    Render application and DRF exceptions as the standard failure envelope.

    Configured via REST_FRAMEWORK["EXCEPTION_HANDLER"]. Application errors
    map to their status_code; DRF errors (authentication, throttling,
    serializer validation) keep DRF's status but adopt the envelope.

    Args:
        exc: The raised exception
        context: DRF handler context (view, request, ...)

    Returns:
        Response, or None to let Django handle unexpected exceptions
    """
    if isinstance(exc, BaseApplicationError):
        if exc.status_code >= 500:
            logger.error(f"Server-side application error: {exc!r}")
        return Response(exc.to_dict(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, drf_exceptions.ValidationError):
        body = {
            "success": False,
            "message": "Invalid request data",
            "error_code": "VALIDATION_ERROR",
            "details": response.data,
        }
    else:
        detail = response.data.get("detail") if isinstance(response.data, dict) else None
        code = exc.get_codes() if isinstance(exc, drf_exceptions.APIException) else None
        body = {
            "success": False,
            "message": str(detail or exc),
            "error_code": str(code).upper() if isinstance(code, str) else "ERROR",
        }
    response.data = body
    return response
