"""Application error type shared by the service, API and CLI layers."""

import traceback
from typing import Any


class AppError(Exception):
    """Operational error carrying an HTTP status code.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status code to report
        status: 'fail' for client errors (4xx), 'error' otherwise
        details: Optional structured details for the response body
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application error.

        Args:
            message: Error description
            status_code: HTTP status code (default: 500)
            details: Additional error details
        """
        self.message = message
        self.status_code = status_code
        self.status = "fail" if str(status_code).startswith("4") else "error"
        self.details = details
        super().__init__(message)

    def to_dict(self, include_stack: bool = False) -> dict[str, Any]:
        """Serialize the error for a JSON response body.

        Args:
            include_stack: Include the formatted traceback (development only)

        Returns:
            Dictionary with status, statusCode, message and optional
            details/stack
        """
        body: dict[str, Any] = {
            "status": self.status,
            "statusCode": self.status_code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        if include_stack:
            body["stack"] = "".join(
                traceback.format_exception(type(self), self, self.__traceback__)
            )
        return body

    @classmethod
    def bad_request(
        cls, message: str, details: dict[str, Any] | None = None
    ) -> "AppError":
        """Create a 400 Bad Request error."""
        return cls(message, 400, details)

    @classmethod
    def unauthorized(
        cls, message: str, details: dict[str, Any] | None = None
    ) -> "AppError":
        """Create a 401 Unauthorized error."""
        return cls(message, 401, details)

    @classmethod
    def forbidden(
        cls, message: str, details: dict[str, Any] | None = None
    ) -> "AppError":
        """Create a 403 Forbidden error."""
        return cls(message, 403, details)

    @classmethod
    def not_found(
        cls, message: str, details: dict[str, Any] | None = None
    ) -> "AppError":
        """Create a 404 Not Found error."""
        return cls(message, 404, details)

    @classmethod
    def conflict(
        cls, message: str, details: dict[str, Any] | None = None
    ) -> "AppError":
        """Create a 409 Conflict error."""
        return cls(message, 409, details)

    @classmethod
    def validation(
        cls, message: str, details: dict[str, Any] | None = None
    ) -> "AppError":
        """Create a 422 validation error."""
        return cls(message, 422, details)

    @classmethod
    def internal(
        cls, message: str, details: dict[str, Any] | None = None
    ) -> "AppError":
        """Create a 500 Internal Server error."""
        return cls(message, 500, details)

    @classmethod
    def service_unavailable(
        cls, message: str, details: dict[str, Any] | None = None
    ) -> "AppError":
        """Create a 503 Service Unavailable error."""
        return cls(message, 503, details)
