"""
Centralized error handling and user-friendly error messages.
"""
import logging

from fastapi import HTTPException
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error."""
    kind = "internal"

    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class BadRequestError(AppError):
    """Value outside the accepted domain (e.g. an unknown status)."""
    kind = "bad_request"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class NotFoundError(AppError):
    """Resource not found error."""
    kind = "not_found"

    def __init__(self, message: str = "Resource not found", details: dict | None = None):
        super().__init__(message, status_code=404, details=details)


class ConflictError(AppError):
    """Uniqueness violation.

    Rendered as HTTP 400 to stay compatible with existing clients of the
    applications API; the `kind` field tells it apart from other 400s.
    """
    kind = "conflict"

    def __init__(self, message: str = "Record already exists", details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class UnauthorizedError(AppError):
    """Unauthorized access error."""
    kind = "unauthorized"

    def __init__(self, message: str = "Unauthorized access", details: dict | None = None):
        super().__init__(message, status_code=401, details=details)


class ForbiddenError(AppError):
    """Forbidden access error."""
    kind = "forbidden"

    def __init__(self, message: str = "Access forbidden", details: dict | None = None):
        super().__init__(message, status_code=403, details=details)


class DatabaseError(AppError):
    """Database error."""
    kind = "internal"

    def __init__(self, message: str = "Database operation failed", details: dict | None = None):
        super().__init__(message, status_code=500, details=details)


# User-friendly error messages
ERROR_MESSAGES = {
    # Authentication
    "invalid_credentials": "Invalid email or password. Please try again.",
    "email_exists": "User already exists",
    "weak_password": "Password must be at least 6 characters long.",
    "session_expired": "Your session has expired. Please login again.",
    "company_required": "Company is required for employer accounts.",
    "admin_signup": "Admin accounts cannot be created through registration.",

    # Jobs
    "job_not_found": "Job not found",
    "job_inactive": "Job not found or no longer active",

    # Applications
    "application_not_found": "Application not found",
    "already_applied": "You have already applied for this job",
    "invalid_status": "Invalid status",

    # Rate limiting
    "rate_limited": "Too many requests from this IP, please try again later",
    "auth_rate_limited": "Too many login attempts, please try again later",
    "application_rate_limited": "You have submitted too many applications. Please try again later.",

    # General
    "unauthorized": "Please login to access this feature.",
    "not_authorized": "Not authorized",
    "forbidden": "You don't have permission to access this resource.",
    "not_found": "The requested resource was not found.",
    "server_error": "Something went wrong on our end. Please try again later.",
    "database_error": "Database connection issue. Please try again later.",
    "validation_error": "Please check your input and try again.",
}


def get_error_message(error_key: str, default: str | None = None) -> str:
    """Get a user-friendly error message."""
    return ERROR_MESSAGES.get(error_key, default or ERROR_MESSAGES["server_error"])


def handle_database_error(error: Exception, operation: str = "") -> DatabaseError:
    """Log a failed storage call and turn it into a generic internal error."""
    logger.error(f"Database error during {operation}: {error}")

    error_str = str(error).lower()
    if "connection" in error_str or "operational" in error_str:
        return DatabaseError(get_error_message("database_error"))
    return DatabaseError(get_error_message("server_error"))


def create_error_response(
    status_code: int,
    message: str,
    kind: str | None = None,
    details: dict | None = None,
    headers: dict | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    content = {
        "success": False,
        "error": message,
    }
    if kind:
        content["kind"] = kind
    if details:
        content["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=headers,
    )


def app_error_response(exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        # Collaborator detail stays in the logs.
        logger.error("Internal error: %s %s", exc.message, exc.details)
        return create_error_response(exc.status_code, exc.message, kind=exc.kind)
    return create_error_response(exc.status_code, exc.message, kind=exc.kind, details=exc.details)


def http_error_response(exc: HTTPException) -> JSONResponse:
    return create_error_response(
        exc.status_code,
        exc.detail if isinstance(exc.detail, str) else get_error_message("validation_error"),
        details=None if isinstance(exc.detail, str) else {"errors": exc.detail},
        headers=getattr(exc, "headers", None),
    )
