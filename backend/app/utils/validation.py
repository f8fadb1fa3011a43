"""
Validation utilities for request payloads.

These raise HTTPException(400) directly; they run before any domain logic.
"""
import re
from datetime import datetime
from typing import Any

from fastapi import HTTPException

from ..models.job import EmploymentType
from ..models.user import Role

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


def validate_email(email: str) -> str:
    """Validate email format."""
    if not email or not isinstance(email, str):
        raise HTTPException(status_code=400, detail="Email is required")

    email = email.strip().lower()
    if len(email) > 255:
        raise HTTPException(status_code=400, detail="Email too long (max 255 characters)")

    if not re.match(EMAIL_PATTERN, email):
        raise HTTPException(status_code=400, detail="Invalid email format")

    return email


def validate_password(password: str) -> None:
    """Validate password strength."""
    if not password or not isinstance(password, str):
        raise HTTPException(status_code=400, detail="Password is required")

    if len(password) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")

    if len(password) > 128:
        raise HTTPException(status_code=400, detail="Password too long (max 128 characters)")


def validate_string_field(
    value: Any,
    field_name: str,
    min_length: int = 1,
    max_length: int = 1000,
    required: bool = True,
) -> str | None:
    """Validate a string field with common rules."""
    if value is None:
        if required:
            raise HTTPException(status_code=400, detail=f"{field_name} is required")
        return None

    if not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{field_name} must be a string")

    value = value.strip()

    if required and not value:
        raise HTTPException(status_code=400, detail=f"{field_name} cannot be empty")
    if not value:
        return None

    if len(value) < min_length:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must be at least {min_length} characters"
        )

    if len(value) > max_length:
        raise HTTPException(
            status_code=400,
            detail=f"{field_name} must not exceed {max_length} characters"
        )

    return value


def validate_role(role: str) -> Role:
    """Validate user role."""
    if not role or not isinstance(role, str):
        raise HTTPException(status_code=400, detail="Role is required")

    try:
        return Role(role.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid role. Must be one of: {', '.join(r.value for r in Role)}"
        ) from None


def validate_employment_type(value: str) -> EmploymentType:
    if not value or not isinstance(value, str):
        raise HTTPException(status_code=400, detail="Employment type is required")

    try:
        return EmploymentType(value.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid employment type. Must be one of: {', '.join(t.value for t in EmploymentType)}"
        ) from None


def validate_requirements(value: Any) -> list[str]:
    """Requirements are an ordered, non-empty list of strings."""
    if not isinstance(value, list):
        raise HTTPException(status_code=400, detail="Requirements must be a list")
    cleaned = [str(x).strip() for x in value if str(x).strip()]
    if not cleaned:
        raise HTTPException(status_code=400, detail="At least one requirement is required")
    return cleaned


def parse_datetime(value: str | None, field_name: str) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {field_name} format. Use ISO 8601 format."
        ) from None
