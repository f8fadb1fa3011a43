import pytest
from fastapi import HTTPException

from backend.app.models.job import EmploymentType
from backend.app.models.user import Role
from backend.app.utils.validation import (
    parse_datetime,
    validate_email,
    validate_employment_type,
    validate_password,
    validate_requirements,
    validate_role,
    validate_string_field,
)


def test_valid_email_is_normalized():
    assert validate_email("test@example.com") == "test@example.com"
    assert validate_email("  TEST@EXAMPLE.COM  ") == "test@example.com"


@pytest.mark.parametrize("email", ["", "invalid", "a@b", "x" * 250 + "@example.com"])
def test_invalid_email(email):
    with pytest.raises(HTTPException) as exc:
        validate_email(email)
    assert exc.value.status_code == 400


def test_password_length_bounds():
    validate_password("123456")
    with pytest.raises(HTTPException):
        validate_password("12345")
    with pytest.raises(HTTPException):
        validate_password("x" * 129)


def test_string_field_rules():
    assert validate_string_field("  hi  ", "Name") == "hi"
    assert validate_string_field(None, "Name", required=False) is None
    assert validate_string_field("   ", "Name", required=False) is None
    with pytest.raises(HTTPException):
        validate_string_field("   ", "Name")
    with pytest.raises(HTTPException):
        validate_string_field("abc", "Name", max_length=2)


def test_role_is_closed_set():
    assert validate_role(" Employer ") is Role.EMPLOYER
    assert validate_role("admin") is Role.ADMIN
    with pytest.raises(HTTPException):
        validate_role("recruiter")


def test_employment_type():
    assert validate_employment_type("Full-Time") is EmploymentType.FULL_TIME
    with pytest.raises(HTTPException):
        validate_employment_type("freelance")


def test_requirements_keep_order_and_drop_blanks():
    assert validate_requirements(["Python", " ", "SQL "]) == ["Python", "SQL"]
    with pytest.raises(HTTPException):
        validate_requirements([])
    with pytest.raises(HTTPException):
        validate_requirements("Python")


def test_parse_datetime():
    assert parse_datetime(None, "deadline") is None
    parsed = parse_datetime("2030-01-20T10:00:00Z", "deadline")
    assert parsed.year == 2030 and parsed.utcoffset().total_seconds() == 0
    with pytest.raises(HTTPException):
        parse_datetime("next week", "deadline")
