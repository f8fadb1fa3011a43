from datetime import datetime
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import Role, User
from ..services.rate_limiter import auth_limit
from ..utils.dependencies import Actor, get_current_user
from ..utils.jwt import create_access_token
from ..utils.security import hash_password, verify_password
from ..utils.validation import validate_email, validate_password, validate_role, validate_string_field
from ..utils.error_handlers import get_error_message, handle_database_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    role: str = Role.CANDIDATE.value  # candidate / employer; admins are promoted in the DB
    company: str | None = None  # required for employers


class LoginRequest(BaseModel):
    email: str
    password: str


def _user_public(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "company": user.company,
        "created_at": user.created_at.isoformat() if isinstance(user.created_at, datetime) else user.created_at,
    }


def _token_response(user: User) -> dict:
    token = create_access_token(
        {
            "sub": str(user.id),
            "name": user.name,
            "email": user.email,
            "role": user.role,
            "company": user.company,
        }
    )
    return {
        "success": True,
        "access_token": token,
        "token_type": "bearer",
        "user": _user_public(user),
    }


@router.post("/register")
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    name = validate_string_field(payload.name, "Name", max_length=255)
    email = validate_email(payload.email)
    validate_password(payload.password)
    role = validate_role(payload.role)
    if role is Role.ADMIN:
        raise HTTPException(status_code=403, detail=get_error_message("admin_signup"))
    company = validate_string_field(payload.company, "Company", max_length=255, required=False)
    if role is Role.EMPLOYER and not company:
        raise HTTPException(status_code=400, detail=get_error_message("company_required"))

    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise HTTPException(status_code=400, detail=get_error_message("email_exists"))

    try:
        hashed = hash_password(payload.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None

    user = User(
        name=name,
        email=email,
        password=hashed,
        role=role.value,
        company=company,
    )
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email.
        db.rollback()
        raise HTTPException(status_code=400, detail=get_error_message("email_exists")) from None
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "creating user") from e

    logger.info("Registered %s user %s", user.role, user.id)
    return _token_response(user)


@router.post("/login", dependencies=[Depends(auth_limit)])
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    email = validate_email(payload.email)
    if not payload.password:
        raise HTTPException(status_code=400, detail="Password is required")

    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(payload.password, user.password):
        raise HTTPException(
            status_code=401,
            detail=get_error_message("invalid_credentials")
        )

    return _token_response(user)


@router.get("/me")
def me(actor: Actor = Depends(get_current_user), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == actor.id).first()
    if not user:
        raise HTTPException(status_code=401, detail=get_error_message("unauthorized"))
    return {"success": True, "user": _user_public(user)}
