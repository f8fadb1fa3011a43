from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..models.user import Role
from ..services.notifications import NotificationSink
from .error_handlers import get_error_message
from .jwt import decode_access_token

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as carried in the access token."""
    id: int
    role: Role
    name: str | None = None
    email: str | None = None
    company: str | None = None


def actor_from_claims(claims: dict) -> Actor | None:
    try:
        return Actor(
            id=int(claims["sub"]),
            role=Role(claims.get("role")),
            name=claims.get("name"),
            email=claims.get("email"),
            company=claims.get("company"),
        )
    except (KeyError, TypeError, ValueError):
        return None


def get_current_user(credentials: HTTPAuthorizationCredentials | None = Depends(_bearer)) -> Actor:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=401,
            detail=get_error_message("unauthorized"),
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = decode_access_token(credentials.credentials)
    actor = actor_from_claims(claims) if claims else None
    if actor is None:
        raise HTTPException(
            status_code=401,
            detail=get_error_message("session_expired"),
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor


def get_notifier(request: Request) -> NotificationSink:
    return request.app.state.notifier
