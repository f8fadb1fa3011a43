"""
Authorization policy.

Role and ownership checks are plain predicates over the caller and the
resource; the FastAPI gates at the bottom turn them into route dependencies.
"""
from fastapi import Depends, HTTPException

from ..models.job import Job
from ..models.user import Role
from .dependencies import Actor, get_current_user
from .error_handlers import UnauthorizedError, get_error_message


def is_candidate(actor: Actor) -> bool:
    return actor.role is Role.CANDIDATE


def is_employer(actor: Actor) -> bool:
    return actor.role is Role.EMPLOYER


def is_admin(actor: Actor) -> bool:
    return actor.role is Role.ADMIN


def owns_job(actor: Actor, job: Job) -> bool:
    return actor.id == job.employer_id or is_admin(actor)


def ensure_owns_job(actor: Actor, job: Job) -> None:
    if not owns_job(actor, job):
        raise UnauthorizedError(get_error_message("not_authorized"))


def _role_required(*roles: Role):
    label = " or ".join(r.value.capitalize() for r in roles)

    def check_role(user: Actor = Depends(get_current_user)) -> Actor:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail=f"Access denied. {label} only.")
        return user
    return check_role


candidate_only = _role_required(Role.CANDIDATE)
employer_only = _role_required(Role.EMPLOYER)
employer_or_admin = _role_required(Role.EMPLOYER, Role.ADMIN)
