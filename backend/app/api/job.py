from datetime import datetime
import json
import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..database import get_db
from ..models.job import Job
from ..models.user import User
from ..services.notifications import BROADCAST, JOB_DELETED, JOB_UPDATED, NEW_JOB, NotificationSink
from ..utils.dependencies import Actor, get_current_user, get_notifier
from ..utils.roles import employer_only, ensure_owns_job
from ..utils.validation import (
    parse_datetime,
    validate_employment_type,
    validate_requirements,
    validate_string_field,
)
from ..utils.error_handlers import (
    NotFoundError,
    get_error_message,
    handle_database_error,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])

MAX_PAGE_SIZE = 100


def _contains(value: str) -> str:
    """LIKE pattern matching `value` literally anywhere in a lowercased column."""
    escaped = value.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _iso(value):
    return value.isoformat() if isinstance(value, datetime) else value


def _requirements_list(job: Job) -> list[str]:
    raw = getattr(job, "requirements", None)
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return [str(x) for x in parsed] if isinstance(parsed, list) else []


def _job_to_public(job: Job) -> dict:
    employer = getattr(job, "employer", None)
    return {
        "id": job.id,
        "title": job.title,
        "company": job.company,
        "location": job.location,
        "description": job.description,
        "requirements": _requirements_list(job),
        "salary": job.salary,
        "employmentType": job.employment_type,
        "employer": {
            "id": job.employer_id,
            "name": employer.name if employer else None,
            "company": employer.company if employer else None,
        },
        "isActive": bool(job.is_active),
        "applicationDeadline": _iso(job.application_deadline),
        "createdAt": _iso(job.created_at),
    }


class JobCreate(BaseModel):
    title: str = Field(min_length=2, max_length=150)
    description: str = Field(min_length=1)
    requirements: list[str]
    location: str = Field(min_length=1, max_length=150)
    salary: str | None = Field(default=None, max_length=100)
    employmentType: str
    applicationDeadline: str | None = None  # ISO datetime string


class JobUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=2, max_length=150)
    description: str | None = Field(default=None, min_length=1)
    requirements: list[str] | None = None
    location: str | None = Field(default=None, max_length=150)
    salary: str | None = Field(default=None, max_length=100)
    employmentType: str | None = None
    applicationDeadline: str | None = None  # ISO datetime string
    isActive: bool | None = None


def _get_job_or_404(db: Session, job_id: int) -> Job:
    job = (
        db.query(Job)
        .options(joinedload(Job.employer))
        .filter(Job.id == job_id)
        .first()
    )
    if not job:
        raise NotFoundError(get_error_message("job_not_found"))
    return job


def _emit(notifier: NotificationSink, event: str, payload) -> None:
    try:
        notifier.emit(BROADCAST, event, payload)
    except Exception as e:
        logger.warning("Failed to emit %s: %s", event, e)


@router.post("", status_code=201)
def create_job(
    payload: JobCreate,
    db: Session = Depends(get_db),
    user: Actor = Depends(employer_only),
    notifier: NotificationSink = Depends(get_notifier),
):
    employer = db.query(User).filter(User.id == user.id).first()
    if not employer:
        raise HTTPException(status_code=401, detail=get_error_message("unauthorized"))

    job = Job(
        employer_id=employer.id,
        title=validate_string_field(payload.title, "Title", min_length=2, max_length=150),
        company=employer.company or user.company or "",
        location=validate_string_field(payload.location, "Location", max_length=150),
        description=validate_string_field(payload.description, "Description", max_length=20000),
        requirements=json.dumps(validate_requirements(payload.requirements), ensure_ascii=False),
        salary=validate_string_field(payload.salary, "Salary", max_length=100, required=False),
        employment_type=validate_employment_type(payload.employmentType).value,
        application_deadline=parse_datetime(payload.applicationDeadline, "applicationDeadline"),
        is_active=True,
    )
    try:
        db.add(job)
        db.commit()
        db.refresh(job)
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "creating job") from e

    logger.info("Employer %s posted job %s", employer.id, job.id)
    body = _job_to_public(job)
    _emit(notifier, NEW_JOB, body)
    return body


@router.get("")
def list_jobs(
    search: str | None = Query(default=None, description="Text search over title, description, company and location"),
    location: str | None = Query(default=None),
    employmentType: str | None = Query(default=None),
    company: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    q = db.query(Job).filter(Job.is_active.is_(True))

    # Every search term has to appear in at least one of the text fields.
    for term in (search or "").split():
        pattern = _contains(term)
        q = q.filter(
            or_(
                func.lower(Job.title).like(pattern, escape="\\"),
                func.lower(Job.description).like(pattern, escape="\\"),
                func.lower(Job.company).like(pattern, escape="\\"),
                func.lower(Job.location).like(pattern, escape="\\"),
            )
        )
    if location:
        q = q.filter(func.lower(Job.location).like(_contains(location.strip()), escape="\\"))
    if employmentType:
        q = q.filter(Job.employment_type == employmentType.strip().lower())
    if company:
        q = q.filter(func.lower(Job.company).like(_contains(company.strip()), escape="\\"))

    total = q.count()
    jobs = (
        q.options(joinedload(Job.employer))
        .order_by(Job.created_at.desc(), Job.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "jobs": [_job_to_public(j) for j in jobs],
        "totalPages": math.ceil(total / limit),
        "currentPage": page,
        "totalJobs": total,
    }


@router.get("/employer/me")
def my_jobs(
    db: Session = Depends(get_db),
    user: Actor = Depends(employer_only),
):
    jobs = (
        db.query(Job)
        .options(joinedload(Job.employer))
        .filter(Job.employer_id == user.id)
        .order_by(Job.created_at.desc(), Job.id.desc())
        .all()
    )
    return [_job_to_public(j) for j in jobs]


@router.get("/{job_id:int}")
def get_job(job_id: int, db: Session = Depends(get_db)):
    return _job_to_public(_get_job_or_404(db, job_id))


@router.put("/{job_id:int}")
def update_job(
    job_id: int,
    payload: JobUpdate,
    db: Session = Depends(get_db),
    user: Actor = Depends(get_current_user),
    notifier: NotificationSink = Depends(get_notifier),
):
    job = _get_job_or_404(db, job_id)
    ensure_owns_job(user, job)

    if payload.title is not None:
        job.title = validate_string_field(payload.title, "Title", min_length=2, max_length=150)
    if payload.description is not None:
        job.description = validate_string_field(payload.description, "Description", max_length=20000)
    if payload.requirements is not None:
        job.requirements = json.dumps(validate_requirements(payload.requirements), ensure_ascii=False)
    if payload.location is not None:
        job.location = validate_string_field(payload.location, "Location", max_length=150)
    if payload.salary is not None:
        job.salary = validate_string_field(payload.salary, "Salary", max_length=100, required=False)
    if payload.employmentType is not None:
        job.employment_type = validate_employment_type(payload.employmentType).value
    if payload.applicationDeadline is not None:
        job.application_deadline = parse_datetime(payload.applicationDeadline, "applicationDeadline")
    if payload.isActive is not None:
        job.is_active = payload.isActive

    try:
        db.commit()
        db.refresh(job)
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "updating job") from e

    body = _job_to_public(job)
    _emit(notifier, JOB_UPDATED, body)
    return body


@router.delete("/{job_id:int}")
def delete_job(
    job_id: int,
    db: Session = Depends(get_db),
    user: Actor = Depends(get_current_user),
    notifier: NotificationSink = Depends(get_notifier),
):
    job = _get_job_or_404(db, job_id)
    ensure_owns_job(user, job)

    # Hard delete; applications go with the job.
    try:
        db.delete(job)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise handle_database_error(e, "deleting job") from e

    logger.info("Job %s removed by user %s", job_id, user.id)
    _emit(notifier, JOB_DELETED, job_id)
    return {"message": "Job removed"}
