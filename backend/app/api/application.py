from datetime import datetime
from typing import Any
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.application import Application
from ..services.application_ledger import ApplicationLedger
from ..services.notifications import NotificationSink
from ..services.rate_limiter import application_limit
from ..utils.dependencies import Actor, get_current_user, get_notifier
from ..utils.roles import candidate_only, employer_or_admin
from ..utils.validation import validate_string_field

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["Applications"])


class ApplicationCreate(BaseModel):
    jobId: int
    resume: str = Field(min_length=1)
    coverLetter: str | None = None


class StatusUpdate(BaseModel):
    # Left untyped so an unknown value reaches the ledger and comes back as
    # a 400 "Invalid status" rather than a schema error.
    status: Any = None


def get_ledger(
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier),
) -> ApplicationLedger:
    return ApplicationLedger(db, notifier)


def _application_payload(application: Application, *, job: dict | None = None, candidate: dict | None = None) -> dict:
    return {
        "id": application.id,
        "job": job if job is not None else application.job_id,
        "candidate": candidate if candidate is not None else application.candidate_id,
        "resume": application.resume,
        "coverLetter": application.cover_letter,
        "status": application.status,
        "createdAt": application.created_at.isoformat()
        if isinstance(application.created_at, datetime)
        else application.created_at,
    }


def _job_projection(application: Application) -> dict | None:
    job = application.job
    if job is None:
        return None
    return {"id": job.id, "title": job.title, "company": job.company, "location": job.location}


def _candidate_projection(application: Application) -> dict | None:
    candidate = application.candidate
    if candidate is None:
        return None
    return {"id": candidate.id, "name": candidate.name, "email": candidate.email}


@router.post("")
def apply(
    payload: ApplicationCreate,
    user: Actor = Depends(application_limit),
    ledger: ApplicationLedger = Depends(get_ledger),
):
    application = ledger.create(
        job_id=payload.jobId,
        candidate_id=user.id,
        resume=validate_string_field(payload.resume, "Resume", max_length=20000),
        cover_letter=validate_string_field(payload.coverLetter, "Cover letter", max_length=20000, required=False),
    )
    logger.info("Candidate %s applied to job %s (application %s)", user.id, payload.jobId, application.id)
    return _application_payload(application)


@router.get("/candidate")
def my_applications(
    user: Actor = Depends(candidate_only),
    ledger: ApplicationLedger = Depends(get_ledger),
):
    return [
        _application_payload(a, job=_job_projection(a))
        for a in ledger.list_by_candidate(user.id)
    ]


@router.get("/job/{job_id}")
def job_applications(
    job_id: int,
    user: Actor = Depends(get_current_user),
    ledger: ApplicationLedger = Depends(get_ledger),
):
    return [
        _application_payload(a, candidate=_candidate_projection(a))
        for a in ledger.list_by_job(job_id, user)
    ]


@router.get("/{application_id:int}")
def application_details(
    application_id: int,
    user: Actor = Depends(get_current_user),
    ledger: ApplicationLedger = Depends(get_ledger),
):
    return _application_payload(ledger.get(application_id, user))


@router.put("/{application_id:int}")
def update_status(
    application_id: int,
    payload: StatusUpdate,
    user: Actor = Depends(employer_or_admin),
    ledger: ApplicationLedger = Depends(get_ledger),
):
    application = ledger.update_status(application_id, user, payload.status)
    logger.info("Application %s moved to %s by user %s", application.id, application.status, user.id)
    return _application_payload(application)
