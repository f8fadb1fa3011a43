"""
Application ledger: one record per (job, candidate) and its status machine.

Status moves are permissive: any of the four statuses may be set from any
other, including the current one. Only the owner of the job (or an admin)
may move them.

Uniqueness of (job, candidate) is left to the database constraint. `create`
never looks for an existing application first; a second concurrent insert
fails at commit time and is reported as a conflict.
"""
import logging
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..models.application import Application, ApplicationStatus
from ..models.job import Job
from ..utils.dependencies import Actor
from ..utils.error_handlers import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    get_error_message,
    handle_database_error,
)
from ..utils.roles import ensure_owns_job, owns_job
from .notifications import (
    APPLICATION_STATUS_UPDATED,
    NEW_APPLICATION,
    NotificationSink,
    employer_scope,
    user_scope,
)

logger = logging.getLogger(__name__)


def parse_status(value: Any) -> ApplicationStatus:
    if isinstance(value, ApplicationStatus):
        return value
    try:
        return ApplicationStatus(value)
    except ValueError:
        raise BadRequestError(
            get_error_message("invalid_status"),
            details={"allowed": [s.value for s in ApplicationStatus]},
        ) from None


def _is_unique_violation(error: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed", MySQL: "Duplicate entry",
    # PostgreSQL: "duplicate key value violates unique constraint".
    msg = str(getattr(error, "orig", error)).lower()
    return "unique" in msg or "duplicate" in msg


class ApplicationLedger:
    def __init__(self, db: Session, notifier: NotificationSink):
        self.db = db
        self.notifier = notifier

    def create(
        self,
        *,
        job_id: int,
        candidate_id: int,
        resume: str,
        cover_letter: str | None = None,
    ) -> Application:
        job = (
            self.db.query(Job)
            .filter(Job.id == int(job_id), Job.is_active.is_(True))
            .first()
        )
        if job is None:
            raise NotFoundError(get_error_message("job_inactive"))

        application = Application(
            job_id=job.id,
            candidate_id=int(candidate_id),
            resume=resume,
            cover_letter=cover_letter,
            status=ApplicationStatus.PENDING.value,
        )
        self.db.add(application)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if _is_unique_violation(e):
                logger.info("Duplicate application job=%s candidate=%s", job_id, candidate_id)
                raise ConflictError(get_error_message("already_applied")) from None
            raise handle_database_error(e, "creating application") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise handle_database_error(e, "creating application") from e
        self.db.refresh(application)

        self._emit(
            employer_scope(job.employer_id),
            NEW_APPLICATION,
            {"jobId": job.id, "jobTitle": job.title, "applicationId": application.id},
        )
        return application

    def list_by_candidate(self, candidate_id: int) -> list[Application]:
        return (
            self.db.query(Application)
            .options(joinedload(Application.job))
            .filter(Application.candidate_id == int(candidate_id))
            .order_by(Application.created_at.desc(), Application.id.desc())
            .all()
        )

    def list_by_job(self, job_id: int, requester: Actor) -> list[Application]:
        job = self.db.query(Job).filter(Job.id == int(job_id)).first()
        if job is None:
            raise NotFoundError(get_error_message("job_not_found"))
        ensure_owns_job(requester, job)

        return (
            self.db.query(Application)
            .options(joinedload(Application.candidate))
            .filter(Application.job_id == job.id)
            .order_by(Application.created_at.desc(), Application.id.desc())
            .all()
        )

    def get(self, application_id: int, requester: Actor) -> Application:
        application = self.db.query(Application).filter(Application.id == int(application_id)).first()
        if application is None:
            raise NotFoundError(get_error_message("application_not_found"))
        if application.candidate_id == requester.id:
            return application
        if application.job is not None and owns_job(requester, application.job):
            return application
        raise UnauthorizedError(get_error_message("not_authorized"))

    def update_status(self, application_id: int, requester: Actor, new_status: Any) -> Application:
        application = self.db.query(Application).filter(Application.id == int(application_id)).first()
        if application is None:
            raise NotFoundError(get_error_message("application_not_found"))

        status = parse_status(new_status)

        job = self.db.query(Job).filter(Job.id == application.job_id).first()
        if job is None:
            raise NotFoundError(get_error_message("job_not_found"))
        ensure_owns_job(requester, job)

        application.status = status.value
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise handle_database_error(e, "updating application status") from e
        self.db.refresh(application)

        self._emit(
            user_scope(application.candidate_id),
            APPLICATION_STATUS_UPDATED,
            {"applicationId": application.id, "jobTitle": job.title, "newStatus": status.value},
        )
        return application

    def _emit(self, scope: str, event: str, payload: dict) -> None:
        # Best-effort; the state change is already committed.
        try:
            self.notifier.emit(scope, event, payload)
        except Exception as e:
            logger.warning("Failed to emit %s to %s: %s", event, scope, e)
