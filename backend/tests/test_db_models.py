import json

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from backend.app.database import Base, install_sqlite_pragmas
from backend.app.models.application import Application
from backend.app.models.job import Job
from backend.app.models.user import User


@pytest.fixture()
def db_session(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'models.db'}", connect_args={"check_same_thread": False})
    install_sqlite_pragmas(engine)
    Base.metadata.create_all(bind=engine)
    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


def _seed(db_session):
    employer = User(email="crud_employer@example.com", password="hashed", role="employer", name="Emp", company="Acme")
    candidate = User(email="crud_candidate@example.com", password="hashed", role="candidate", name="Cand")
    db_session.add_all([employer, candidate])
    db_session.commit()

    job = Job(
        employer_id=employer.id,
        title="CRUD Job",
        company="Acme",
        location="Berlin",
        description="A" * 20,
        requirements=json.dumps(["Python", "SQL"]),
        employment_type="full-time",
    )
    db_session.add(job)
    db_session.commit()
    return employer, candidate, job


def test_db_crud_operations_and_relationships(db_session):
    employer, candidate, job = _seed(db_session)
    assert job.is_active is True
    assert job.created_at is not None
    assert job.employer.email == "crud_employer@example.com"
    assert employer.jobs == [job]

    application = Application(job_id=job.id, candidate_id=candidate.id, resume="cv.pdf")
    db_session.add(application)
    db_session.commit()
    db_session.refresh(application)

    assert application.status == "pending"
    assert application.job.id == job.id
    assert application.candidate.id == candidate.id
    assert candidate.applications == [application]
    assert job.applications == [application]


def test_unique_application_per_job_and_candidate(db_session):
    _, candidate, job = _seed(db_session)
    db_session.add(Application(job_id=job.id, candidate_id=candidate.id, resume="cv.pdf"))
    db_session.commit()

    db_session.add(Application(job_id=job.id, candidate_id=candidate.id, resume="other.pdf"))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()
    assert db_session.query(Application).count() == 1


def test_unique_email(db_session):
    _seed(db_session)
    db_session.add(User(email="crud_candidate@example.com", password="x", role="candidate", name="Dup"))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_deleting_job_deletes_its_applications(db_session):
    _, candidate, job = _seed(db_session)
    db_session.add(Application(job_id=job.id, candidate_id=candidate.id, resume="cv.pdf"))
    db_session.commit()

    db_session.delete(job)
    db_session.commit()

    assert db_session.query(Job).count() == 0
    assert db_session.query(Application).count() == 0
    assert db_session.query(User).count() == 2
