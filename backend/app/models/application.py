import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base
from .user import _utcnow


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    REJECTED = "rejected"
    ACCEPTED = "accepted"


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        # One application per candidate per job; enforced by the database so
        # concurrent submissions cannot both be inserted.
        UniqueConstraint("job_id", "candidate_id", name="uq_applications_job_candidate"),
    )

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    candidate_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    resume = Column(Text, nullable=False)
    cover_letter = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=ApplicationStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)

    job = relationship("Job", back_populates="applications")
    candidate = relationship("User", back_populates="applications")
