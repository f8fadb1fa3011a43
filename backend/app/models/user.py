import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base


class Role(str, enum.Enum):
    CANDIDATE = "candidate"
    EMPLOYER = "employer"
    ADMIN = "admin"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # store hashed password
    role = Column(String(20), nullable=False, default=Role.CANDIDATE.value)  # candidate / employer / admin
    company = Column(String(255), nullable=True)  # required for employers
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    # Relationships
    jobs = relationship("Job", back_populates="employer")
    applications = relationship("Application", back_populates="candidate")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
