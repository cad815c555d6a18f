import enum
from sqlalchemy import Column, String, DateTime, Enum, Float, Integer, Text

from app.core.db import Base, utcnow


class JobStatus(str, enum.Enum):
    NEW = "new"
    SCHEDULED = "scheduled"
    SENT = "sent"
    SIGNED = "signed"
    PRODUCTION = "production"
    COMPLETE = "complete"


class JobPriority(str, enum.Enum):
    NORMAL = "normal"
    LOW = "low"
    HIGH = "high"


def _enum_values(cls):
    return [member.value for member in cls]


class Job(Base):
    __tablename__ = "jobs"

    id = Column(String, primary_key=True)  # uuid string

    address = Column(String, nullable=False)
    customer_name = Column(String, index=True, nullable=False)
    customer_phone = Column(String, nullable=True)
    customer_email = Column(String, nullable=True)

    value = Column(Float, default=0, nullable=False)
    status = Column(Enum(JobStatus, values_callable=_enum_values), default=JobStatus.NEW, nullable=False)
    priority = Column(Enum(JobPriority, values_callable=_enum_values), default=JobPriority.NORMAL, nullable=False)
    proposal_status = Column(String, nullable=True)  # draft, sent, viewed, signed, won, lost

    assignee_name = Column(String, nullable=False)
    assignee_initials = Column(String(4), nullable=False)

    # denormalized from job_comments / job_activity
    comment_count = Column(Integer, default=0, nullable=False)
    last_activity_at = Column(DateTime(timezone=True), nullable=True)
    last_comment_at = Column(DateTime(timezone=True), nullable=True)
    last_comment_snippet = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
