import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, JSON

from app.core.db import Base, utcnow


class ActivityType(str, enum.Enum):
    COMMENT_CREATED = "comment_created"
    STATUS_CHANGED = "status_changed"
    ASSIGNED_CHANGED = "assigned_changed"
    JOB_CREATED = "job_created"
    TASK_COMPLETED = "task_completed"
    PROPOSAL_CREATED = "proposal_created"
    PROPOSAL_SENT = "proposal_sent"
    PROPOSAL_SIGNED = "proposal_signed"
    OTHER = "other"


class JobActivity(Base):
    __tablename__ = "job_activity"

    id = Column(String, primary_key=True)  # uuid
    job_id = Column(String, ForeignKey("jobs.id"), index=True, nullable=False)

    actor_user_id = Column(String, ForeignKey("users.id"), nullable=True)
    actor_name = Column(String, nullable=True)
    actor_initials = Column(String(4), nullable=True)

    # plain string: rows from other writers may carry types we don't know
    type = Column(String, index=True, nullable=False)
    summary = Column(Text, nullable=False)
    metadata_json = Column("metadata", JSON, default=dict, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True, nullable=False)
