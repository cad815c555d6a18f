from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Boolean

from app.core.db import Base, utcnow


class JobComment(Base):
    __tablename__ = "job_comments"

    id = Column(String, primary_key=True)  # uuid
    job_id = Column(String, ForeignKey("jobs.id"), index=True, nullable=False)

    author_user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    author_name = Column(String, nullable=False)
    author_initials = Column(String(4), nullable=False)

    body = Column(Text, nullable=False)
    parent_comment_id = Column(String, ForeignKey("job_comments.id"), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
