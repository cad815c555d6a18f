import uuid
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import as_utc, utcnow
from app.core.errors import NotFound, PermissionDenied, ValidationFailed
from app.models.activity import ActivityType
from app.models.comment import JobComment
from app.models.job import Job
from app.models.user import User
from app.schemas.comment import CommentOut, CommentRecord
from app.services.activity import create_job_activity
from app.services.activity_rules import can_delete_comment, can_edit_comment
from app.services.formatting import comment_preview, display_name_for, initials_for, time_ago
from app.services.jobs import get_job_row
from app.services.query_cache import (
    ACTIVITY_FEED,
    JOB_ACTIVITY,
    JOB_COMMENTS,
    JOBS,
    MutationEvent,
    invalidation_bus,
    job_comments_key,
    query_cache,
)
from app.services.store import commit_or_fail, reading

logger = structlog.get_logger(__name__)

SNIPPET_CHARS = 100


def edit_window() -> timedelta:
    return timedelta(minutes=settings.COMMENT_EDIT_WINDOW_MINUTES)


def _record(comment: JobComment) -> CommentRecord:
    record = CommentRecord.model_validate(comment)
    return record.model_copy(
        update={"created_at": as_utc(comment.created_at), "updated_at": as_utc(comment.updated_at)}
    )


def _live_comment(db: Session, comment_id: str) -> JobComment:
    with reading("comment"):
        comment = (
            db.query(JobComment)
            .filter(JobComment.id == comment_id, JobComment.is_deleted == False)  # noqa: E712
            .first()
        )
    if not comment:
        raise NotFound("Comment not found")
    return comment


def list_comments(db: Session, job_id: str) -> list[CommentRecord]:
    def load() -> list[CommentRecord]:
        with reading("comments"):
            rows = (
                db.query(JobComment)
                .filter(JobComment.job_id == job_id, JobComment.is_deleted == False)  # noqa: E712
                .order_by(JobComment.created_at.asc())
                .all()
            )
        return [_record(c) for c in rows]

    return query_cache.fetch(job_comments_key(job_id), load)


def create_comment(
    db: Session,
    job_id: str,
    body: str,
    actor: User,
    parent_comment_id: Optional[str] = None,
) -> CommentRecord:
    """
    Insert the comment, its comment_created activity entry and the job's
    comment counters in one transaction.
    """
    body = (body or "").strip()
    if not body:
        raise ValidationFailed("Comment cannot be empty")

    job = get_job_row(db, job_id)

    if parent_comment_id:
        with reading("comment"):
            parent = (
                db.query(JobComment)
                .filter(JobComment.id == parent_comment_id, JobComment.is_deleted == False)  # noqa: E712
                .first()
            )
        if not parent or parent.job_id != job.id:
            raise ValidationFailed("Parent comment does not belong to this job")

    author_name = display_name_for(actor.full_name, actor.email)
    now = utcnow()
    comment = JobComment(
        id=str(uuid.uuid4()),
        job_id=job.id,
        author_user_id=actor.id,
        author_name=author_name,
        author_initials=initials_for(author_name),
        body=body,
        parent_comment_id=parent_comment_id or None,
        is_deleted=False,
        created_at=now,
        updated_at=now,
    )
    db.add(comment)

    create_job_activity(
        db,
        job,
        ActivityType.COMMENT_CREATED,
        f'{author_name} commented: "{comment_preview(body)}"',
        actor=actor,
        metadata={"comment_id": comment.id},
    )
    job.comment_count = (job.comment_count or 0) + 1
    job.last_comment_at = now
    job.last_comment_snippet = comment_preview(body, SNIPPET_CHARS)

    commit_or_fail(db, "Failed to add comment", job_id=job.id)
    db.refresh(comment)

    logger.info("comment_created", job_id=job.id, comment_id=comment.id, author_user_id=actor.id)
    invalidation_bus.publish(
        MutationEvent(
            "comment",
            "created",
            comment.id,
            keys=((JOB_COMMENTS, job.id), (JOB_ACTIVITY, job.id), (ACTIVITY_FEED,), (JOBS,)),
        )
    )
    return _record(comment)


def update_comment(
    db: Session,
    comment_id: str,
    body: str,
    actor: User,
    now: Optional[datetime] = None,
) -> CommentRecord:
    comment = _live_comment(db, comment_id)
    now = now or utcnow()
    if not can_edit_comment(comment.author_user_id, comment.created_at, actor.id, now, edit_window()):
        raise PermissionDenied(
            f"Comments can only be edited by their author within "
            f"{settings.COMMENT_EDIT_WINDOW_MINUTES} minutes"
        )

    body = (body or "").strip()
    if not body:
        raise ValidationFailed("Comment cannot be empty")

    comment.body = body
    comment.updated_at = now
    _refresh_job_comment_fields(db, get_job_row(db, comment.job_id))
    commit_or_fail(db, "Failed to update comment", comment_id=comment.id)
    db.refresh(comment)

    logger.info("comment_updated", job_id=comment.job_id, comment_id=comment.id)
    invalidation_bus.publish(
        MutationEvent("comment", "updated", comment.id, keys=((JOB_COMMENTS, comment.job_id), (JOBS,)))
    )
    return _record(comment)


def _refresh_job_comment_fields(db: Session, job: Job) -> None:
    with reading("comments"):
        db.flush()
        remaining = (
            db.query(JobComment)
            .filter(JobComment.job_id == job.id, JobComment.is_deleted == False)  # noqa: E712
            .order_by(JobComment.created_at.desc())
            .all()
        )
    job.comment_count = len(remaining)
    latest = remaining[0] if remaining else None
    job.last_comment_at = latest.created_at if latest else None
    job.last_comment_snippet = comment_preview(latest.body, SNIPPET_CHARS) if latest else None


def delete_comment(db: Session, comment_id: str, actor: User) -> CommentRecord:
    comment = _live_comment(db, comment_id)
    if not can_delete_comment(comment.author_user_id, actor.id):
        raise PermissionDenied("Only the author can delete this comment")

    comment.is_deleted = True
    job = get_job_row(db, comment.job_id)
    _refresh_job_comment_fields(db, job)
    commit_or_fail(db, "Failed to delete comment", comment_id=comment.id)
    db.refresh(comment)

    logger.info("comment_deleted", job_id=comment.job_id, comment_id=comment.id)
    invalidation_bus.publish(
        MutationEvent("comment", "deleted", comment.id, keys=((JOB_COMMENTS, comment.job_id), (JOBS,)))
    )
    return _record(comment)


def present_comment(record: CommentRecord, user_id: Optional[str], now: datetime) -> CommentOut:
    return CommentOut(
        **record.model_dump(),
        created_ago=time_ago(record.created_at, now),
        edited=record.updated_at > record.created_at,
        can_edit=can_edit_comment(record.author_user_id, record.created_at, user_id, now, edit_window()),
        can_delete=can_delete_comment(record.author_user_id, user_id),
    )
