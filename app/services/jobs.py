import uuid
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from app.core.db import as_utc
from app.core.errors import NotFound, ValidationFailed
from app.models.activity import ActivityType
from app.models.job import Job, JobStatus
from app.models.user import User
from app.schemas.job import AgeIndicatorOut, JobCreate, JobOut, JobRecord
from app.services.activity import create_job_activity
from app.services.formatting import (
    age_indicator,
    format_currency,
    initials_for,
    job_status_label,
    parse_money,
    status_badge_style,
    time_ago,
)
from app.services.query_cache import (
    ACTIVITY_FEED,
    JOB_ACTIVITY,
    JOBS,
    MutationEvent,
    invalidation_bus,
    jobs_key,
    query_cache,
)
from app.services.store import commit_or_fail, reading

logger = structlog.get_logger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def _record(job: Job) -> JobRecord:
    record = JobRecord.model_validate(job)
    return record.model_copy(
        update={
            "created_at": as_utc(job.created_at),
            "updated_at": as_utc(job.updated_at),
            "last_activity_at": as_utc(job.last_activity_at),
            "last_comment_at": as_utc(job.last_comment_at),
        }
    )


def get_job_row(db: Session, job_id: str) -> Job:
    with reading("job"):
        job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        raise NotFound("Job not found")
    return job


def get_job(db: Session, job_id: str) -> JobRecord:
    return _record(get_job_row(db, job_id))


def list_jobs(db: Session, status: Optional[JobStatus] = None) -> list[JobRecord]:
    status_value = status.value if status else None

    def load() -> list[JobRecord]:
        with reading("jobs"):
            q = db.query(Job)
            if status is not None:
                q = q.filter(Job.status == status)
            rows = q.order_by(Job.created_at.desc()).all()
        return [_record(j) for j in rows]

    return query_cache.fetch(jobs_key(status_value), load)


def validate_job(payload: JobCreate) -> dict:
    customer_name = (payload.customer_name or "").strip()
    address = (payload.address or "").strip()
    assignee_name = (payload.assignee_name or "").strip()

    if not customer_name or not address:
        raise ValidationFailed("Customer name and address are required")
    if not assignee_name:
        raise ValidationFailed("Assignee name is required")

    value = parse_money(payload.value)
    if value < 0:
        raise ValidationFailed("Value cannot be negative")

    return {
        "customer_name": customer_name,
        "address": address,
        "assignee_name": assignee_name,
        "assignee_initials": initials_for(assignee_name),
        "value": value,
        "status": payload.status or JobStatus.NEW,
        "priority": payload.priority,
        "customer_phone": _clean(payload.customer_phone),
        "customer_email": _clean(payload.customer_email),
        "proposal_status": _clean(payload.proposal_status),
    }


def create_job(db: Session, payload: JobCreate, actor: Optional[User] = None) -> JobRecord:
    fields = validate_job(payload)

    job = Job(id=str(uuid.uuid4()), comment_count=0, **fields)
    db.add(job)
    create_job_activity(
        db,
        job,
        ActivityType.JOB_CREATED,
        f"Job created for {job.customer_name} at {job.address}",
        actor=actor,
    )
    commit_or_fail(db, "Failed to create job", job_id=job.id)
    db.refresh(job)

    logger.info("job_created", job_id=job.id, status=job.status.value, value=job.value)
    invalidation_bus.publish(
        MutationEvent("job", "created", job.id, keys=((JOBS,), (ACTIVITY_FEED,)))
    )
    return _record(job)


def _publish_job_change(job: Job, action: str) -> None:
    invalidation_bus.publish(
        MutationEvent(
            "job",
            action,
            job.id,
            keys=((JOBS,), (JOB_ACTIVITY, job.id), (ACTIVITY_FEED,)),
        )
    )


def update_job_status(db: Session, job_id: str, status: JobStatus, actor: User) -> JobRecord:
    job = get_job_row(db, job_id)
    old = job.status
    if old == status:
        return _record(job)

    job.status = status
    create_job_activity(
        db,
        job,
        ActivityType.STATUS_CHANGED,
        f"Status {job_status_label(old)} -> {job_status_label(status)}",
        actor=actor,
        metadata={"from": old.value, "to": status.value},
    )
    commit_or_fail(db, "Failed to update job status", job_id=job.id)
    db.refresh(job)

    logger.info("job_status_changed", job_id=job.id, old=old.value, new=status.value)
    _publish_job_change(job, "status_changed")
    return _record(job)


def assign_job(db: Session, job_id: str, assignee_name: str, actor: User) -> JobRecord:
    name = (assignee_name or "").strip()
    if not name:
        raise ValidationFailed("Assignee name is required")

    job = get_job_row(db, job_id)
    previous = job.assignee_name
    job.assignee_name = name
    job.assignee_initials = initials_for(name)
    create_job_activity(
        db,
        job,
        ActivityType.ASSIGNED_CHANGED,
        f"Assigned to {name}",
        actor=actor,
        metadata={"from": previous, "to": name},
    )
    commit_or_fail(db, "Failed to assign job", job_id=job.id)
    db.refresh(job)

    logger.info("job_assigned", job_id=job.id, assignee=name)
    _publish_job_change(job, "assigned")
    return _record(job)


def present_job(record: JobRecord, now: datetime) -> JobOut:
    age = age_indicator(record.updated_at or record.created_at, now)
    return JobOut(
        **record.model_dump(),
        status_label=job_status_label(record.status),
        value_display=format_currency(record.value, hide_zero=True),
        proposal_badge_style=status_badge_style(record.proposal_status) if record.proposal_status else None,
        age=AgeIndicatorOut(**age._asdict()),
        created_ago=time_ago(record.created_at, now),
        last_activity_ago=time_ago(record.last_activity_at, now) if record.last_activity_at else None,
        last_comment_ago=time_ago(record.last_comment_at, now) if record.last_comment_at else None,
    )


def board_columns(records: list[JobRecord]) -> list[tuple[JobStatus, list[JobRecord]]]:
    """Kanban columns in pipeline order."""
    return [(status, [r for r in records if r.status == status]) for status in JobStatus]


def dashboard_stats(records: list[JobRecord]) -> list[dict]:
    def proposals(status: str) -> list[JobRecord]:
        return [r for r in records if (r.proposal_status or "").lower() == status]

    sent = proposals("sent")
    viewed = proposals("viewed")
    return [
        {
            "title": "Unactioned leads",
            "value": sum(1 for r in records if r.status == JobStatus.NEW),
            "subtitle": None,
            "href": f"/web/jobs?status_filter={JobStatus.NEW.value}",
        },
        {
            "title": "Unopened sent proposals",
            "value": len(sent),
            "subtitle": format_currency(sum(r.value for r in sent)),
            "href": f"/web/jobs?status_filter={JobStatus.SENT.value}",
        },
        {
            "title": "Unsigned viewed proposals",
            "value": len(viewed),
            "subtitle": format_currency(sum(r.value for r in viewed)),
            "href": "/web/jobs",
        },
        {
            "title": "Pipeline value",
            "value": len(records),
            "subtitle": format_currency(sum(r.value for r in records if r.status != JobStatus.COMPLETE)),
            "href": "/web/jobs",
        },
    ]
