import uuid
from datetime import datetime, timedelta
from typing import Iterable, Optional

import structlog
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import as_utc, utcnow
from app.core.errors import ValidationFailed
from app.models.activity import ActivityType, JobActivity
from app.models.job import Job
from app.models.user import User
from app.schemas.activity import ActivityFeedOut, ActivityOut, ActivityRecord, FeedFilterOut
from app.services import activity_rules
from app.services.formatting import display_name_for, initials_for, time_ago
from app.services.query_cache import activity_feed_key, job_activity_key, query_cache
from app.services.store import reading

logger = structlog.get_logger(__name__)


def create_job_activity(
    db: Session,
    job: Job,
    activity_type: ActivityType,
    summary: str,
    actor: Optional[User] = None,
    metadata: Optional[dict] = None,
) -> JobActivity:
    """Stage an activity entry on the caller's transaction; the caller commits."""
    now = utcnow()
    name = display_name_for(actor.full_name, actor.email) if actor else None
    entry = JobActivity(
        id=str(uuid.uuid4()),
        job_id=job.id,
        actor_user_id=actor.id if actor else None,
        actor_name=name,
        actor_initials=initials_for(name) if name else None,
        type=activity_type.value,
        summary=summary,
        metadata_json=dict(metadata or {}),
        created_at=now,
    )
    db.add(entry)
    job.last_activity_at = now
    logger.debug("activity_staged", job_id=job.id, activity_type=activity_type.value)
    return entry


def _record(row: JobActivity, job: Optional[Job] = None) -> ActivityRecord:
    return ActivityRecord(
        id=row.id,
        job_id=row.job_id,
        actor_user_id=row.actor_user_id,
        actor_name=row.actor_name,
        actor_initials=row.actor_initials,
        type=row.type,
        summary=row.summary,
        metadata=row.metadata_json or {},
        created_at=as_utc(row.created_at),
        job_address=job.address if job else None,
        job_customer_name=job.customer_name if job else None,
    )


def parse_types(types: Optional[Iterable[str]]) -> Optional[tuple]:
    """Feed filters: blanks and "all" mean no filter; unknown names are rejected."""
    if not types:
        return None
    wanted = []
    for t in types:
        t = (t or "").strip()
        if not t or t == "all":
            continue
        try:
            wanted.append(ActivityType(t).value)
        except ValueError:
            raise ValidationFailed(f"Unknown activity type: {t}")
    return tuple(sorted(set(wanted))) or None


def list_activity_feed(
    db: Session,
    job_id: Optional[str] = None,
    types: Optional[tuple] = None,
    limit: Optional[int] = None,
) -> list[ActivityRecord]:
    limit = limit or settings.ACTIVITY_FEED_DEFAULT_LIMIT

    def load() -> list[ActivityRecord]:
        with reading("activity"):
            q = db.query(JobActivity, Job).join(Job, Job.id == JobActivity.job_id)
            if job_id:
                q = q.filter(JobActivity.job_id == job_id)
            if types:
                q = q.filter(JobActivity.type.in_(types))
            rows = q.order_by(JobActivity.created_at.desc()).limit(limit).all()
        return [_record(activity, job) for activity, job in rows]

    return query_cache.fetch(activity_feed_key(job_id, types, limit), load)


def list_job_activity(db: Session, job_id: str, limit: Optional[int] = None) -> list[ActivityRecord]:
    limit = limit or settings.JOB_ACTIVITY_LIMIT

    def load() -> list[ActivityRecord]:
        with reading("activity"):
            rows = (
                db.query(JobActivity)
                .filter(JobActivity.job_id == job_id)
                .order_by(JobActivity.created_at.desc())
                .limit(limit)
                .all()
            )
        return [_record(r) for r in rows]

    return query_cache.fetch(job_activity_key(job_id, limit), load)


def present_activity(record: ActivityRecord, now: datetime, hot: Iterable[str] = ()) -> ActivityOut:
    appearance = activity_rules.activity_appearance(record.type)
    return ActivityOut(
        **record.model_dump(),
        time_ago=time_ago(record.created_at, now),
        icon=appearance.icon,
        style=appearance.style,
        is_hot=record.job_id in hot,
    )


def build_feed(records: list[ActivityRecord], now: Optional[datetime] = None) -> ActivityFeedOut:
    now = now or utcnow()
    hot = activity_rules.hot_job_ids(
        records,
        now,
        window=timedelta(hours=settings.HOT_JOB_WINDOW_HOURS),
        threshold=settings.HOT_JOB_THRESHOLD,
    )
    return ActivityFeedOut(
        items=[present_activity(r, now, hot) for r in records],
        hot_job_ids=sorted(hot),
        refetch_interval_seconds=settings.ACTIVITY_FEED_POLL_SECONDS,
        filters=[FeedFilterOut(id=fid, label=label) for fid, label in activity_rules.FEED_FILTERS],
    )
