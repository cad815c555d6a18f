from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, NamedTuple, Optional

from app.core.db import as_utc
from app.models.activity import ActivityType

HOT_JOB_WINDOW = timedelta(hours=24)
HOT_JOB_THRESHOLD = 3
COMMENT_EDIT_WINDOW = timedelta(minutes=5)


class ActivityAppearance(NamedTuple):
    icon: str
    style: str


FALLBACK_APPEARANCE = ActivityAppearance("activity", "muted")

_APPEARANCES = {
    ActivityType.COMMENT_CREATED.value: ActivityAppearance("message-square", "primary"),
    ActivityType.STATUS_CHANGED.value: ActivityAppearance("refresh-cw", "warning"),
    ActivityType.ASSIGNED_CHANGED.value: ActivityAppearance("user-check", "accent"),
    ActivityType.JOB_CREATED.value: ActivityAppearance("plus-circle", "success"),
    ActivityType.TASK_COMPLETED.value: ActivityAppearance("check-square", "success"),
    ActivityType.PROPOSAL_CREATED.value: ActivityAppearance("file-text", "primary"),
    ActivityType.PROPOSAL_SENT.value: ActivityAppearance("send", "primary"),
    ActivityType.PROPOSAL_SIGNED.value: ActivityAppearance("pen-line", "success"),
}

# pulse panel filter chips: (id, label); "all" means no type filter
FEED_FILTERS = [
    ("all", "All"),
    (ActivityType.COMMENT_CREATED.value, "Comments"),
    (ActivityType.STATUS_CHANGED.value, "Status"),
    (ActivityType.ASSIGNED_CHANGED.value, "Assignments"),
    (ActivityType.TASK_COMPLETED.value, "Tasks"),
]


def activity_appearance(activity_type) -> ActivityAppearance:
    key = getattr(activity_type, "value", activity_type)
    if not isinstance(key, str):
        return FALLBACK_APPEARANCE
    return _APPEARANCES.get(key, FALLBACK_APPEARANCE)


def hot_job_ids(
    activities: Iterable,
    now: datetime,
    window: timedelta = HOT_JOB_WINDOW,
    threshold: int = HOT_JOB_THRESHOLD,
) -> set[str]:
    """
    Jobs with at least `threshold` entries newer than `now - window`.

    `activities` is whatever the caller has loaded (records or rows); only
    `job_id` and `created_at` are read.
    """
    cutoff = as_utc(now) - window
    counts = Counter(
        a.job_id for a in activities if a.created_at is not None and as_utc(a.created_at) > cutoff
    )
    return {job_id for job_id, count in counts.items() if count >= threshold}


def can_edit_comment(
    author_user_id: str,
    created_at: datetime,
    user_id: Optional[str],
    now: datetime,
    window: timedelta = COMMENT_EDIT_WINDOW,
) -> bool:
    if not user_id or author_user_id != user_id:
        return False
    return as_utc(now) < as_utc(created_at) + window


def can_delete_comment(author_user_id: str, user_id: Optional[str]) -> bool:
    return bool(user_id) and author_user_id == user_id
