from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class ActivityRecord(BaseModel):
    id: str
    job_id: str
    actor_user_id: Optional[str] = None
    actor_name: Optional[str] = None
    actor_initials: Optional[str] = None
    type: str
    summary: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    # joined from jobs on the global feed
    job_address: Optional[str] = None
    job_customer_name: Optional[str] = None


class ActivityOut(ActivityRecord):
    time_ago: str
    icon: str
    style: str
    is_hot: bool = False


class FeedFilterOut(BaseModel):
    id: str
    label: str


class ActivityFeedOut(BaseModel):
    items: list[ActivityOut]
    hot_job_ids: list[str]
    refetch_interval_seconds: int
    filters: list[FeedFilterOut]
