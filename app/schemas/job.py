from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel

from app.models.job import JobPriority, JobStatus


class JobCreate(BaseModel):
    # required fields are checked after trimming, in the service
    customer_name: str = ""
    address: str = ""
    assignee_name: str = ""
    value: Optional[Union[float, str]] = None
    status: JobStatus = JobStatus.NEW
    priority: JobPriority = JobPriority.NORMAL
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    proposal_status: Optional[str] = None


class JobStatusUpdate(BaseModel):
    status: JobStatus


class JobAssign(BaseModel):
    assignee_name: str


class JobRecord(BaseModel):
    id: str
    address: str
    customer_name: str
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    value: float
    status: JobStatus
    priority: JobPriority
    proposal_status: Optional[str] = None
    assignee_name: str
    assignee_initials: str
    comment_count: int
    last_activity_at: Optional[datetime] = None
    last_comment_at: Optional[datetime] = None
    last_comment_snippet: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AgeIndicatorOut(BaseModel):
    level: str
    label: str
    style: str


class JobOut(JobRecord):
    status_label: str
    value_display: Optional[str] = None
    proposal_badge_style: Optional[str] = None
    age: AgeIndicatorOut
    created_ago: str
    last_activity_ago: Optional[str] = None
    last_comment_ago: Optional[str] = None
