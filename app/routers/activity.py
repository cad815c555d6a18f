from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.db import get_db
from app.models.user import User
from app.schemas.activity import ActivityFeedOut
from app.services import activity as activity_service
from app.services import jobs as job_service

router = APIRouter(prefix="/activity", tags=["activity"])


@router.get("", response_model=ActivityFeedOut)
def activity_feed(
    job_id: Optional[str] = None,
    type: Optional[list[str]] = Query(None),
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    if limit is not None and not (1 <= limit <= 200):
        raise HTTPException(status_code=400, detail="limit must be between 1 and 200")

    types = activity_service.parse_types(type)
    if job_id:
        job_service.get_job_row(db, job_id)
    records = activity_service.list_activity_feed(db, job_id=job_id, types=types, limit=limit)
    return activity_service.build_feed(records)
