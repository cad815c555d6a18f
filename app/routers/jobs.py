from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.db import get_db, utcnow
from app.models.job import JobStatus
from app.models.user import User
from app.schemas.activity import ActivityOut
from app.schemas.comment import CommentCreate, CommentOut
from app.schemas.job import JobAssign, JobCreate, JobOut, JobStatusUpdate
from app.services import activity as activity_service
from app.services import comments as comment_service
from app.services import jobs as job_service

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("", response_model=JobOut, status_code=201)
def create_job(
    payload: JobCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    job = job_service.create_job(db, payload, actor=user)
    return job_service.present_job(job, utcnow())


@router.get("", response_model=list[JobOut])
def list_jobs(
    status_filter: Optional[str] = None,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    status = None
    if status_filter:
        try:
            status = JobStatus(status_filter)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid status_filter")

    now = utcnow()
    return [job_service.present_job(j, now) for j in job_service.list_jobs(db, status)]


@router.get("/{job_id}", response_model=JobOut)
def get_job(
    job_id: str,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return job_service.present_job(job_service.get_job(db, job_id), utcnow())


@router.post("/{job_id}/status", response_model=JobOut)
def update_status(
    job_id: str,
    payload: JobStatusUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    job = job_service.update_job_status(db, job_id, payload.status, actor=user)
    return job_service.present_job(job, utcnow())


@router.post("/{job_id}/assign", response_model=JobOut)
def assign(
    job_id: str,
    payload: JobAssign,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    job = job_service.assign_job(db, job_id, payload.assignee_name, actor=user)
    return job_service.present_job(job, utcnow())


@router.get("/{job_id}/comments", response_model=list[CommentOut])
def list_job_comments(
    job_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    job_service.get_job_row(db, job_id)
    now = utcnow()
    return [comment_service.present_comment(c, user.id, now) for c in comment_service.list_comments(db, job_id)]


@router.post("/{job_id}/comments", response_model=CommentOut, status_code=201)
def create_job_comment(
    job_id: str,
    payload: CommentCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    comment = comment_service.create_comment(
        db, job_id, payload.body, actor=user, parent_comment_id=payload.parent_comment_id
    )
    return comment_service.present_comment(comment, user.id, utcnow())


@router.get("/{job_id}/activity", response_model=list[ActivityOut])
def list_job_activity(
    job_id: str,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    if limit is not None and not (1 <= limit <= 200):
        raise HTTPException(status_code=400, detail="limit must be between 1 and 200")

    job_service.get_job_row(db, job_id)
    now = utcnow()
    return [
        activity_service.present_activity(a, now)
        for a in activity_service.list_job_activity(db, job_id, limit)
    ]
