from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.db import get_db, utcnow
from app.models.user import User
from app.schemas.comment import CommentOut, CommentUpdate
from app.services import comments as comment_service

router = APIRouter(prefix="/comments", tags=["comments"])


@router.patch("/{comment_id}", response_model=CommentOut)
def update_comment(
    comment_id: str,
    payload: CommentUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    comment = comment_service.update_comment(db, comment_id, payload.body, actor=user)
    return comment_service.present_comment(comment, user.id, utcnow())


@router.delete("/{comment_id}")
def delete_comment(
    comment_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    comment = comment_service.delete_comment(db, comment_id, actor=user)
    return {"ok": True, "id": comment.id, "job_id": comment.job_id}
