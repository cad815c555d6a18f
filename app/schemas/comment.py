from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class CommentCreate(BaseModel):
    body: str
    parent_comment_id: Optional[str] = None


class CommentUpdate(BaseModel):
    body: str


class CommentRecord(BaseModel):
    id: str
    job_id: str
    author_user_id: str
    author_name: str
    author_initials: str
    body: str
    parent_comment_id: Optional[str] = None
    is_deleted: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CommentOut(CommentRecord):
    created_ago: str
    edited: bool
    can_edit: bool
    can_delete: bool
