from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.db import get_db
from app.models.user import User
from app.services.formatting import display_name_for, initials_for

router = APIRouter(prefix="/users", tags=["users"])


def _user_out(u: User) -> dict:
    name = display_name_for(u.full_name, u.email)
    return {
        "id": u.id,
        "email": u.email,
        "display_name": name,
        "initials": initials_for(name),
        "is_active": bool(u.is_active),
    }


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return _user_out(user)


@router.get("")
def list_users(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    users = db.query(User).filter(User.is_active == True).order_by(User.full_name.asc()).all()  # noqa: E712
    return [_user_out(u) for u in users]
