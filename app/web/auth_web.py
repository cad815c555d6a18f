from fastapi import Request, HTTPException, status, Depends
from sqlalchemy.orm import Session

from app.core.auth import user_from_token
from app.core.db import get_db
from app.models.user import User


COOKIE_NAME = "access_token"


def get_current_user_from_cookie(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user_from_token(db, token)
