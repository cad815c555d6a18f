from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.db import get_db
from app.models.contact import ContactType
from app.models.user import User
from app.schemas.contact import ContactCreate, ContactOut
from app.services import contacts as contact_service

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.get("", response_model=list[ContactOut])
def list_contacts(
    q: Optional[str] = None,
    type: Optional[ContactType] = None,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return [contact_service.present_contact(c) for c in contact_service.list_contacts(db, q, type)]


@router.post("", response_model=ContactOut, status_code=201)
def create_contact(
    payload: ContactCreate,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return contact_service.present_contact(contact_service.create_contact(db, payload))
