from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from app.models.contact import ContactType


class ContactCreate(BaseModel):
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    type: ContactType = ContactType.CUSTOMER
    label: Optional[str] = None
    job: Optional[str] = None


class ContactRecord(BaseModel):
    id: str
    name: str
    type: ContactType
    label: Optional[str] = None
    email: str
    phone: Optional[str] = None
    job: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ContactOut(BaseModel):
    id: str
    name: str
    type: ContactType
    label: Optional[str] = None
    email: str
    phone: str
    job: str
    created_at: datetime
    created_display: str
