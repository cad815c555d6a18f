import uuid
from typing import Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.db import as_utc
from app.core.errors import ValidationFailed
from app.models.contact import Contact, ContactType
from app.schemas.contact import ContactCreate, ContactOut, ContactRecord
from app.services.formatting import format_short_date
from app.services.query_cache import CONTACTS, MutationEvent, contacts_key, invalidation_bus, query_cache
from app.services.store import commit_or_fail, reading

logger = structlog.get_logger(__name__)


def _record(contact: Contact) -> ContactRecord:
    record = ContactRecord.model_validate(contact)
    return record.model_copy(update={"created_at": as_utc(contact.created_at)})


def list_contacts(
    db: Session,
    q: Optional[str] = None,
    contact_type: Optional[ContactType] = None,
) -> list[ContactRecord]:
    q = (q or "").strip() or None
    type_value = contact_type.value if contact_type else None

    def load() -> list[ContactRecord]:
        with reading("contacts"):
            query = db.query(Contact)
            if contact_type is not None:
                query = query.filter(Contact.type == contact_type)
            if q:
                like = f"%{q}%"
                query = query.filter(
                    or_(Contact.name.ilike(like), Contact.email.ilike(like), Contact.phone.ilike(like))
                )
            rows = query.order_by(Contact.created_at.desc()).all()
        return [_record(c) for c in rows]

    if q:
        return load()
    return query_cache.fetch(contacts_key(type_value), load)


def create_contact(db: Session, payload: ContactCreate) -> ContactRecord:
    name = (payload.name or "").strip()
    email = (payload.email or "").strip()
    if not name or not email:
        raise ValidationFailed("Name and email are required")

    contact = Contact(
        id=str(uuid.uuid4()),
        name=name,
        email=email,
        phone=(payload.phone or "").strip() or None,
        type=payload.type or ContactType.CUSTOMER,
        label=(payload.label or "").strip() or None,
        job=(payload.job or "").strip() or None,
    )
    db.add(contact)
    commit_or_fail(db, "Failed to create contact", contact_id=contact.id)
    db.refresh(contact)

    logger.info("contact_created", contact_id=contact.id, contact_type=contact.type.value)
    invalidation_bus.publish(MutationEvent("contact", "created", contact.id, keys=((CONTACTS,),)))
    return _record(contact)


def present_contact(record: ContactRecord) -> ContactOut:
    return ContactOut(
        id=record.id,
        name=record.name,
        type=record.type,
        label=record.label,
        email=record.email,
        phone=record.phone or "-",
        job=record.job or "-",
        created_at=record.created_at,
        created_display=format_short_date(record.created_at),
    )
