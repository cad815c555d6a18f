import enum
from sqlalchemy import Column, String, DateTime, Enum

from app.core.db import Base, utcnow


class ContactType(str, enum.Enum):
    CUSTOMER = "Customer"
    CREW = "Crew"


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(String, primary_key=True)  # uuid string
    name = Column(String, index=True, nullable=False)
    type = Column(
        Enum(ContactType, values_callable=lambda cls: [m.value for m in cls]),
        default=ContactType.CUSTOMER,
        nullable=False,
    )
    label = Column(String, nullable=True)  # VIP, Lead, ...
    email = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    job = Column(String, nullable=True)  # free text: job name or address, not a foreign key

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True, nullable=False)
