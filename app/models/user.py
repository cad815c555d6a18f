from sqlalchemy import Column, String, Boolean, DateTime

from app.core.db import Base, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)  # uuid string
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
