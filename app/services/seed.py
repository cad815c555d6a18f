import uuid
from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.models.user import User


def seed_users(db: Session):
    # Only seed if no users exist
    if db.query(User).count() > 0:
        return

    users = [
        User(
            id=str(uuid.uuid4()),
            email="office@example.com",
            full_name="Office Manager",
            password_hash=hash_password("office123"),
            is_active=True,
        ),
        User(
            id=str(uuid.uuid4()),
            email="crew.lead@example.com",
            full_name="Crew Lead",
            password_hash=hash_password("crew1234"),
            is_active=True,
        ),
    ]

    db.add_all(users)
    db.commit()
