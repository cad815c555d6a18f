"""
Pytest configuration and fixtures.

The app runs against an in-memory SQLite database (single shared connection);
tables are recreated and the read cache cleared for every test.
"""
import os
import uuid
from datetime import datetime, timezone

os.environ.setdefault("JWT_SECRET", "test-secret-for-the-crm-suite-0123456789abcdef")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_DEMO_USERS"] = "false"

import pytest
from fastapi.testclient import TestClient

from app.core.db import Base, SessionLocal, engine
from app.core.security import create_access_token, hash_password
from app.main import app
from app.models.activity import JobActivity
from app.models.job import Job, JobStatus
from app.models.user import User
from app.services.query_cache import query_cache


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    query_cache.clear()
    yield
    query_cache.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(db):
    def _make(email="alice@example.com", full_name="Alice Jones", password="password123") -> User:
        user = User(
            id=str(uuid.uuid4()),
            email=email,
            full_name=full_name,
            password_hash=hash_password(password),
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def other_user(make_user):
    return make_user(email="bob@example.com", full_name="Bob Smith")


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}


@pytest.fixture
def auth_headers(user):
    return headers_for(user)


@pytest.fixture
def make_job(db):
    def _make(**overrides) -> Job:
        fields = {
            "id": str(uuid.uuid4()),
            "address": "1 Main St",
            "customer_name": "Jane Doe",
            "value": 0,
            "status": JobStatus.NEW,
            "assignee_name": "Bob Smith",
            "assignee_initials": "BS",
            "comment_count": 0,
        }
        fields.update(overrides)
        job = Job(**fields)
        db.add(job)
        db.commit()
        db.refresh(job)
        return job

    return _make


@pytest.fixture
def job(make_job):
    return make_job()


@pytest.fixture
def add_activity(db):
    def _add(job_id: str, created_at: datetime, type: str = "status_changed", summary: str = "Something happened"):
        entry = JobActivity(
            id=str(uuid.uuid4()),
            job_id=job_id,
            type=type,
            summary=summary,
            metadata_json={},
            created_at=created_at,
        )
        db.add(entry)
        db.commit()
        return entry

    return _add


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def other_headers(other_user):
    return headers_for(other_user)
