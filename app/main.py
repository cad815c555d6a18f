from fastapi import FastAPI
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import Base, engine, SessionLocal
from app.core.errors import setup_exception_handlers
from app.core.logging import RequestIdMiddleware, setup_logging
from app.routers.activity import router as activity_router
from app.routers.auth import router as auth_router
from app.routers.comments import router as comments_router
from app.routers.contacts import router as contacts_router
from app.routers.jobs import router as jobs_router
from app.routers.users import router as users_router
from app.services.seed import seed_users
from app.web.router import router as web_router

# Import models so SQLAlchemy registers them before create_all()
import app.models.user  # noqa: F401
import app.models.job  # noqa: F401
import app.models.contact  # noqa: F401
import app.models.comment  # noqa: F401
import app.models.activity  # noqa: F401

setup_logging()

app = FastAPI(title=settings.APP_NAME, version="0.1.0")
app.add_middleware(RequestIdMiddleware)
setup_exception_handlers(app)

Base.metadata.create_all(bind=engine)

if settings.SEED_DEMO_USERS:
    with SessionLocal() as db:  # type: Session
        seed_users(db)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(jobs_router)
app.include_router(comments_router)
app.include_router(contacts_router)
app.include_router(activity_router)
app.include_router(web_router)


@app.get("/")
def root():
    return {"name": settings.APP_NAME, "docs": "/docs", "health": "/health"}


@app.get("/health")
def health():
    return {"ok": True}
