import os
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db, utcnow
from app.core.errors import AppError, NotFound
from app.core.security import verify_password, create_access_token
from app.models.contact import ContactType
from app.models.job import JobPriority, JobStatus
from app.models.user import User
from app.schemas.contact import ContactCreate
from app.schemas.job import JobCreate
from app.services import activity as activity_service
from app.services import comments as comment_service
from app.services import contacts as contact_service
from app.services import jobs as job_service
from app.services.activity_rules import FEED_FILTERS
from app.services.formatting import JOB_STATUS_LABELS, display_name_for, initials_for

from app.web.auth_web import COOKIE_NAME, get_current_user_from_cookie

templates = Jinja2Templates(directory=os.path.join(os.path.dirname(__file__), "templates"))

router = APIRouter(prefix="/web", tags=["web"])

EMPTY_JOB_FORM = {
    "customer_name": "",
    "address": "",
    "assignee_name": "",
    "value": "",
    "status": JobStatus.NEW.value,
}
EMPTY_CONTACT_FORM = {"name": "", "email": "", "phone": "", "type": ContactType.CUSTOMER.value, "label": "", "job": ""}


def _redirect(url: str, **params) -> RedirectResponse:
    query = urlencode({k: v for k, v in params.items() if v})
    return RedirectResponse(url=f"{url}?{query}" if query else url, status_code=303)


def _page(request: Request, user: User, template: str, context: dict, status_code: int = 200):
    name = display_name_for(user.full_name, user.email)
    base = {
        "request": request,
        "user": user,
        "user_name": name,
        "user_initials": initials_for(name),
        "notice": request.query_params.get("notice"),
        "error": request.query_params.get("error"),
    }
    base.update(context)
    return templates.TemplateResponse(template, base, status_code=status_code)


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request):
    return templates.TemplateResponse("login.html", {"request": request, "error": None})


@router.post("/login")
def login_action(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        return templates.TemplateResponse("login.html", {"request": request, "error": "Invalid credentials"}, status_code=401)

    token = create_access_token(subject=user.id, email=user.email)
    resp = RedirectResponse(url="/web/dashboard", status_code=303)
    resp.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=60 * 60 * 12,
        samesite="lax",
        secure=False,   # set True behind HTTPS
        httponly=True,
    )
    return resp


@router.post("/logout")
def logout_action():
    resp = RedirectResponse(url="/web/login", status_code=303)
    resp.delete_cookie(COOKIE_NAME)
    return resp


@router.get("/", response_class=HTMLResponse)
def web_home(user: User = Depends(get_current_user_from_cookie)):
    return RedirectResponse("/web/dashboard", status_code=303)


# -------------------
# DASHBOARD + PULSE
# -------------------
@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(
    request: Request,
    filter: str = "all",
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user_from_cookie),
):
    now = utcnow()
    jobs = job_service.list_jobs(db)
    try:
        types = activity_service.parse_types([filter])
    except AppError:
        types, filter = None, "all"
    feed = activity_service.build_feed(activity_service.list_activity_feed(db, types=types), now)

    return _page(
        request,
        user,
        "dashboard.html",
        {
            "stats": job_service.dashboard_stats(jobs),
            "feed": feed,
            "filters": FEED_FILTERS,
            "active_filter": filter,
            "refresh_seconds": settings.ACTIVITY_FEED_POLL_SECONDS,
        },
    )


# -------------------
# JOB BOARD
# -------------------
def _board(request: Request, db: Session, user: User, form: dict, form_error: Optional[str] = None, status_code: int = 200):
    now = utcnow()
    status_filter = request.query_params.get("status_filter")
    try:
        status = JobStatus(status_filter) if status_filter else None
    except ValueError:
        status = None
    jobs = [job_service.present_job(j, now) for j in job_service.list_jobs(db, status)]
    return _page(
        request,
        user,
        "jobs.html",
        {
            "columns": job_service.board_columns(jobs),
            "status_labels": JOB_STATUS_LABELS,
            "priorities": [p.value for p in JobPriority],
            "form": form,
            "form_error": form_error,
            "form_open": form_error is not None,
        },
        status_code=status_code,
    )


@router.get("/jobs", response_class=HTMLResponse)
def job_board(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user_from_cookie),
):
    return _board(request, db, user, dict(EMPTY_JOB_FORM))


@router.post("/jobs", response_class=HTMLResponse)
def create_job_action(
    request: Request,
    customer_name: str = Form(""),
    address: str = Form(""),
    assignee_name: str = Form(""),
    value: str = Form(""),
    status: str = Form(JobStatus.NEW.value),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user_from_cookie),
):
    form = {
        "customer_name": customer_name,
        "address": address,
        "assignee_name": assignee_name,
        "value": value,
        "status": status,
    }
    try:
        payload = JobCreate(
            customer_name=customer_name,
            address=address,
            assignee_name=assignee_name,
            value=value,
            status=JobStatus(status) if status in JOB_STATUS_LABELS else JobStatus.NEW,
        )
        job_service.create_job(db, payload, actor=user)
    except AppError as exc:
        return _board(request, db, user, form, form_error=exc.message, status_code=exc.status_code)

    return _redirect("/web/jobs", notice="Job created successfully")


# -------------------
# JOB DRAWER
# -------------------
@router.get("/jobs/{job_id}", response_class=HTMLResponse)
def job_detail(
    request: Request,
    job_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user_from_cookie),
):
    now = utcnow()
    try:
        job = job_service.present_job(job_service.get_job(db, job_id), now)
    except NotFound as exc:
        return _redirect("/web/jobs", error=exc.message)
    activity = [activity_service.present_activity(a, now) for a in activity_service.list_job_activity(db, job_id)]
    comments = [comment_service.present_comment(c, user.id, now) for c in comment_service.list_comments(db, job_id)]
    return _page(
        request,
        user,
        "job_detail.html",
        {
            "job": job,
            "activity": activity,
            "comments": comments,
            "statuses": [(s.value, JOB_STATUS_LABELS[s.value]) for s in JobStatus],
            "editing": request.query_params.get("edit"),
        },
    )


@router.post("/jobs/{job_id}/status")
def update_status_action(
    job_id: str,
    status: str = Form(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user_from_cookie),
):
    try:
        job_service.update_job_status(db, job_id, JobStatus(status), actor=user)
    except ValueError:
        return _redirect(f"/web/jobs/{job_id}", error="Unknown status")
    except AppError as exc:
        return _redirect(f"/web/jobs/{job_id}", error=exc.message)
    return _redirect(f"/web/jobs/{job_id}", notice="Status updated")


@router.post("/jobs/{job_id}/comments")
def add_comment_action(
    job_id: str,
    body: str = Form(""),
    parent_comment_id: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user_from_cookie),
):
    try:
        comment_service.create_comment(db, job_id, body, actor=user, parent_comment_id=parent_comment_id or None)
    except AppError as exc:
        return _redirect(f"/web/jobs/{job_id}", error=exc.message)
    return _redirect(f"/web/jobs/{job_id}", notice="Comment added")


@router.post("/comments/{comment_id}/edit")
def edit_comment_action(
    comment_id: str,
    job_id: str = Form(...),
    body: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user_from_cookie),
):
    try:
        comment_service.update_comment(db, comment_id, body, actor=user)
    except AppError as exc:
        return _redirect(f"/web/jobs/{job_id}", error=exc.message)
    return _redirect(f"/web/jobs/{job_id}", notice="Comment updated")


@router.post("/comments/{comment_id}/delete")
def delete_comment_action(
    comment_id: str,
    job_id: str = Form(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user_from_cookie),
):
    try:
        comment_service.delete_comment(db, comment_id, actor=user)
    except AppError as exc:
        return _redirect(f"/web/jobs/{job_id}", error=exc.message)
    return _redirect(f"/web/jobs/{job_id}", notice="Comment deleted")


# -------------------
# CONTACTS
# -------------------
def _contacts_page(request: Request, db: Session, user: User, form: dict, form_error: Optional[str] = None, status_code: int = 200):
    q = request.query_params.get("q")
    type_param = request.query_params.get("type")
    try:
        contact_type = ContactType(type_param) if type_param else None
    except ValueError:
        contact_type = None
    contacts = [contact_service.present_contact(c) for c in contact_service.list_contacts(db, q, contact_type)]
    return _page(
        request,
        user,
        "contacts.html",
        {
            "contacts": contacts,
            "q": q or "",
            "active_type": contact_type.value if contact_type else "",
            "contact_types": [t.value for t in ContactType],
            "form": form,
            "form_error": form_error,
            "form_open": form_error is not None,
        },
        status_code=status_code,
    )


@router.get("/contacts", response_class=HTMLResponse)
def contacts_page(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user_from_cookie),
):
    return _contacts_page(request, db, user, dict(EMPTY_CONTACT_FORM))


@router.post("/contacts", response_class=HTMLResponse)
def create_contact_action(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    phone: str = Form(""),
    type: str = Form(ContactType.CUSTOMER.value),
    label: str = Form(""),
    job: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user_from_cookie),
):
    form = {"name": name, "email": email, "phone": phone, "type": type, "label": label, "job": job}
    try:
        payload = ContactCreate(
            name=name,
            email=email,
            phone=phone,
            type=ContactType(type) if type in {t.value for t in ContactType} else ContactType.CUSTOMER,
            label=label,
            job=job,
        )
        contact_service.create_contact(db, payload)
    except AppError as exc:
        return _contacts_page(request, db, user, form, form_error=exc.message, status_code=exc.status_code)

    return _redirect("/web/contacts", notice="Contact created successfully")
