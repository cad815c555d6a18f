"""
Display helpers shared by the API responses and the web pages.

Everything here is pure: no session, no settings, and the current instant is
always passed in so results are reproducible.
"""
from datetime import datetime
from typing import NamedTuple, Optional

from app.core.db import as_utc

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR

FRESH_FOR = 3 * DAY
STALE_AFTER = 7 * DAY

COMMENT_PREVIEW_CHARS = 50


class AgeIndicator(NamedTuple):
    level: str
    label: str
    style: str


AGE_FRESH = AgeIndicator("fresh", "On track", "success")
AGE_NEEDS_ATTENTION = AgeIndicator("needs_attention", "Needs attention", "warning")
AGE_STALE = AgeIndicator("stale", "Stale", "destructive")

JOB_STATUS_LABELS = {
    "new": "New Lead",
    "scheduled": "Appointment Scheduled",
    "sent": "Proposal Sent",
    "signed": "Proposal Signed",
    "production": "Production",
    "complete": "Complete",
}

_BADGE_STYLES = {
    "draft": "muted",
    "sent": "primary",
    "viewed": "warning",
    "signed": "success",
    "won": "success",
    "lost": "destructive",
    "declined": "destructive",
}
DEFAULT_BADGE_STYLE = "default"


def format_currency(amount: Optional[float], hide_zero: bool = False) -> Optional[str]:
    if not amount:
        return None if hide_zero else "$0.00"
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def _round(value: float) -> int:
    return int(value + 0.5)


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}" if n == 1 else f"{n} {unit}s"


def time_ago(then: Optional[datetime], now: datetime) -> str:
    """Coarse "N units ago" label. Future instants read as just now."""
    if then is None:
        return ""
    seconds = max((as_utc(now) - as_utc(then)).total_seconds(), 0)
    minutes = _round(seconds / MINUTE)

    if seconds < 30:
        return "less than a minute ago"
    if minutes < 2:
        return "1 minute ago"
    if minutes < 45:
        return f"{minutes} minutes ago"
    if minutes < 90:
        return "about 1 hour ago"
    if minutes < 24 * 60:
        return f"about {_round(minutes / 60)} hours ago"
    if minutes < 42 * 60:
        return "1 day ago"
    if minutes < 30 * 24 * 60:
        return f"{_round(minutes / (24 * 60))} days ago"
    if minutes < 45 * 24 * 60:
        return "about 1 month ago"
    if minutes < 60 * 24 * 60:
        return "about 2 months ago"

    days = minutes / (24 * 60)
    if days < 365:
        return f"{max(_round(days / 30), 2)} months ago"
    return f"about {_plural(max(int(days // 365), 1), 'year')} ago"


def age_indicator(updated_at: Optional[datetime], now: datetime) -> AgeIndicator:
    if updated_at is None:
        return AGE_FRESH
    elapsed = (as_utc(now) - as_utc(updated_at)).total_seconds()
    if elapsed < FRESH_FOR:
        return AGE_FRESH
    if elapsed < STALE_AFTER:
        return AGE_NEEDS_ATTENTION
    return AGE_STALE


def status_badge_style(status: Optional[str]) -> str:
    if not isinstance(status, str):
        return DEFAULT_BADGE_STYLE
    return _BADGE_STYLES.get(status.strip().lower(), DEFAULT_BADGE_STYLE)


def job_status_label(status) -> str:
    value = getattr(status, "value", status) or ""
    return JOB_STATUS_LABELS.get(value, value.replace("_", " ").title())


def format_short_date(dt: Optional[datetime]) -> str:
    if dt is None:
        return ""
    dt = as_utc(dt)
    return f"{dt.strftime('%b')} {dt.day}, {dt.year}"


def initials_for(name: Optional[str]) -> str:
    words = (name or "").split()
    return "".join(w[0] for w in words).upper()[:2]


def display_name_for(full_name: Optional[str], email: Optional[str]) -> str:
    if full_name and full_name.strip():
        return full_name.strip()
    if email and email.split("@")[0]:
        return email.split("@")[0]
    return "User"


def comment_preview(body: str, limit: int = COMMENT_PREVIEW_CHARS) -> str:
    if len(body) > limit:
        return body[:limit] + "..."
    return body


def parse_money(raw) -> float:
    """Form values arrive as text; blanks and junk count as zero."""
    if raw is None:
        return 0.0
    if isinstance(raw, (int, float)):
        return float(raw)
    try:
        value = float(str(raw).strip().replace(",", "").lstrip("$"))
    except ValueError:
        return 0.0
    if value != value or value in (float("inf"), float("-inf")):
        return 0.0
    return value
