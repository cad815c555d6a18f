import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.core.db import utcnow
from app.core.errors import PermissionDenied
from app.models.activity import JobActivity
from app.models.comment import JobComment
from app.models.job import Job
from app.services import comments as comment_service


LONG_BODY = "Looks good, proceeding now with install. Crew arrives Monday at 8am sharp."


def post_comment(client, headers, job_id, body):
    return client.post(f"/jobs/{job_id}/comments", json={"body": body}, headers=headers)


def test_comment_creates_one_activity_with_truncated_preview(client, auth_headers, job, db):
    resp = post_comment(client, auth_headers, job.id, LONG_BODY)
    assert resp.status_code == 201, resp.text
    comment = resp.json()
    assert comment["author_name"] == "Alice Jones"
    assert comment["author_initials"] == "AJ"
    assert comment["can_edit"] is True
    assert comment["can_delete"] is True
    assert comment["edited"] is False

    activities = db.query(JobActivity).filter(JobActivity.type == "comment_created").all()
    assert len(activities) == 1
    summary = activities[0].summary
    assert summary == f'Alice Jones commented: "{LONG_BODY[:50]}..."'
    assert summary.endswith('..."')
    assert activities[0].metadata_json == {"comment_id": comment["id"]}


def test_short_comment_has_no_ellipsis(client, auth_headers, job, db):
    post_comment(client, auth_headers, job.id, "Hi")
    activity = db.query(JobActivity).one()
    assert activity.summary == 'Alice Jones commented: "Hi"'


def test_comment_updates_job_counters_and_cached_reads(client, auth_headers, job):
    # prime every cache the write should invalidate
    assert client.get("/jobs", headers=auth_headers).json()[0]["comment_count"] == 0
    assert client.get(f"/jobs/{job.id}/comments", headers=auth_headers).json() == []
    assert client.get(f"/jobs/{job.id}/activity", headers=auth_headers).json() == []
    assert client.get("/activity", headers=auth_headers).json()["items"] == []

    post_comment(client, auth_headers, job.id, "Crew confirmed for Tuesday")

    listed = client.get("/jobs", headers=auth_headers).json()[0]
    assert listed["comment_count"] == 1
    assert listed["last_comment_snippet"] == "Crew confirmed for Tuesday"
    assert listed["last_activity_at"] is not None
    assert len(client.get(f"/jobs/{job.id}/comments", headers=auth_headers).json()) == 1
    assert len(client.get(f"/jobs/{job.id}/activity", headers=auth_headers).json()) == 1
    feed = client.get("/activity", headers=auth_headers).json()
    assert feed["items"][0]["job_customer_name"] == "Jane Doe"


def test_comments_are_oldest_first(client, auth_headers, job):
    for body in ("first", "second", "third"):
        post_comment(client, auth_headers, job.id, body)
    bodies = [c["body"] for c in client.get(f"/jobs/{job.id}/comments", headers=auth_headers).json()]
    assert bodies == ["first", "second", "third"]


def test_empty_comment_rejected(client, auth_headers, job, db):
    resp = post_comment(client, auth_headers, job.id, "   ")
    assert resp.status_code == 400
    assert db.query(JobComment).count() == 0
    assert db.query(JobActivity).count() == 0


def test_reply_must_target_same_job(client, auth_headers, job, make_job):
    other = make_job(address="9 Elm St")
    parent = post_comment(client, auth_headers, other.id, "on another job").json()
    resp = client.post(
        f"/jobs/{job.id}/comments",
        json={"body": "reply", "parent_comment_id": parent["id"]},
        headers=auth_headers,
    )
    assert resp.status_code == 400

    same_job_parent = post_comment(client, auth_headers, job.id, "question?").json()
    resp = client.post(
        f"/jobs/{job.id}/comments",
        json={"body": "answer", "parent_comment_id": same_job_parent["id"]},
        headers=auth_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["parent_comment_id"] == same_job_parent["id"]


def test_author_can_edit_inside_window(client, auth_headers, job):
    comment = post_comment(client, auth_headers, job.id, "typo hre").json()
    resp = client.patch(f"/comments/{comment['id']}", json={"body": "typo here"}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["body"] == "typo here"
    assert resp.json()["edited"] is True

    thread = client.get(f"/jobs/{job.id}/comments", headers=auth_headers).json()
    assert thread[0]["body"] == "typo here"


def test_other_user_cannot_edit_or_delete(client, auth_headers, other_headers, job, db):
    comment = post_comment(client, auth_headers, job.id, "mine").json()

    assert client.patch(f"/comments/{comment['id']}", json={"body": "hijack"}, headers=other_headers).status_code == 403
    assert client.delete(f"/comments/{comment['id']}", headers=other_headers).status_code == 403

    seen_by_other = client.get(f"/jobs/{job.id}/comments", headers=other_headers).json()[0]
    assert seen_by_other["can_edit"] is False
    assert seen_by_other["can_delete"] is False
    assert db.query(JobComment).one().body == "mine"


def _old_comment(db, job, user, age):
    created = utcnow() - age
    comment = JobComment(
        id=str(uuid.uuid4()),
        job_id=job.id,
        author_user_id=user.id,
        author_name="Alice Jones",
        author_initials="AJ",
        body="old news",
        created_at=created,
        updated_at=created,
    )
    db.add(comment)
    job.comment_count = 1
    db.commit()
    return comment


def test_edit_window_closes_but_delete_stays_open(client, auth_headers, job, user, db):
    comment = _old_comment(db, job, user, timedelta(minutes=5, seconds=1))

    resp = client.patch(f"/comments/{comment.id}", json={"body": "too late"}, headers=auth_headers)
    assert resp.status_code == 403

    listed = client.get(f"/jobs/{job.id}/comments", headers=auth_headers).json()[0]
    assert listed["can_edit"] is False
    assert listed["can_delete"] is True

    assert client.delete(f"/comments/{comment.id}", headers=auth_headers).status_code == 200


def test_update_comment_service_boundary(db, job, user):
    comment = _old_comment(db, job, user, timedelta(minutes=1))
    created = comment.created_at

    updated = comment_service.update_comment(
        db, comment.id, "still editable", user, now=created + timedelta(minutes=4, seconds=59)
    )
    assert updated.body == "still editable"

    with pytest.raises(PermissionDenied):
        comment_service.update_comment(db, comment.id, "nope", user, now=created + timedelta(minutes=5, seconds=1))


def test_delete_is_soft_and_recounts(client, auth_headers, job, db):
    first = post_comment(client, auth_headers, job.id, "first").json()
    second = post_comment(client, auth_headers, job.id, "second").json()

    resp = client.delete(f"/comments/{second['id']}", headers=auth_headers)
    assert resp.status_code == 200

    db.expire_all()
    rows = db.query(JobComment).order_by(JobComment.created_at).all()
    assert len(rows) == 2
    assert rows[1].is_deleted is True

    thread = client.get(f"/jobs/{job.id}/comments", headers=auth_headers).json()
    assert [c["id"] for c in thread] == [first["id"]]

    listed = client.get("/jobs", headers=auth_headers).json()[0]
    assert listed["comment_count"] == 1
    assert listed["last_comment_snippet"] == "first"

    assert client.delete(f"/comments/{second['id']}", headers=auth_headers).status_code == 404


def test_store_failure_reports_and_keeps_state(client, auth_headers, job, db, monkeypatch):
    client.get("/jobs", headers=auth_headers)

    def broken_commit(self):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr("sqlalchemy.orm.Session.commit", broken_commit)
    resp = post_comment(client, auth_headers, job.id, "will not land")
    monkeypatch.undo()

    assert resp.status_code == 503
    assert resp.json()["error"]["message"] == "Failed to add comment"

    db.expire_all()
    assert db.query(JobComment).count() == 0
    assert db.query(JobActivity).count() == 0
    assert db.get(Job, job.id).comment_count == 0
    assert client.get("/jobs", headers=auth_headers).json()[0]["comment_count"] == 0


def test_editing_latest_comment_refreshes_job_snippet(client, auth_headers, job):
    comment = post_comment(client, auth_headers, job.id, "Crew confirmed for Tuesday").json()
    assert client.get("/jobs", headers=auth_headers).json()[0]["last_comment_snippet"] == "Crew confirmed for Tuesday"

    resp = client.patch(f"/comments/{comment['id']}", json={"body": "Crew moved to Friday"}, headers=auth_headers)
    assert resp.status_code == 200

    assert client.get(f"/jobs/{job.id}", headers=auth_headers).json()["last_comment_snippet"] == "Crew moved to Friday"
    listed = client.get("/jobs", headers=auth_headers).json()[0]
    assert listed["last_comment_snippet"] == "Crew moved to Friday"
    assert listed["comment_count"] == 1


def test_editing_older_comment_keeps_latest_snippet(client, auth_headers, job):
    first = post_comment(client, auth_headers, job.id, "first").json()
    post_comment(client, auth_headers, job.id, "second")

    client.patch(f"/comments/{first['id']}", json={"body": "first, fixed"}, headers=auth_headers)

    assert client.get(f"/jobs/{job.id}", headers=auth_headers).json()["last_comment_snippet"] == "second"


def test_reply_to_deleted_comment_rejected(client, auth_headers, job, db):
    parent = post_comment(client, auth_headers, job.id, "question?").json()
    client.delete(f"/comments/{parent['id']}", headers=auth_headers)

    resp = client.post(
        f"/jobs/{job.id}/comments",
        json={"body": "late answer", "parent_comment_id": parent["id"]},
        headers=auth_headers,
    )
    assert resp.status_code == 400
    assert db.query(JobComment).count() == 1
