import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from atelier import notify
from atelier.services.project_comments import time_ago

from conftest import create_board, events_of


@pytest.fixture
def project(client, designer):
    headers = designer[0]
    board_id = create_board(client, headers)
    resp = client.post(f"/api/boards/{board_id}/projects", json={"name": "Penthouse"}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["project"]["id"]


def comment(client, headers, project_id, text, **extra):
    resp = client.post(f"/api/projects/{project_id}/comments", json={"comment_text": text, **extra}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["comment"]


def listing(client, headers, project_id, **params):
    resp = client.get(f"/api/projects/{project_id}/comments", params=params, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_add_comment_and_event(client, designer, project, db):
    body = comment(client, designer[0], project, "  Love the marble  ")
    assert body["comment_text"] == "Love the marble"
    assert body["user_id"] == designer[1]
    assert body["time_ago"] == "just now"
    assert body["was_edited"] is False
    assert body["can_edit"] is True
    event = events_of(db, "project_comment_added", object_id=body["id"])[0]
    assert event.board_id is not None


def test_comment_ordering_urgent_then_top_level_then_oldest(client, designer, project):
    headers = designer[0]
    plain = comment(client, headers, project, "First thought")
    urgent = comment(client, headers, project, "Ceiling leak", is_urgent=True)
    reply = comment(client, headers, project, "On it", parent_comment_id=plain["id"])
    later = comment(client, headers, project, "Second thought")

    data = listing(client, headers, project)
    assert [row["id"] for row in data["comments"]] == [urgent["id"], plain["id"], later["id"], reply["id"]]
    assert data["total"] == 4

    page = listing(client, headers, project, limit=2, offset=1)
    assert [row["id"] for row in page["comments"]] == [plain["id"], later["id"]]


def test_reply_rules(client, designer, project):
    headers = designer[0]
    top = comment(client, headers, project, "Top")
    reply = comment(client, headers, project, "Reply", parent_comment_id=top["id"])

    nested = client.post(
        f"/api/projects/{project}/comments",
        json={"comment_text": "Nested", "parent_comment_id": reply["id"]},
        headers=headers,
    )
    assert nested.status_code == 400
    assert nested.json()["message"] == "Replies can only be made to top-level comments."

    missing = client.post(
        f"/api/projects/{project}/comments", json={"comment_text": "Orphan", "parent_comment_id": 999999}, headers=headers
    )
    assert missing.json()["message"] == "Parent comment not found in this project."


def test_comment_validation(client, designer, project):
    headers = designer[0]
    url = f"/api/projects/{project}/comments"
    assert client.post(url, json={"comment_text": "  "}, headers=headers).json()["message"] == "Comment text is required."
    long_ref = client.post(url, json={"comment_text": "x", "item_ref": "r" * 101}, headers=headers)
    assert long_ref.status_code == 400
    assert "Item reference" in long_ref.json()["message"]


def test_refs_scope_the_stream(client, designer, project):
    headers = designer[0]
    comment(client, headers, project, "General")
    scoped = comment(client, headers, project, "About the sofa", item_ref="sofa-1")
    comment(client, headers, project, "About the clip", item_ref="sofa-1", video_ref="v2")

    general = listing(client, headers, project)
    assert [row["comment_text"] for row in general["comments"]] == ["General"]

    sofa = listing(client, headers, project, item_ref="sofa-1")
    assert [row["id"] for row in sofa["comments"]] == [scoped["id"]]
    assert sofa["total"] == 1

    clip = listing(client, headers, project, item_ref="sofa-1", video_ref="v2")
    assert [row["comment_text"] for row in clip["comments"]] == ["About the clip"]


def test_outsiders_cannot_comment(client, other_designer, project):
    resp = client.post(f"/api/projects/{project}/comments", json={"comment_text": "Hi"}, headers=other_designer[0])
    assert resp.status_code == 403
    assert client.get(f"/api/projects/{project}/comments", headers=other_designer[0]).status_code == 403


def test_owner_notified_when_someone_else_comments(client, designer, admin, project):
    comment(client, designer[0], project, "Own note")
    assert notify.NOTIFICATION_OUTBOX == []

    comment(client, admin[0], project, "Please check the delivery date", is_urgent=True)
    assert len(notify.NOTIFICATION_OUTBOX) == 1
    to_email, subject, message = notify.NOTIFICATION_OUTBOX[0]
    assert to_email == designer[2]
    assert subject == "[Urgent] New comment on Penthouse"
    assert message == "Please check the delivery date"


def test_update_and_delete_by_author_or_admin(client, designer, admin, project, db):
    headers = designer[0]
    body = comment(client, headers, project, "Draft wording")

    updated = client.patch(f"/api/project-comments/{body['id']}", json={"comment_text": "Final wording"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["message"] == "Comment updated."
    assert updated.json()["comment"]["comment_text"] == "Final wording"
    assert updated.json()["comment"]["was_edited"] is True
    assert events_of(db, "project_comment_updated", object_id=body["id"])

    admin_note = comment(client, admin[0], project, "Admin note")
    admin_view = listing(client, headers, project)["comments"]
    assert [row["can_edit"] for row in admin_view if row["id"] == admin_note["id"]] == [False]
    denied = client.patch(f"/api/project-comments/{admin_note['id']}", json={"comment_text": "Mine now"}, headers=headers)
    assert denied.status_code == 403

    removed = client.delete(f"/api/project-comments/{body['id']}", headers=admin[0])
    assert removed.status_code == 200
    assert removed.json()["message"] == "Comment deleted."
    assert listing(client, headers, project)["total"] == 1
    gone = client.patch(f"/api/project-comments/{body['id']}", json={"comment_text": "Back"}, headers=headers)
    assert gone.status_code == 403
    assert client.delete(f"/api/project-comments/{body['id']}", headers=headers).status_code == 403
    assert events_of(db, "project_comment_deleted", object_id=body["id"])


def test_time_ago_buckets():
    now = datetime(2026, 5, 10, 12, 0, tzinfo=timezone.utc)
    assert time_ago(None, now) == ""
    assert time_ago(now - timedelta(seconds=30), now) == "just now"
    assert time_ago(now - timedelta(minutes=1), now) == "1 minute ago"
    assert time_ago(now - timedelta(minutes=5), now) == "5 minutes ago"
    assert time_ago(now - timedelta(hours=2), now) == "2 hours ago"
    assert time_ago(now - timedelta(days=3), now) == "3 days ago"
    assert time_ago(datetime(2026, 4, 1, 9, 0), now) == "2026-04-01"


def test_missing_and_foreign_comments_look_the_same(client, designer, other_designer, project):
    body = comment(client, designer[0], project, "Private note")
    outsider = other_designer[0]
    for url in (f"/api/project-comments/{body['id']}", "/api/project-comments/999999"):
        patched = client.patch(url, json={"comment_text": ""}, headers=outsider)
        assert patched.status_code == 403
        assert patched.json()["message"] == "Comment not found or access denied"
        deleted = client.delete(url, headers=outsider)
        assert deleted.status_code == 403
        assert deleted.json()["message"] == "Comment not found or access denied"


def test_owner_notification_runs_off_the_event_loop(client, designer, admin, project, monkeypatch):
    seen = []

    def fake_send(to_email, subject, message):
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            seen.append("worker")
        else:
            seen.append("event-loop")

    monkeypatch.setattr(notify, "send_email", fake_send)
    comment(client, admin[0], project, "Delivery moved to Friday")
    assert seen == ["worker"]
