from datetime import date, timedelta

import pytest

from intranet.models.audit_log import AuditLog
from intranet.models.notification import Notification
from intranet.models.user import AppRole


@pytest.fixture
def colleague(make_user, resort, departments):
    return make_user("bell@coastalhotels.com", AppRole.STAFF, "Bo Bell", "Bellman",
                     property_ids=[resort.id], department_ids=[departments["front_office"].id])


@pytest.fixture
def maid(make_user, resort, departments):
    return make_user("maid@coastalhotels.com", AppRole.STAFF, "Mia Maid", "Room Attendant",
                     property_ids=[resort.id], department_ids=[departments["housekeeping"].id])


def _create(client, user, auth_headers, **payload):
    response = client.post("/api/tasks", headers=auth_headers(user), json={"title": "Restock minibars", **payload})
    assert response.status_code == 201, response.json()
    return response.json()


def _status(client, user, task_id, auth_headers, status):
    return client.post(f"/api/tasks/{task_id}/status", headers=auth_headers(user), json={"status": status})


def test_create_task_defaults_to_creators_placement(client, db_session, staff_user, colleague, resort, departments,
                                                    auth_headers):
    task = _create(client, staff_user, auth_headers, assigned_to_id=colleague.id, priority="high")
    assert task["status"] == "open"
    assert task["priority"] == "high"
    assert task["property_id"] == resort.id
    assert task["department_id"] == departments["front_office"].id
    assert task["created_by_id"] == staff_user.id
    assert task["valid_next_statuses"] == ["in_progress", "cancelled"]

    notes = db_session.query(Notification).filter(Notification.user_id == colleague.id).all()
    assert [n.title for n in notes] == ["New task assigned"]


def test_department_must_match_property(client, staff_user, hq, departments, auth_headers):
    response = client.post(
        "/api/tasks",
        headers=auth_headers(staff_user),
        json={"title": "Audit petty cash", "property_id": hq.id, "department_id": departments["front_office"].id},
    )
    assert response.status_code == 422
    assert response.json()["errors"][0]["code"] == "DEPARTMENT_PROPERTY_MISMATCH"


def test_status_follows_the_task_lifecycle(client, db_session, staff_user, colleague, auth_headers):
    task = _create(client, staff_user, auth_headers, assigned_to_id=colleague.id)

    response = _status(client, colleague, task["id"], auth_headers, "completed")
    assert response.status_code == 409
    assert response.json()["errors"][0]["code"] == "INVALID_STATUS_TRANSITION"

    assert _status(client, colleague, task["id"], auth_headers, "in_progress").json()["status"] == "in_progress"
    assert _status(client, colleague, task["id"], auth_headers, "on_hold").status_code == 200
    assert _status(client, colleague, task["id"], auth_headers, "in_progress").status_code == 200
    done = _status(client, colleague, task["id"], auth_headers, "completed").json()
    assert done["status"] == "completed"
    assert done["completed_at"] is not None
    assert done["valid_next_statuses"] == []

    response = _status(client, colleague, task["id"], auth_headers, "in_progress")
    assert response.status_code == 409

    notes = db_session.query(Notification).filter(Notification.user_id == staff_user.id).all()
    assert [n.title for n in notes] == ["Task completed"]

    changes = (
        db_session.query(AuditLog)
        .filter(AuditLog.action == "task_status_changed")
        .order_by(AuditLog.id)
        .all()
    )
    assert [(a.before_state["status"], a.after_state["status"]) for a in changes] == [
        ("open", "in_progress"), ("in_progress", "on_hold"), ("on_hold", "in_progress"),
        ("in_progress", "completed"),
    ]


def test_visibility_and_editing(client, staff_user, dept_head, maid, hr_user, auth_headers):
    task = _create(client, staff_user, auth_headers)

    def visible(user):
        return [t["id"] for t in client.get("/api/tasks", headers=auth_headers(user)).json()]

    assert visible(staff_user) == [task["id"]]
    assert visible(dept_head) == [task["id"]]
    assert visible(hr_user) == [task["id"]]
    assert visible(maid) == []
    assert client.get(f"/api/tasks/{task['id']}", headers=auth_headers(maid)).status_code == 404

    response = client.patch(f"/api/tasks/{task['id']}", headers=auth_headers(maid), json={"title": "Mine now"})
    assert response.status_code == 404

    response = client.patch(f"/api/tasks/{task['id']}", headers=auth_headers(dept_head),
                            json={"priority": "urgent", "due_date": date.today().isoformat()})
    assert response.status_code == 200
    assert response.json()["priority"] == "urgent"

    response = client.patch(f"/api/tasks/{task['id']}", headers=auth_headers(dept_head), json={"title": None})
    assert response.status_code == 422


def test_reassignment_notifies_new_assignee(client, db_session, staff_user, dept_head, colleague, auth_headers):
    task = _create(client, staff_user, auth_headers)
    client.patch(f"/api/tasks/{task['id']}", headers=auth_headers(dept_head), json={"assigned_to_id": colleague.id})
    notes = db_session.query(Notification).filter(Notification.user_id == colleague.id).all()
    assert [n.title for n in notes] == ["New task assigned"]

    # colleague can now see and work it
    assert _status(client, colleague, task["id"], auth_headers, "in_progress").status_code == 200


def test_stats_count_overdue_open_work(client, staff_user, colleague, auth_headers):
    yesterday = (date.today() - timedelta(days=1)).isoformat()
    late = _create(client, staff_user, auth_headers, due_date=yesterday)
    _create(client, staff_user, auth_headers, title="Fold towels", due_date=yesterday)
    _create(client, colleague, auth_headers, title="Not mine")
    _status(client, staff_user, late["id"], auth_headers, "cancelled")

    stats = client.get("/api/tasks/stats", headers=auth_headers(staff_user)).json()
    assert stats["total"] == 2
    assert stats["open"] == 1
    assert stats["cancelled"] == 1
    assert stats["overdue"] == 1


def test_delete_and_comments(client, db_session, staff_user, colleague, maid, auth_headers):
    task = _create(client, staff_user, auth_headers, assigned_to_id=colleague.id)

    response = client.post(f"/api/tasks/{task['id']}/comments", headers=auth_headers(colleague),
                           json={"content": "On it after lunch"})
    assert response.status_code == 201
    notes = db_session.query(Notification).filter(Notification.user_id == staff_user.id).all()
    assert [n.title for n in notes] == ["New comment on task"]

    detail = client.get(f"/api/tasks/{task['id']}", headers=auth_headers(staff_user)).json()
    assert [c["content"] for c in detail["comments"]] == ["On it after lunch"]

    assert client.delete(f"/api/tasks/{task['id']}", headers=auth_headers(colleague)).status_code == 403
    assert client.delete(f"/api/tasks/{task['id']}", headers=auth_headers(staff_user)).status_code == 204
    assert client.get(f"/api/tasks/{task['id']}", headers=auth_headers(staff_user)).status_code == 404
