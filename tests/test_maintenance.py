from datetime import date

import pytest

from intranet.models.notification import Notification
from intranet.models.user import AppRole


@pytest.fixture
def technician(make_user, resort):
    return make_user("tech@coastalhotels.com", AppRole.STAFF, "Tom Tech", "Maintenance Technician",
                     property_ids=[resort.id])


def _report(client, user, auth_headers, **payload):
    body = {
        "title": "Leaking shower",
        "description": "Water pooling under the shower tray",
        "category": "plumbing",
        "room_number": "214",
        **payload,
    }
    response = client.post("/api/maintenance-tickets", headers=auth_headers(user), json=body)
    assert response.status_code == 201, response.json()
    return response.json()


def _titles(db_session, user):
    rows = db_session.query(Notification).filter(Notification.user_id == user.id).order_by(Notification.id)
    return [n.title for n in rows]


def _status(client, user, ticket_id, auth_headers, status, **payload):
    return client.post(
        f"/api/maintenance-tickets/{ticket_id}/status",
        headers=auth_headers(user),
        json={"status": status, **payload},
    )


def test_report_defaults_to_reporters_property(client, staff_user, resort, hq, auth_headers):
    ticket = _report(client, staff_user, auth_headers)
    assert ticket["property_id"] == resort.id
    assert ticket["status"] == "open"
    assert ticket["priority"] == "medium"
    assert ticket["reported_by_id"] == staff_user.id
    assert ticket["valid_next_statuses"] == ["in_progress", "cancelled"]

    response = client.post(
        "/api/maintenance-tickets",
        headers=auth_headers(staff_user),
        json={"title": "Flickering light", "description": "Lobby", "category": "electrical", "property_id": hq.id},
    )
    assert response.status_code == 403


def test_assign_work_and_close(client, db_session, staff_user, manager_user, technician, auth_headers):
    ticket = _report(client, staff_user, auth_headers, priority="urgent")
    url = f"/api/maintenance-tickets/{ticket['id']}"

    response = client.put(f"{url}/assignee", headers=auth_headers(staff_user),
                          json={"assigned_to_id": technician.id})
    assert response.status_code == 403

    assigned = client.put(f"{url}/assignee", headers=auth_headers(manager_user),
                          json={"assigned_to_id": technician.id}).json()
    assert assigned["assigned_to_id"] == technician.id
    assert assigned["status"] == "in_progress"

    assert _status(client, technician, ticket["id"], auth_headers, "pending_parts",
                   parts_needed="Shower cartridge").json()["parts_needed"] == "Shower cartridge"
    done = _status(client, technician, ticket["id"], auth_headers, "completed",
                   labor_hours=1.5, material_cost=42.0, notes="Cartridge replaced").json()
    assert done["status"] == "completed"
    assert done["labor_hours"] == 1.5
    assert done["actual_completion_date"] == date.today().isoformat()
    assert done["valid_next_statuses"] == ["closed"]

    assert _status(client, technician, ticket["id"], auth_headers, "closed").status_code == 403
    assert _status(client, manager_user, ticket["id"], auth_headers, "closed").json()["status"] == "closed"

    assert _titles(db_session, technician) == ["Maintenance ticket assigned"]
    assert _titles(db_session, staff_user) == ["Maintenance issue resolved"]


def test_invalid_transitions_and_work_log(client, staff_user, manager_user, auth_headers):
    ticket = _report(client, staff_user, auth_headers)

    response = _status(client, manager_user, ticket["id"], auth_headers, "completed")
    assert response.status_code == 409
    assert response.json()["errors"][0]["code"] == "INVALID_STATUS_TRANSITION"

    response = _status(client, manager_user, ticket["id"], auth_headers, "in_progress", labor_hours=2)
    assert response.status_code == 422


def test_assignee_must_work_at_the_property(client, staff_user, manager_user, make_user, hq, auth_headers):
    ticket = _report(client, staff_user, auth_headers)
    outsider = make_user("hq.tech@coastalhotels.com", AppRole.STAFF, "Hal Hq", "Technician", property_ids=[hq.id])
    response = client.put(f"/api/maintenance-tickets/{ticket['id']}/assignee", headers=auth_headers(manager_user),
                          json={"assigned_to_id": outsider.id})
    assert response.status_code == 422


def test_reporter_may_only_cancel_an_open_ticket(client, staff_user, auth_headers):
    ticket = _report(client, staff_user, auth_headers)
    assert _status(client, staff_user, ticket["id"], auth_headers, "in_progress").status_code == 403
    response = _status(client, staff_user, ticket["id"], auth_headers, "cancelled")
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


def test_visibility_and_internal_comments(client, staff_user, manager_user, make_user, hq, auth_headers):
    ticket = _report(client, staff_user, auth_headers)
    outsider = make_user("hq.staff@coastalhotels.com", AppRole.STAFF, "Hugo Hq", "Accountant", property_ids=[hq.id])
    assert client.get("/api/maintenance-tickets", headers=auth_headers(outsider)).json() == []
    assert client.get(f"/api/maintenance-tickets/{ticket['id']}", headers=auth_headers(outsider)).status_code == 404

    url = f"/api/maintenance-tickets/{ticket['id']}/comments"
    response = client.post(url, headers=auth_headers(staff_user), json={"comment": "Still leaking", "internal_only": True})
    assert response.status_code == 403
    client.post(url, headers=auth_headers(staff_user), json={"comment": "Still leaking"})
    client.post(url, headers=auth_headers(manager_user), json={"comment": "Vendor quote pending", "internal_only": True})

    reporter_view = client.get(f"/api/maintenance-tickets/{ticket['id']}", headers=auth_headers(staff_user)).json()
    assert [c["comment"] for c in reporter_view["comments"]] == ["Still leaking"]
    manager_view = client.get(f"/api/maintenance-tickets/{ticket['id']}", headers=auth_headers(manager_user)).json()
    assert [c["comment"] for c in manager_view["comments"]] == ["Still leaking", "Vendor quote pending"]


def test_summary(client, staff_user, manager_user, auth_headers):
    _report(client, staff_user, auth_headers, priority="critical")
    second = _report(client, staff_user, auth_headers, title="Broken kettle", category="appliance")
    _status(client, staff_user, second["id"], auth_headers, "cancelled")

    summary = client.get("/api/maintenance-tickets/summary", headers=auth_headers(manager_user)).json()
    assert summary["total"] == 2
    assert summary["by_status"] == {"open": 1, "cancelled": 1}
    assert summary["open_by_priority"]["critical"] == 1
    assert summary["open_by_priority"]["medium"] == 0

    assert client.get("/api/maintenance-tickets/summary", headers=auth_headers(staff_user)).status_code == 403
