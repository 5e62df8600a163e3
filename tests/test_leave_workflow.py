from datetime import date, timedelta

import pytest

from intranet.models.audit_log import AuditLog
from intranet.models.leave_request import LeaveRequest
from intranet.models.notification import Notification
from intranet.models.user import AppRole
from intranet.services.leave_service import coverage_percentage, inclusive_days


def _submit(client, user, auth_headers, start=None, days=3, leave_type="annual"):
    start = start or date.today() + timedelta(days=10)
    end = start + timedelta(days=days - 1)
    response = client.post(
        "/api/leave/requests",
        headers=auth_headers(user),
        json={"leave_type": leave_type, "start_date": start.isoformat(), "end_date": end.isoformat()},
    )
    assert response.status_code == 201, response.json()
    return response.json()


def _approved_leave(db_session, org, user, start, end):
    leave = LeaveRequest(
        organization_id=org.id,
        requester_id=user.id,
        property_id=user.primary_property_id,
        department_id=user.primary_department_id,
        leave_type="annual",
        start_date=start,
        end_date=end,
        days_count=inclusive_days(start, end),
        status="approved",
    )
    db_session.add(leave)
    db_session.commit()
    return leave


@pytest.mark.parametrize("total, on_leave, expected", [
    (0, 0, 100),
    (4, 1, 75),
    (3, 1, 67),
    (3, 2, 33),
    (8, 1, 88),
])
def test_coverage_percentage(total, on_leave, expected):
    assert coverage_percentage(total, on_leave) == expected


def test_inclusive_days():
    assert inclusive_days(date(2024, 3, 1), date(2024, 3, 1)) == 1
    assert inclusive_days(date(2024, 2, 28), date(2024, 3, 1)) == 3


def test_submit_leave_request(client, staff_user, resort, departments, auth_headers):
    data = _submit(client, staff_user, auth_headers, days=5)
    assert data["status"] == "pending"
    assert data["days_count"] == 5
    assert data["property_id"] == resort.id
    assert data["department_id"] == departments["front_office"].id


def test_end_before_start_is_rejected(client, staff_user, auth_headers):
    response = client.post(
        "/api/leave/requests",
        headers=auth_headers(staff_user),
        json={"leave_type": "sick", "start_date": "2024-05-10", "end_date": "2024-05-01"},
    )
    assert response.status_code == 422
    assert response.json()["success"] is False


def test_department_head_approves_and_requester_is_notified(client, staff_user, dept_head, auth_headers,
                                                             db_session):
    leave = _submit(client, staff_user, auth_headers)
    response = client.post(f"/api/leave/requests/{leave['id']}/approve", headers=auth_headers(dept_head))
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["approved_by_id"] == dept_head.id

    notes = db_session.query(Notification).filter(Notification.user_id == staff_user.id).all()
    assert [n.title for n in notes] == ["Leave request approved"]


def test_staff_cannot_approve(client, staff_user, make_user, resort, departments, auth_headers):
    colleague = make_user("bell@coastalhotels.com", AppRole.STAFF, "Bo Bell", "Bellman",
                          property_ids=[resort.id], department_ids=[departments["front_office"].id])
    leave = _submit(client, colleague, auth_headers)
    response = client.post(f"/api/leave/requests/{leave['id']}/approve", headers=auth_headers(staff_user))
    assert response.status_code == 403


def test_nobody_approves_their_own_leave(client, dept_head, auth_headers):
    leave = _submit(client, dept_head, auth_headers)
    response = client.post(f"/api/leave/requests/{leave['id']}/approve", headers=auth_headers(dept_head))
    assert response.status_code == 403


def test_property_scope_for_reviewers(client, staff_user, property_hr_user, make_user, hq, auth_headers):
    leave = _submit(client, staff_user, auth_headers)
    other_hr = make_user("hq.hr@coastalhotels.com", AppRole.PROPERTY_HR, "Olga Office", "HR Officer",
                         property_ids=[hq.id])

    response = client.post(f"/api/leave/requests/{leave['id']}/approve", headers=auth_headers(other_hr))
    assert response.status_code == 403

    response = client.post(f"/api/leave/requests/{leave['id']}/approve", headers=auth_headers(property_hr_user))
    assert response.status_code == 200


def test_rejected_leave_cannot_be_cancelled(client, staff_user, dept_head, auth_headers):
    leave = _submit(client, staff_user, auth_headers)
    response = client.post(
        f"/api/leave/requests/{leave['id']}/reject",
        headers=auth_headers(dept_head),
        json={"reason": "Peak season"},
    )
    assert response.status_code == 200
    assert response.json()["rejection_reason"] == "Peak season"

    response = client.post(f"/api/leave/requests/{leave['id']}/cancel", headers=auth_headers(staff_user))
    assert response.status_code == 409
    assert response.json()["errors"][0]["code"] == "INVALID_STATUS_TRANSITION"


def test_requester_cancels_pending_leave(client, staff_user, auth_headers):
    leave = _submit(client, staff_user, auth_headers)
    response = client.post(f"/api/leave/requests/{leave['id']}/cancel", headers=auth_headers(staff_user))
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


def test_visibility_by_role(client, staff_user, dept_head, make_user, resort, departments, hr_user, auth_headers):
    maid = make_user("maid@coastalhotels.com", AppRole.STAFF, "Mia Maid", "Room Attendant",
                     property_ids=[resort.id], department_ids=[departments["housekeeping"].id])
    own = _submit(client, staff_user, auth_headers)
    other = _submit(client, maid, auth_headers)

    def visible(user):
        return {r["id"] for r in client.get("/api/leave/requests", headers=auth_headers(user)).json()}

    assert visible(staff_user) == {own["id"]}
    assert visible(maid) == {other["id"]}
    assert visible(dept_head) == {own["id"]}
    assert visible(hr_user) == {own["id"], other["id"]}


def test_coverage_and_conflicts(client, db_session, org, resort, departments, dept_head, staff_user,
                                make_user, manager_user, auth_headers):
    today = date.today()
    colleague = make_user("bell@coastalhotels.com", AppRole.STAFF, "Bo Bell", "Bellman",
                          property_ids=[resort.id], department_ids=[departments["front_office"].id])
    _approved_leave(db_session, org, staff_user, today, today + timedelta(days=1))
    _approved_leave(db_session, org, colleague, today, today)

    coverage = client.get(
        f"/api/leave/coverage/{resort.id}",
        params={"on_date": today.isoformat()},
        headers=auth_headers(manager_user),
    ).json()
    assert [(c["department_name"], c["total_staff"], c["staff_on_leave"], c["coverage_percentage"])
            for c in coverage] == [
        ("Front Office", 3, 2, 33),
        ("Housekeeping", 0, 0, 100),
    ]
    assert coverage[0]["upcoming_leaves"] == 2

    conflicts = client.get(
        f"/api/leave/conflicts/{resort.id}",
        params={"start": today.isoformat(), "end": (today + timedelta(days=2)).isoformat()},
        headers=auth_headers(manager_user),
    ).json()
    # day two: one of three away, 67% and not critical
    assert [(c["date"], c["staff_on_leave"], c["is_critical"]) for c in conflicts] == [
        (today.isoformat(), 2, True),
    ]


def test_conflicts_reject_inverted_range(client, resort, manager_user, auth_headers):
    today = date.today()
    response = client.get(
        f"/api/leave/conflicts/{resort.id}",
        params={"start": today.isoformat(), "end": (today - timedelta(days=1)).isoformat()},
        headers=auth_headers(manager_user),
    )
    assert response.status_code == 422


def test_coverage_outside_own_property_is_denied(client, hq, manager_user, auth_headers):
    response = client.get(f"/api/leave/coverage/{hq.id}", headers=auth_headers(manager_user))
    assert response.status_code == 403


def test_leave_events(client, db_session, org, staff_user, auth_headers):
    today = date.today()
    _approved_leave(db_session, org, staff_user, today, today + timedelta(days=2))
    events = client.get(
        "/api/leave/events",
        params={"start": today.isoformat(), "end": (today + timedelta(days=7)).isoformat()},
        headers=auth_headers(staff_user),
    ).json()
    assert [(e["user_name"], e["department_name"]) for e in events] == [("Alex Agent", "Front Office")]


def test_leave_events_are_limited_to_what_the_caller_may_see(client, db_session, org, resort, departments,
                                                             staff_user, dept_head, hr_user, make_user,
                                                             auth_headers):
    today = date.today()
    maid = make_user("maid@coastalhotels.com", AppRole.STAFF, "Mia Maid", "Room Attendant",
                     property_ids=[resort.id], department_ids=[departments["housekeeping"].id])
    _approved_leave(db_session, org, staff_user, today, today + timedelta(days=1))
    _approved_leave(db_session, org, maid, today, today + timedelta(days=1))
    params = {"start": today.isoformat(), "end": (today + timedelta(days=7)).isoformat()}

    def names(user):
        events = client.get("/api/leave/events", params=params, headers=auth_headers(user)).json()
        return sorted(e["user_name"] for e in events)

    assert names(maid) == ["Mia Maid"]
    assert names(staff_user) == ["Alex Agent"]
    assert names(dept_head) == ["Alex Agent"]
    assert names(hr_user) == ["Alex Agent", "Mia Maid"]


def test_review_audit_records_the_state_before_the_decision(client, db_session, staff_user, dept_head,
                                                           auth_headers):
    approved = _submit(client, staff_user, auth_headers)
    rejected = _submit(client, staff_user, auth_headers, start=date.today() + timedelta(days=30))
    client.post(f"/api/leave/requests/{approved['id']}/approve", headers=auth_headers(dept_head))
    client.post(
        f"/api/leave/requests/{rejected['id']}/reject",
        headers=auth_headers(dept_head),
        json={"reason": "Peak season"},
    )

    approval = db_session.query(AuditLog).filter(AuditLog.action == "leave_approved").one()
    assert approval.before_state["status"] == "pending"
    assert approval.before_state["approved_by_id"] is None
    assert approval.after_state["approved_by_id"] == dept_head.id

    rejection = db_session.query(AuditLog).filter(AuditLog.action == "leave_rejected").one()
    assert rejection.before_state["rejected_by_id"] is None
    assert rejection.before_state["rejection_reason"] is None
    assert rejection.after_state["rejection_reason"] == "Peak season"


def test_conflicts_reject_overlong_range(client, resort, manager_user, auth_headers):
    today = date.today()
    response = client.get(
        f"/api/leave/conflicts/{resort.id}",
        params={"start": today.isoformat(), "end": (today + timedelta(days=5000)).isoformat()},
        headers=auth_headers(manager_user),
    )
    assert response.status_code == 422
    assert response.json()["errors"][0]["code"] == "INVALID_RANGE"

    response = client.get(
        f"/api/leave/report/{resort.id}",
        params={"start": today.isoformat(), "end": (today + timedelta(days=365)).isoformat()},
        headers=auth_headers(manager_user),
    )
    assert response.status_code == 200
