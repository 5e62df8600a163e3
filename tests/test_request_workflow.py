from datetime import date, timedelta

import pytest

from intranet.models.hr_request import Promotion, Transfer
from intranet.models.notification import Notification
from intranet.models.user import AppRole
from intranet.services.request_service import RequestService


@pytest.fixture
def employee(make_user, resort, departments, manager_user):
    return make_user("porter@coastalhotels.com", AppRole.STAFF, "Pedro Porter", "Porter",
                     property_ids=[resort.id], department_ids=[departments["front_office"].id],
                     reporting_to_id=manager_user.id)


def _promote(client, actor, employee, auth_headers, effective=None, **extra):
    payload = {
        "employee_id": employee.id,
        "new_role": "department_head",
        "new_job_title": "Front Office Supervisor",
        "effective_date": (effective or date.today()).isoformat(),
        **extra,
    }
    response = client.post("/api/requests/promotions", headers=auth_headers(actor), json=payload)
    assert response.status_code == 201, response.json()
    return response.json()


def _act(client, actor, request_id, auth_headers, action, **payload):
    return client.post(
        f"/api/requests/{request_id}/actions",
        headers=auth_headers(actor),
        json={"action": action, **payload},
    )


def test_promotion_is_routed_to_regional_hr(client, property_hr_user, hr_user, employee, manager_user,
                                             auth_headers):
    result = _promote(client, property_hr_user, employee, auth_headers)
    second = _promote(client, property_hr_user, employee, auth_headers)
    assert second["request_no"] == result["request_no"] + 1

    detail = client.get(f"/api/requests/{result['request_id']}", headers=auth_headers(hr_user)).json()
    assert detail["status"] == "pending_hr_review"
    assert detail["entity_type"] == "promotion"
    assert detail["current_assignee_id"] == hr_user.id
    assert detail["supervisor_id"] == manager_user.id
    assert [(s["step_order"], s["approver_role"], s["status"]) for s in detail["steps"]] == [
        (1, "regional_hr", "pending"),
    ]
    assert [e["event_type"] for e in detail["events"]] == ["submitted"]
    assert detail["details"]["employee_name"] == "Pedro Porter"


def test_approving_a_due_promotion_applies_it(client, db_session, property_hr_user, hr_user, employee,
                                              auth_headers):
    result = _promote(client, property_hr_user, employee, auth_headers)
    response = _act(client, hr_user, result["request_id"], auth_headers, "approve", comment="Well deserved")
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["current_assignee_id"] is None

    entity = client.get(f"/api/requests/{result['request_id']}/entity", headers=auth_headers(hr_user)).json()
    assert entity["status"] == "completed"
    assert entity["old_role"] == "staff"

    db_session.refresh(employee)
    assert employee.role == AppRole.DEPARTMENT_HEAD
    assert employee.job_title == "Front Office Supervisor"

    titles = [n.title for n in db_session.query(Notification).filter(Notification.user_id == property_hr_user.id)]
    assert "Request approved" in titles


def test_future_transfer_waits_for_processing(client, db_session, org, property_hr_user, hr_user, employee, hq,
                                              departments, auth_headers):
    effective = date.today() + timedelta(days=30)
    response = client.post(
        "/api/requests/transfers",
        headers=auth_headers(property_hr_user),
        json={
            "employee_id": employee.id,
            "to_property_id": hq.id,
            "to_department_id": departments["finance"].id,
            "effective_date": effective.isoformat(),
        },
    )
    assert response.status_code == 201
    result = response.json()

    # No property HR at head office, so the request falls back to regional HR
    detail = client.get(f"/api/requests/{result['request_id']}", headers=auth_headers(hr_user)).json()
    assert detail["current_assignee_id"] == hr_user.id
    assert detail["steps"][0]["approver_role"] == "regional_hr"

    _act(client, hr_user, result["request_id"], auth_headers, "approve")
    transfer = db_session.get(Transfer, result["entity_id"])
    assert transfer.status == "approved"

    processed = client.post("/api/requests/process-due", headers=auth_headers(hr_user)).json()
    assert processed == {"promotions": 0, "transfers": 0}

    counts = RequestService(db_session, org.id).process_due_changes(today=effective)
    assert counts == {"promotions": 0, "transfers": 1}
    db_session.refresh(employee)
    assert employee.property_ids == [hq.id]
    assert employee.department_ids == [departments["finance"].id]
    assert db_session.get(Transfer, result["entity_id"]).status == "completed"


def test_process_due_requires_regional_role(client, property_hr_user, auth_headers):
    response = client.post("/api/requests/process-due", headers=auth_headers(property_hr_user))
    assert response.status_code == 403


def test_reject_marks_entity_and_closes_request(client, db_session, property_hr_user, hr_user, employee,
                                                auth_headers):
    result = _promote(client, property_hr_user, employee, auth_headers)
    response = _act(client, hr_user, result["request_id"], auth_headers, "reject", comment="Not this cycle")
    assert response.json()["status"] == "rejected"
    assert db_session.get(Promotion, result["entity_id"]).status == "rejected"

    response = _act(client, hr_user, result["request_id"], auth_headers, "approve")
    assert response.status_code == 409
    assert response.json()["errors"][0]["code"] == "CONFLICT"


def test_return_hands_request_back_to_requester(client, property_hr_user, hr_user, employee, auth_headers):
    result = _promote(client, property_hr_user, employee, auth_headers)
    data = _act(client, hr_user, result["request_id"], auth_headers, "return", comment="Missing notes").json()
    assert data["status"] == "returned_for_correction"
    assert data["current_assignee_id"] == property_hr_user.id
    assert data["steps"][0]["status"] == "returned"


def test_forward(client, property_hr_user, hr_user, admin_user, employee, auth_headers):
    result = _promote(client, property_hr_user, employee, auth_headers)

    response = _act(client, hr_user, result["request_id"], auth_headers, "forward")
    assert response.status_code == 422

    data = _act(client, hr_user, result["request_id"], auth_headers, "forward", forward_to=admin_user.id).json()
    assert data["status"] == "pending_hr_review"
    assert data["current_assignee_id"] == admin_user.id
    assert data["steps"][0]["assignee_id"] == admin_user.id
    assert data["events"][-1]["event_type"] == "forwarded"


def test_reviewers_cannot_approve_their_own_request(client, hr_user, employee, auth_headers):
    result = _promote(client, hr_user, employee, auth_headers)
    response = _act(client, hr_user, result["request_id"], auth_headers, "approve")
    assert response.status_code == 403


def test_submission_permissions(client, staff_user, make_user, hq, employee, auth_headers):
    response = client.post(
        "/api/requests/promotions",
        headers=auth_headers(staff_user),
        json={"employee_id": employee.id, "effective_date": date.today().isoformat()},
    )
    assert response.status_code == 403

    hq_hr = make_user("hq.hr@coastalhotels.com", AppRole.PROPERTY_HR, "Olga Office", "HR Officer",
                      property_ids=[hq.id])
    response = client.post(
        "/api/requests/promotions",
        headers=auth_headers(hq_hr),
        json={"employee_id": employee.id, "effective_date": date.today().isoformat()},
    )
    assert response.status_code == 403


def test_internal_comments_are_hidden_from_non_hr(client, property_hr_user, hr_user, manager_user, employee,
                                                   auth_headers):
    result = _promote(client, property_hr_user, employee, auth_headers)
    request_id = result["request_id"]

    assert _act(client, hr_user, request_id, auth_headers, "add_comment",
                comment="Salary band check pending", visibility="internal").status_code == 200
    assert _act(client, manager_user, request_id, auth_headers, "add_comment",
                comment="Strong candidate").status_code == 200
    response = _act(client, manager_user, request_id, auth_headers, "add_comment",
                    comment="Private note", visibility="internal")
    assert response.status_code == 403
    assert _act(client, manager_user, request_id, auth_headers, "add_comment").status_code == 422

    as_hr = client.get(f"/api/requests/{request_id}", headers=auth_headers(hr_user)).json()
    as_supervisor = client.get(f"/api/requests/{request_id}", headers=auth_headers(manager_user)).json()
    assert [c["body"] for c in as_hr["comments"]] == ["Salary band check pending", "Strong candidate"]
    assert [c["body"] for c in as_supervisor["comments"]] == ["Strong candidate"]


def test_request_visibility(client, property_hr_user, hr_user, manager_user, staff_user, employee, auth_headers):
    result = _promote(client, property_hr_user, employee, auth_headers)

    def listed(user, **params):
        return [r["id"] for r in client.get("/api/requests", params=params, headers=auth_headers(user)).json()]

    assert listed(manager_user) == [result["request_id"]]
    assert listed(hr_user, assigned_to_me="true") == [result["request_id"]]
    assert listed(staff_user) == []
    assert listed(hr_user, entity_type="transfer") == []

    response = client.get(f"/api/requests/{result['request_id']}", headers=auth_headers(staff_user))
    assert response.status_code == 403


def test_cancel_request(client, db_session, property_hr_user, manager_user, employee, auth_headers):
    result = _promote(client, property_hr_user, employee, auth_headers)
    url = f"/api/requests/{result['request_id']}/cancel"

    response = client.post(url, headers=auth_headers(manager_user), json={"reason": "Changed my mind"})
    assert response.status_code == 403

    response = client.post(url, headers=auth_headers(property_hr_user), json={"reason": "Budget freeze"})
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    promotion = db_session.get(Promotion, result["entity_id"])
    assert promotion.status == "cancelled"
    assert promotion.notes.endswith("[Cancelled: Budget freeze]")

    response = client.post(url, headers=auth_headers(property_hr_user), json={"reason": "Again"})
    assert response.status_code == 409


def test_update_request_details(client, db_session, property_hr_user, employee, auth_headers):
    result = _promote(client, property_hr_user, employee, auth_headers, effective=date.today() + timedelta(days=5))
    new_date = date.today() + timedelta(days=14)

    response = client.patch(
        f"/api/requests/{result['request_id']}",
        headers=auth_headers(property_hr_user),
        json={"effective_date": new_date.isoformat(), "new_role": "property_hr"},
    )
    assert response.status_code == 200
    details = response.json()["details"]
    assert details["effective_date"] == new_date.isoformat()
    assert details["new_role"] == "property_hr"

    promotion = db_session.get(Promotion, result["entity_id"])
    assert promotion.effective_date == new_date
    assert promotion.new_role == AppRole.PROPERTY_HR


def test_returned_request_is_corrected_and_resubmitted(client, db_session, property_hr_user, hr_user, employee,
                                                       auth_headers):
    result = _promote(client, property_hr_user, employee, auth_headers, effective=date.today() + timedelta(days=5))
    request_id = result["request_id"]
    _act(client, hr_user, request_id, auth_headers, "return", comment="Wrong role")

    # nothing can be approved while it sits with the requester
    response = _act(client, hr_user, request_id, auth_headers, "approve")
    assert response.status_code == 409

    response = client.patch(
        f"/api/requests/{request_id}",
        headers=auth_headers(property_hr_user),
        json={"new_role": "staff"},
    )
    assert response.status_code == 200
    assert response.json()["details"]["new_role"] == "staff"

    response = _act(client, property_hr_user, request_id, auth_headers, "resubmit", comment="Role fixed")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "pending_hr_review"
    assert data["current_assignee_id"] == hr_user.id
    assert [(s["step_order"], s["status"]) for s in data["steps"]] == [(1, "returned"), (2, "pending")]
    assert [e["event_type"] for e in data["events"]][-1] == "resubmitted"

    notes = db_session.query(Notification).filter(Notification.user_id == hr_user.id).all()
    assert "Request resubmitted" in [n.title for n in notes]

    response = _act(client, hr_user, request_id, auth_headers, "approve")
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert db_session.get(Promotion, result["entity_id"]).new_role == AppRole.STAFF


def test_returned_request_can_be_cancelled_but_not_resubmitted_twice(client, property_hr_user, hr_user, employee,
                                                                     auth_headers):
    result = _promote(client, property_hr_user, employee, auth_headers)
    request_id = result["request_id"]

    response = _act(client, property_hr_user, request_id, auth_headers, "resubmit")
    assert response.status_code == 409

    _act(client, hr_user, request_id, auth_headers, "return", comment="Needs a date")
    response = client.post(
        f"/api/requests/{request_id}/cancel",
        headers=auth_headers(property_hr_user),
        json={"reason": "No longer needed"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


def test_transfer_department_must_belong_to_target_property(client, property_hr_user, employee, hq, departments,
                                                           auth_headers):
    response = client.post(
        "/api/requests/transfers",
        headers=auth_headers(property_hr_user),
        json={
            "employee_id": employee.id,
            "to_property_id": hq.id,
            "to_department_id": departments["housekeeping"].id,
            "effective_date": date.today().isoformat(),
        },
    )
    assert response.status_code == 422
    assert response.json()["errors"][0]["code"] == "DEPARTMENT_PROPERTY_MISMATCH"
