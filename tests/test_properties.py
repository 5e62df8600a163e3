from intranet.models.audit_log import AuditLog


def test_list_properties_puts_headquarters_first(client, hq, resort, staff_user, auth_headers):
    data = client.get("/api/properties", headers=auth_headers(staff_user)).json()
    assert [p["code"] for p in data] == ["HQ", "SSR"]
    assert data[0]["is_headquarters"] is True


def test_create_property(client, db_session, hq, admin_user, auth_headers):
    response = client.post(
        "/api/properties",
        headers=auth_headers(admin_user),
        json={"name": "Mountain Lodge", "code": "MTL", "city": "Covilha"},
    )
    assert response.status_code == 201
    assert response.json()["is_active"] is True

    entry = db_session.query(AuditLog).filter(AuditLog.action == "property_created").one()
    assert entry.entity_id == response.json()["id"]
    assert entry.user_id == admin_user.id


def test_only_one_headquarters(client, hq, resort, admin_user, auth_headers):
    response = client.post(
        "/api/properties",
        headers=auth_headers(admin_user),
        json={"name": "Second Office", "is_headquarters": True},
    )
    assert response.status_code == 409

    response = client.patch(
        f"/api/properties/{resort.id}",
        headers=auth_headers(admin_user),
        json={"is_headquarters": True},
    )
    assert response.status_code == 409

    # Re-saving the current headquarters is fine
    response = client.patch(
        f"/api/properties/{hq.id}",
        headers=auth_headers(admin_user),
        json={"is_headquarters": True, "city": "Porto"},
    )
    assert response.status_code == 200
    assert response.json()["city"] == "Porto"


def test_property_management_is_admin_only(client, manager_user, auth_headers):
    response = client.post("/api/properties", headers=auth_headers(manager_user), json={"name": "Annex"})
    assert response.status_code == 403


def test_unknown_property(client, staff_user, auth_headers):
    response = client.get("/api/properties/999999", headers=auth_headers(staff_user))
    assert response.status_code == 404
    assert response.json()["errors"][0]["code"] == "NOT_FOUND"


def test_departments(client, resort, departments, manager_user, staff_user, auth_headers):
    data = client.get("/api/departments", params={"property_id": resort.id},
                      headers=auth_headers(staff_user)).json()
    assert [d["name"] for d in data] == ["Front Office", "Housekeeping"]

    response = client.post(
        "/api/departments",
        headers=auth_headers(manager_user),
        json={"name": "Food & Beverage", "code": "FB", "property_id": resort.id},
    )
    assert response.status_code == 201
    dept_id = response.json()["id"]

    response = client.patch(f"/api/departments/{dept_id}", headers=auth_headers(manager_user),
                            json={"is_active": False})
    assert response.json()["is_active"] is False

    data = client.get("/api/departments", params={"property_id": resort.id},
                      headers=auth_headers(staff_user)).json()
    assert "Food & Beverage" not in [d["name"] for d in data]


def test_department_rules(client, manager_user, staff_user, auth_headers):
    response = client.post("/api/departments", headers=auth_headers(staff_user), json={"name": "Spa"})
    assert response.status_code == 403

    response = client.post("/api/departments", headers=auth_headers(manager_user),
                           json={"name": "Spa", "property_id": 999999})
    assert response.status_code == 404


def test_required_fields_cannot_be_cleared(client, hq, departments, admin_user, manager_user, auth_headers):
    for payload in ({"name": None}, {"is_headquarters": None}, {"is_active": None}):
        response = client.patch(f"/api/properties/{hq.id}", headers=auth_headers(admin_user), json=payload)
        assert response.status_code == 422, payload
        assert response.json()["success"] is False

    dept = departments["front_office"]
    for payload in ({"name": None}, {"is_active": None}):
        response = client.patch(f"/api/departments/{dept.id}", headers=auth_headers(manager_user), json=payload)
        assert response.status_code == 422, payload

    # clearing an optional column is still allowed
    response = client.patch(f"/api/properties/{hq.id}", headers=auth_headers(admin_user), json={"city": None})
    assert response.status_code == 200
    assert response.json()["name"] == "Head Office"
    assert response.json()["city"] is None
