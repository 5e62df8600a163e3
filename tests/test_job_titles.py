import itertools

import pytest

from intranet.models.job_title import JobTitle
from intranet.models.user import AppRole
from intranet.schemas.org import OrgEmployee
from intranet.services.job_titles import (
    JOB_TITLE_CATALOGUE,
    JobTitleService,
    classify_employee_level,
    get_common_job_titles,
    get_job_title_categories,
    get_job_title_rank,
    get_job_titles_by_category,
    get_job_titles_by_role,
    sort_by_job_title_hierarchy,
    suggest_system_role,
)


_ids = itertools.count(1)


def _emp(name, title, roles=("staff",)):
    return OrgEmployee(id=next(_ids), full_name=name, job_title=title,
                       email=f"{name.lower()}@coastalhotels.com", roles=list(roles))


@pytest.mark.parametrize("title, rank", [
    (None, 999),
    ("", 999),
    ("CEO", 2),
    ("  General Manager ", 31),
    ("Front Office Manager", 62),
    ("Housekeeping Supervisor", 72),
    ("Night Auditor", 500),
    ("Intern", 105),
])
def test_get_job_title_rank(title, rank):
    assert get_job_title_rank(title) == rank


def test_sort_by_hierarchy_then_name():
    employees = [
        _emp("zed", "Waiter"),
        _emp("Amy", "Waiter"),
        _emp("Bob", "General Manager"),
        _emp("Cat", None),
    ]
    ordered = sort_by_job_title_hierarchy(employees)
    assert [e.full_name for e in ordered] == ["Bob", "Amy", "zed", "Cat"]
    assert ordered is not employees


@pytest.mark.parametrize("title, roles, level", [
    ("Waiter", ["department_head"], "head"),
    ("Shift Lead", ["staff"], "supervisor"),
    ("Head Waiter", ["staff"], "supervisor"),
    ("Senior Concierge", ["staff"], "supervisor"),
    ("Bellman", ["staff"], "staff"),
    (None, ["staff"], "staff"),
])
def test_classify_employee_level(title, roles, level):
    assert classify_employee_level(_emp("Someone", title, roles)) == level


@pytest.mark.parametrize("title, role", [
    (None, AppRole.STAFF),
    ("Front Desk Agent", AppRole.STAFF),
    ("front desk agent", AppRole.STAFF),
    ("Regional HR Manager", AppRole.REGIONAL_HR),
    ("Executive Housekeeper", AppRole.DEPARTMENT_HEAD),
    ("Director of Guest Experience", AppRole.REGIONAL_ADMIN),
    ("HR Business Partner", AppRole.PROPERTY_HR),
    ("Corporate HR Analyst", AppRole.REGIONAL_HR),
    ("Night Manager", AppRole.DEPARTMENT_HEAD),
    ("Pool Attendant", AppRole.STAFF),
])
def test_suggest_system_role(title, role):
    assert suggest_system_role(title) == role


def test_catalogue_helpers():
    titles = get_common_job_titles()
    assert titles == sorted(titles)
    assert len(titles) == len(JOB_TITLE_CATALOGUE)
    assert "Front Office" in get_job_title_categories()
    assert "Concierge" in get_job_titles_by_category("Front Office")
    assert get_job_titles_by_category("Unknown") == []
    assert "General Manager" in get_job_titles_by_role(AppRole.PROPERTY_MANAGER)


def test_seed_defaults_is_idempotent(db_session, org):
    service = JobTitleService(db_session, org.id)
    added = service.seed_defaults()
    assert added == len({d.title for d in JOB_TITLE_CATALOGUE})
    assert service.seed_defaults() == 0

    concierge = db_session.query(JobTitle).filter(
        JobTitle.organization_id == org.id, JobTitle.title == "Concierge"
    ).one()
    assert concierge.default_role == AppRole.STAFF


def test_job_title_crud_api(client, admin_user, staff_user, auth_headers):
    response = client.post(
        "/api/job-titles",
        json={"title": "Pool Supervisor", "category": "Recreation"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 201
    created = response.json()
    # Role suggested from the title when none is given
    assert created["default_role"] == "department_head"

    response = client.post(
        "/api/job-titles",
        json={"title": "Lifeguard", "category": "Recreation"},
        headers=auth_headers(staff_user),
    )
    assert response.status_code == 403

    response = client.patch(
        f"/api/job-titles/{created['id']}",
        json={"category": "Leisure"},
        headers=auth_headers(admin_user),
    )
    assert response.json()["category"] == "Leisure"

    response = client.delete(f"/api/job-titles/{created['id']}", headers=auth_headers(admin_user))
    assert response.json()["is_active"] is False

    listed = client.get("/api/job-titles", headers=auth_headers(staff_user)).json()
    assert created["id"] not in [t["id"] for t in listed]


def test_suggest_role_endpoint(client, staff_user, auth_headers):
    response = client.get(
        "/api/job-titles/suggest-role",
        params={"job_title": "Hotel Manager"},
        headers=auth_headers(staff_user),
    )
    assert response.status_code == 200
    assert response.json() == {"job_title": "Hotel Manager", "role": "property_manager"}
