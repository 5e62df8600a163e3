import os
import uuid

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from fastapi.testclient import TestClient

from intranet.database import Base, get_db
from intranet.main import app
from intranet.models.department import Department
from intranet.models.hotel_property import Property
from intranet.models.organization import Organization
from intranet.models.user import AppRole, User, UserDepartment, UserProperty
from intranet.services import auth as auth_service

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "Password123!"
# bcrypt is slow; hash once for every fixture user
PASSWORD_HASH = auth_service.get_password_hash(PASSWORD)


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """A session inside an outer transaction that is rolled back after each test."""
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def org(db_session):
    org = Organization(name=f"Coastal Hotels {uuid.uuid4()}", slug=f"coastal-{uuid.uuid4()}")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope="function")
def hq(db_session, org):
    prop = Property(organization_id=org.id, name="Head Office", code="HQ", city="Lisbon", is_headquarters=True)
    db_session.add(prop)
    db_session.commit()
    return prop


@pytest.fixture(scope="function")
def resort(db_session, org):
    prop = Property(organization_id=org.id, name="Seaside Resort", code="SSR", city="Faro")
    db_session.add(prop)
    db_session.commit()
    return prop


@pytest.fixture(scope="function")
def departments(db_session, org, hq, resort):
    """Finance at head office; Front Office and Housekeeping at the resort."""
    depts = {
        "finance": Department(organization_id=org.id, property_id=hq.id, name="Finance"),
        "front_office": Department(organization_id=org.id, property_id=resort.id, name="Front Office"),
        "housekeeping": Department(organization_id=org.id, property_id=resort.id, name="Housekeeping"),
    }
    db_session.add_all(depts.values())
    db_session.commit()
    return depts


@pytest.fixture(scope="function")
def make_user(db_session, org):
    """Factory creating an active user with optional property/department assignments."""
    def _make_user(email, role=AppRole.STAFF, full_name=None, job_title=None,
                   property_ids=(), department_ids=(), reporting_to_id=None, phone=None):
        user = User(
            email=email,
            full_name=full_name or email.split("@")[0].replace(".", " ").title(),
            hashed_password=PASSWORD_HASH,
            role=role,
            job_title=job_title,
            organization_id=org.id,
            reporting_to_id=reporting_to_id,
            is_active=True,
        )
        user.phone = phone
        user.property_assignments = [UserProperty(property_id=pid) for pid in property_ids]
        user.department_assignments = [UserDepartment(department_id=did) for did in department_ids]
        db_session.add(user)
        db_session.commit()
        return user
    return _make_user


@pytest.fixture(scope="function")
def admin_user(make_user):
    return make_user("admin@coastalhotels.com", AppRole.REGIONAL_ADMIN, "Regional Admin", "Regional Director")


@pytest.fixture(scope="function")
def hr_user(make_user):
    return make_user("hr@coastalhotels.com", AppRole.REGIONAL_HR, "Rita Regional", "Regional HR Manager")


@pytest.fixture(scope="function")
def manager_user(make_user, resort):
    return make_user("gm@coastalhotels.com", AppRole.PROPERTY_MANAGER, "Gina Manager", "General Manager",
                     property_ids=[resort.id])


@pytest.fixture(scope="function")
def property_hr_user(make_user, resort):
    return make_user("phr@coastalhotels.com", AppRole.PROPERTY_HR, "Paulo Hr", "HR Manager",
                     property_ids=[resort.id])


@pytest.fixture(scope="function")
def dept_head(make_user, resort, departments):
    return make_user("fo.head@coastalhotels.com", AppRole.DEPARTMENT_HEAD, "Fiona Head", "Front Office Manager",
                     property_ids=[resort.id], department_ids=[departments["front_office"].id])


@pytest.fixture(scope="function")
def staff_user(make_user, resort, departments):
    return make_user("agent@coastalhotels.com", AppRole.STAFF, "Alex Agent", "Front Desk Agent",
                     property_ids=[resort.id], department_ids=[departments["front_office"].id],
                     phone="+351 912 345 678")


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens carrying the user's org_id."""
    def _get_token(user, org_id=None):
        claims = auth_service.build_token_claims(user)
        if org_id is not None:
            claims["org_id"] = org_id
        return auth_service.create_access_token(data=claims)
    return _get_token


@pytest.fixture(scope="function")
def auth_headers(get_token):
    def _auth_headers(user):
        return {"Authorization": f"Bearer {get_token(user)}"}
    return _auth_headers


@pytest.fixture(scope="function")
def client(db_session):
    """TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
