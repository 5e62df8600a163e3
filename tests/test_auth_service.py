from datetime import timedelta

from intranet.models.user import AppRole, User
from intranet.services import auth as auth_service


def test_password_hashing():
    password = "MySecurePassword123!"
    hashed = auth_service.get_password_hash(password)
    assert hashed != password
    assert auth_service.verify_password(password, hashed)
    assert not auth_service.verify_password("WrongPassword", hashed)


def test_token_round_trip(admin_user):
    claims = auth_service.build_token_claims(admin_user)
    token = auth_service.create_access_token(data=claims)
    payload = auth_service.decode_access_token(token)
    assert payload["sub"] == admin_user.email
    assert payload["role"] == "regional_admin"
    assert payload["org_id"] == admin_user.organization_id
    assert payload["type"] == "access"


def test_expired_token_is_reported():
    token = auth_service.create_access_token(data={"sub": "x@coastalhotels.com"}, expires_delta=timedelta(seconds=-1))
    assert auth_service.decode_access_token(token) == {"error": "TOKEN_EXPIRED"}


def test_garbage_token_is_rejected():
    assert auth_service.decode_access_token("not-a-jwt") is None


def test_refresh_tokens_are_unique():
    first = auth_service.create_refresh_token(data={"sub": "x@coastalhotels.com"})
    second = auth_service.create_refresh_token(data={"sub": "x@coastalhotels.com"})
    assert first != second


def test_phone_is_encrypted_at_rest(db_session, org):
    user = User(
        email="enc@coastalhotels.com",
        full_name="Enc User",
        hashed_password=auth_service.get_password_hash("Password123!"),
        role=AppRole.STAFF,
        organization_id=org.id,
    )
    user.phone = "+44 20 7946 0000"
    db_session.add(user)
    db_session.commit()

    saved = db_session.query(User).filter(User.email == "enc@coastalhotels.com").first()
    assert saved.phone_encrypted != "+44 20 7946 0000"
    assert saved.phone == "+44 20 7946 0000"
    assert auth_service.verify_password("Password123!", saved.hashed_password)
