"""
Authentication and RBAC dependencies for FastAPI endpoints.

Access tokens carry the user's email (``sub``), role and ``org_id``; the
role check itself always runs against the stored user so a demotion takes
effect before the token expires.
"""
import logging
from typing import Callable, List

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from intranet.core.permissions import has_permission
from intranet.database import get_db
from intranet.models.user import AppRole, User
from intranet.services import auth as auth_service

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def _credentials_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _decode(token: str) -> dict:
    """Decode an access token or raise 401 naming what was wrong with it."""
    payload = auth_service.decode_access_token(token)
    if payload is None:
        logger.warning("Authentication failed: Invalid token")
        raise _credentials_error("Could not validate credentials")
    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise _credentials_error("TOKEN_EXPIRED")
    if payload.get("type") != "access":
        logger.warning(f"Authentication failed: {payload.get('type')} token used as access token")
        raise _credentials_error("Invalid token type")
    return payload


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    payload = _decode(token)
    email = payload.get("sub")
    if not email:
        logger.warning("Authentication failed: Missing subject in token")
        raise _credentials_error("Missing subject in token")

    user = db.query(User).filter(User.email == email).first()
    if user is None:
        logger.warning(f"Authentication failed: User {email} not found")
        raise _credentials_error("User not found")
    if payload.get("org_id") is not None and int(payload["org_id"]) != user.organization_id:
        logger.warning(f"Authentication failed: Token organisation does not match user {user.id}")
        raise _credentials_error("Organization mismatch")
    if not user.is_active:
        logger.warning(f"Authentication failed: User {user.id} is inactive")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")
    return user


def get_current_org(token: str = Depends(oauth2_scheme)) -> int:
    """Organisation id from the token, without a database hit."""
    org_id = _decode(token).get("org_id")
    if org_id is None:
        raise _credentials_error("No organization context in token")
    return int(org_id)


def require_role(allowed_roles: List[AppRole]) -> Callable:
    """
    Dependency factory accepting only the listed roles.

    Usage:
        @router.post("/process-due")
        def process(user: User = Depends(require_role([AppRole.REGIONAL_ADMIN]))):
            ...
    """
    def role_checker(current_user: User = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
            )
        return current_user
    return role_checker


def require_permission(resource: str, action: str) -> Callable:
    """Dependency factory checking the role permission matrix."""
    def permission_checker(current_user: User = Depends(get_current_user)):
        if not has_permission(current_user.role, resource, action):
            logger.info(f"Permission {resource}:{action} denied for user {current_user.id} ({current_user.role.value})")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Missing permission {resource}:{action}"
            )
        return current_user
    return permission_checker
