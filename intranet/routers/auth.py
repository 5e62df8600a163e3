import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from intranet.core.config import settings
from intranet.core.limiter import limiter
from intranet.database import get_db
from intranet.models.user import User, UserSession
from intranet.routers.auth_deps import get_current_user
from intranet.schemas.auth import LoginRequest, PasswordChange, RefreshRequest, Token
from intranet.schemas.directory import EmployeeDetail, ProfileUpdate
from intranet.services import auth as auth_service
from intranet.services.audit import AuditService
from intranet.services.directory import DirectoryService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


def _open_session(db: Session, user: User, request: Request) -> str:
    refresh_token = auth_service.create_refresh_token(data={"sub": user.email})
    db.add(UserSession(
        user_id=user.id,
        refresh_token=refresh_token,
        expires_at=datetime.now(timezone.utc) + timedelta(days=auth_service.REFRESH_TOKEN_EXPIRE_DAYS),
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    ))
    return refresh_token


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role.value,
        "organization_id": user.organization_id,
    }


@router.post("/login", response_model=Token)
@limiter.limit(settings.login_rate_limit)
def login(request: Request, login_data: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == login_data.email).first()
    if not user or not auth_service.verify_password(login_data.password, user.hashed_password):
        AuditService.log(
            db,
            action="failed_login",
            entity_type="user",
            entity_id=None,
            user_id=None,
            user_role=None,
            details={"email": login_data.email, "reason": "invalid_credentials"},
            organization_id=user.organization_id if user else None,
        )
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is inactive")

    access_token = auth_service.create_access_token(data=auth_service.build_token_claims(user))
    refresh_token = _open_session(db, user, request)
    AuditService.log(
        db,
        action="login",
        entity_type="user",
        entity_id=user.id,
        user_id=user.id,
        user_role=user.role,
        details={"email": user.email},
        organization_id=user.organization_id,
    )
    db.commit()
    logger.info(f"User {user.id} logged in")

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "user": _user_payload(user),
    }


@router.post("/refresh", response_model=Token)
def refresh(request: Request, body: RefreshRequest, db: Session = Depends(get_db)):
    payload = auth_service.decode_access_token(body.refresh_token)
    if payload is None or payload.get("type") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    db_session = db.query(UserSession).filter(
        UserSession.refresh_token == body.refresh_token,
        UserSession.is_revoked == False,  # noqa: E712
        UserSession.expires_at > datetime.now(timezone.utc)
    ).first()
    if not db_session:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired or revoked")

    user = db_session.user
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User inactive or not found")

    # Rotation: revoke old, issue new
    db_session.is_revoked = True
    access_token = auth_service.create_access_token(data=auth_service.build_token_claims(user))
    refresh_token = _open_session(db, user, request)
    db.commit()

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
    }


@router.post("/logout")
def logout(body: RefreshRequest, db: Session = Depends(get_db)):
    db_session = db.query(UserSession).filter(UserSession.refresh_token == body.refresh_token).first()
    if db_session:
        db_session.is_revoked = True
        db.commit()
    return {"message": "Successfully logged out"}


@router.get("/me", response_model=EmployeeDetail)
def get_me(current_user: User = Depends(get_current_user)):
    detail = EmployeeDetail.model_validate(current_user)
    detail.phone = current_user.phone
    return detail


@router.patch("/profile", response_model=EmployeeDetail)
def update_profile(
    update_data: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Update the current user's own profile."""
    user = DirectoryService(db, current_user.organization_id).update_profile(current_user, update_data)
    detail = EmployeeDetail.model_validate(user)
    detail.phone = user.phone
    return detail


@router.post("/change-password")
def change_password(
    data: PasswordChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if not auth_service.verify_password(data.current_password, current_user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Incorrect current password")

    current_user.hashed_password = auth_service.get_password_hash(data.new_password)
    AuditService.log(
        db,
        action="change_password",
        entity_type="user",
        entity_id=current_user.id,
        user_id=current_user.id,
        user_role=current_user.role,
        details={"status": "success"},
        organization_id=current_user.organization_id,
    )
    db.commit()
    return {"success": True, "message": "Password updated successfully"}
