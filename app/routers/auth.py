from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.deps import get_current_user
from app.core.logging import log_security_event
from app.core.security import hash_password, make_access_token, verify_password
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import (
    AuthOut,
    ChangePasswordIn,
    LoginIn,
    ProfileUpdateIn,
    RegisterIn,
    UserOut,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(user: User) -> AuthOut:
    token = make_access_token(user.id, user.email, user.role)
    return AuthOut(user=UserOut.model_validate(user), token=token)


@router.post("/register", response_model=AuthOut, status_code=201)
def register(payload: RegisterIn, request: Request, db: Session = Depends(get_db)):
    email = payload.email.lower().strip()

    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise HTTPException(status_code=409, detail="Email already in use")

    user = User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        role=payload.role,
        team=payload.team,
        position=payload.position,
        phone=payload.phone,
        verified=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    log_security_event("account-creation", request, user_id=user.id, email=user.email)
    return _auth_response(user)


@router.post("/login", response_model=AuthOut)
def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    email = payload.email.lower().strip()
    user = db.query(User).filter(User.email == email).first()

    if not user or not verify_password(payload.password, user.password_hash):
        log_security_event(
            "login-failed", request, email=email, reason="invalid-credentials"
        )
        raise HTTPException(status_code=401, detail="Invalid email or password")

    user.last_login_at = datetime.now(timezone.utc)
    db.add(user)
    db.commit()
    db.refresh(user)

    log_security_event("login-success", request, user_id=user.id, email=user.email)
    return _auth_response(user)


@router.get("/profile", response_model=UserOut)
def profile(user: User = Depends(get_current_user)):
    return UserOut.model_validate(user)


@router.put("/profile", response_model=UserOut)
def update_profile(
    payload: ProfileUpdateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(user, field, value)
    db.add(user)
    db.commit()
    db.refresh(user)
    return UserOut.model_validate(user)


@router.post("/change-password")
def change_password(
    payload: ChangePasswordIn,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not verify_password(payload.current_password, user.password_hash):
        log_security_event(
            "password-change-failed",
            request,
            user_id=user.id,
            reason="invalid-current-password",
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    user.password_hash = hash_password(payload.new_password)
    db.add(user)
    db.commit()

    log_security_event("password-change-success", request, user_id=user.id)
    return {"ok": True, "message": "Password changed successfully"}


@router.post("/logout")
def logout(request: Request, user: User = Depends(get_current_user)):
    # tokens are stateless; the client drops its copy
    log_security_event("logout", request, user_id=user.id)
    return {"ok": True, "message": "Logged out successfully"}
