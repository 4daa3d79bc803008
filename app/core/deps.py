from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.logging import log_security_event
from app.core.security import decode_token
from app.db.session import get_db
from app.models.user import User
from app.services.ledger import FundraisingLedger
from app.services.payments import PaymentGateway
from app.services.webhooks import WebhookProcessor


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    token = _bearer_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token required"
        )

    try:
        payload = decode_token(token)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token"
        )

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token"
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token"
        )

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found"
        )

    return user


def require_roles(*roles: str):
    def dependency(request: Request, user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            log_security_event(
                "permission-denied", request, user_id=user.id, role=user.role
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "Insufficient permissions",
                    "required": list(roles),
                    "current": user.role,
                },
            )
        return user

    return dependency


require_admin = require_roles("admin")


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_webhook_processor(request: Request) -> WebhookProcessor:
    return request.app.state.webhook_processor


def get_ledger(request: Request) -> FundraisingLedger:
    return request.app.state.ledger
