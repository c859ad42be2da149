from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from fishfarm.api.deps import get_clock, get_db, get_notifier, get_settings
from fishfarm.core.auth import RESET_COOKIE, create_reset_token, verify_reset_token
from fishfarm.core.config import Settings
from fishfarm.core.notifier import Notifier
from fishfarm.core.password_reset import PasswordResetService
from fishfarm.core.time import Clock
from fishfarm.schemas.user import ForgotPasswordRequest, NewPassword, ResetCodeVerification

router = APIRouter(prefix="/password", tags=["password"])


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


def _user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "")[:500]


def get_reset_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> PasswordResetService:
    return PasswordResetService(db, notifier=notifier, clock=clock, settings=settings)


@router.post("/forgot")
def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    service: PasswordResetService = Depends(get_reset_service),
):
    """Always answers success so addresses cannot be enumerated."""
    service.request_reset(payload.email, _client_ip(request), _user_agent(request))
    return {"success": True}


@router.post("/verify")
def verify_reset_code(
    payload: ResetCodeVerification,
    request: Request,
    response: Response,
    service: PasswordResetService = Depends(get_reset_service),
    settings: Settings = Depends(get_settings),
):
    row = service.verify(payload.email, payload.code, _client_ip(request), _user_agent(request))
    minutes = settings.PASSWORD_RESET_SESSION_MINUTES
    response.set_cookie(
        RESET_COOKIE,
        create_reset_token(row.id, row.user_id, row.email, minutes),
        httponly=True,
        samesite="lax",
        secure=settings.ENV == "production",
        max_age=minutes * 60,
        path="/",
    )
    return {"success": True}


@router.post("/reset")
def reset_password(
    payload: NewPassword,
    request: Request,
    response: Response,
    service: PasswordResetService = Depends(get_reset_service),
):
    session = verify_reset_token(request.cookies.get(RESET_COOKIE))
    service.reset_password(
        int(session["rid"]),
        int(session["uid"]),
        payload.password,
        _client_ip(request),
        _user_agent(request),
    )
    response.delete_cookie(RESET_COOKIE, path="/")
    return {"success": True}
