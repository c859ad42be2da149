import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from fishfarm.api.deps import get_db, get_settings
from fishfarm.core.auth import AUTH_COOKIE, CurrentUser, create_access_token, get_current_user
from fishfarm.core.config import Settings
from fishfarm.core.credentials import verify_password
from fishfarm.models.user import User
from fishfarm.schemas.user import LoginRequest, LoginResponse, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

BAD_CREDENTIALS = "Usuario o Contraseña incorrecta"


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Check email/password and open a session.

    The token is returned in the body and also set as the httpOnly
    ``auth_token`` cookie the frontend relies on.
    """
    user = db.query(User).filter(func.lower(User.email) == payload.email).first()
    if not user or not user.active or not verify_password(payload.password, user.password_hash):
        logger.info("Failed login for %s", payload.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=BAD_CREDENTIALS)

    token = create_access_token(user.id, user.email, user.role, user.name)
    response.set_cookie(
        AUTH_COOKIE,
        token,
        httponly=True,
        samesite="lax",
        secure=settings.ENV == "production",
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        path="/",
    )
    return LoginResponse(
        token=token,
        user=UserOut(id=user.id, name=user.name, email=user.email, role=user.role),
    )


@router.get("/auth/me", response_model=UserOut)
def me(current_user: CurrentUser = Depends(get_current_user)):
    return UserOut(id=current_user.id, name=current_user.name, email=current_user.email, role=current_user.role)


@router.post("/auth/logout")
def logout(response: Response):
    response.delete_cookie(AUTH_COOKIE, path="/")
    return {"ok": True}
