"""
Authentication utilities for the backend's own JWT sessions.

POST /login signs an HS256 token with JWT_SECRET. The frontend sends it back
either in the Authorization header (Bearer) or in the ``auth_token`` cookie.
This module verifies the token and extracts the user info.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from fishfarm.core.config import settings

SUPERADMIN = "SUPERADMIN"
OPERADOR = "OPERADOR"

AUTH_COOKIE = "auth_token"
RESET_COOKIE = "pw_reset"
RESET_TOKEN_TYPE = "pw_reset"

# Security scheme for Bearer token; the cookie is accepted as well
security = HTTPBearer(auto_error=False)


class CurrentUser:
    """User extracted from the JWT token."""
    def __init__(self, user_id: int, email: Optional[str], role: Optional[str] = None, name: Optional[str] = None):
        self.id = user_id
        self.email = email
        self.name = name or email
        self.role = (role or OPERADOR).upper()

    @property
    def is_privileged(self) -> bool:
        """SUPERADMIN may mutate protected records without an authorization code."""
        return self.role == SUPERADMIN


def create_access_token(user_id: int, email: str, role: str, name: Optional[str] = None) -> str:
    expires = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRES_HOURS)
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "name": name,
        "exp": expires,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> dict:
    """
    Verify a session token and return the decoded payload.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def create_reset_token(reset_id: int, user_id: int, email: str, minutes: int) -> str:
    """Short-lived token proving a password reset code was verified."""
    payload = {
        "t": RESET_TOKEN_TYPE,
        "rid": reset_id,
        "uid": user_id,
        "email": email,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_reset_token(token: Optional[str]) -> dict:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sesión de reset no válida")
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        payload = None
    if not payload or payload.get("t") != RESET_TOKEN_TYPE or not payload.get("rid") or not payload.get("uid"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sesión de reset inválida o expirada")
    return payload


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """
    FastAPI dependency returning the authenticated user.

    Usage in route:
        @router.get("/protected")
        def protected_route(current_user: CurrentUser = Depends(get_current_user)):
            return {"user_id": current_user.id}
    """
    token = credentials.credentials if credentials else request.cookies.get(AUTH_COOKIE)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = verify_token(token)

    # older tokens carried "id"/"rol" instead of "sub"/"role"
    user_id = payload.get("sub") or payload.get("id")
    role = payload.get("role") or payload.get("rol")

    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate user",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return CurrentUser(user_id=user_id, email=payload.get("email"), role=role, name=payload.get("name"))


def require_role(*roles: str):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/edit-requests")
        def list_requests(current_user: CurrentUser = Depends(require_role(SUPERADMIN))):
            ...
    """
    allowed = {r.upper() for r in roles}

    def role_checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required role: {', '.join(sorted(allowed))}",
            )
        return current_user
    return role_checker
