"""
Forgotten-password flow.

1. ``request_reset``: email a one-time code; only its hash is stored and any
   older open code for the same address is closed as superseded.
2. ``verify``: spend the code. The row is closed so the code cannot be used
   again, and the caller gets a short reset session (see
   fishfarm.core.auth.create_reset_token).
3. ``reset_password``: within that session, set the new password once.

Unknown addresses get the same answer as known ones.
"""
import logging
import re
from datetime import timedelta
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from fishfarm.core import notifier as events
from fishfarm.core.config import Settings, settings as default_settings
from fishfarm.core.credentials import check_code, generate_code, hash_password
from fishfarm.core.errors import CodeRejectedError, ExpiredError, MismatchError, ValidationError
from fishfarm.core.time import Clock, as_utc, utcnow
from fishfarm.models.password_reset import PasswordReset
from fishfarm.models.user import User

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class PasswordResetService:
    def __init__(
        self,
        db: Session,
        *,
        notifier=None,
        clock: Clock = utcnow,
        settings: Settings = default_settings,
    ):
        self.db = db
        self.notifier = notifier
        self.clock = clock
        self.settings = settings

    def _close(self, reset_id: int, reason: str, **values) -> int:
        result = self.db.execute(
            update(PasswordReset)
            .where(PasswordReset.id == reset_id)
            .where(PasswordReset.active.is_(True))
            .values(active=False, closed_at=self.clock(), close_reason=reason, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def request_reset(self, email: str, ip: Optional[str] = None, user_agent: Optional[str] = None) -> Optional[PasswordReset]:
        """Open a reset for an active user. Returns None when there is nobody to send it to."""
        email = (email or "").strip().lower()
        if not email:
            return None
        user = (
            self.db.query(User)
            .filter(func.lower(User.email) == email)
            .filter(User.active.is_(True))
            .first()
        )
        if user is None:
            logger.info("Password reset asked for unknown address")
            return None

        now = self.clock()
        plain_code, code_hash = generate_code(self.settings.PASSWORD_RESET_CODE_LENGTH)
        expires_at = now + timedelta(minutes=self.settings.PASSWORD_RESET_TTL_MINUTES)

        self.db.execute(
            update(PasswordReset)
            .where(PasswordReset.email == user.email)
            .where(PasswordReset.active.is_(True))
            .where(PasswordReset.used.is_(False))
            .values(active=False, closed_at=now, close_reason="superseded")
            .execution_options(synchronize_session=False)
        )
        row = PasswordReset(
            user_id=user.id,
            email=user.email,
            code_hash=code_hash,
            created_at=now,
            expires_at=expires_at,
            active=True,
            used=False,
            ip_address=ip,
            user_agent=(user_agent or "")[:500] or None,
        )
        self.db.add(row)
        self.db.commit()
        logger.info("Password reset #%s opened for user %s", row.id, user.id)

        if self.notifier is not None:
            try:
                self.notifier.send(
                    events.PASSWORD_RESET,
                    [user.email],
                    {
                        "request_id": row.id,
                        "name": user.name or user.email,
                        "code": plain_code,
                        "expires_at": expires_at.isoformat(),
                    },
                )
            except Exception:
                logger.exception("Notifier failed for password reset #%s", row.id)
        return row

    def verify(self, email: str, code: str, ip: Optional[str] = None, user_agent: Optional[str] = None) -> PasswordReset:
        """Spend a reset code. Every failure is the same CodeRejectedError."""
        email = (email or "").strip().lower()
        code = (code or "").strip()
        if not EMAIL_RE.match(email) or not code.isdigit() or len(code) != self.settings.PASSWORD_RESET_CODE_LENGTH:
            raise CodeRejectedError("malformed")

        row = (
            self.db.query(PasswordReset)
            .filter(func.lower(PasswordReset.email) == email)
            .filter(PasswordReset.active.is_(True))
            .filter(PasswordReset.used.is_(False))
            .order_by(PasswordReset.created_at.desc(), PasswordReset.id.desc())
            .first()
        )
        if row is None:
            raise CodeRejectedError("no open reset")

        if self.clock() > as_utc(row.expires_at):
            self._close(row.id, "expired")
            self.db.commit()
            raise ExpiredError()
        if not check_code(code, row.code_hash):
            raise MismatchError()

        if self._close(row.id, "verified", verified_ip=ip, verified_user_agent=(user_agent or "")[:500] or None) != 1:
            self.db.rollback()
            raise CodeRejectedError("already verified")
        self.db.commit()
        self.db.refresh(row)
        logger.info("Password reset #%s verified", row.id)
        return row

    def reset_password(
        self,
        reset_id: int,
        user_id: int,
        new_password: str,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        password = (new_password or "").strip()
        if len(password) < self.settings.PASSWORD_MIN_LENGTH:
            raise ValidationError(f"Contraseña mínima de {self.settings.PASSWORD_MIN_LENGTH} caracteres")

        row = (
            self.db.query(PasswordReset)
            .filter(PasswordReset.id == reset_id)
            .filter(PasswordReset.user_id == user_id)
            .filter(PasswordReset.used.is_(False))
            .with_for_update()
            .first()
        )
        if row is None:
            raise ValidationError("Enlace inválido o ya utilizado")

        now = self.clock()
        if now > as_utc(row.expires_at):
            row.active = False
            row.closed_at = row.closed_at or now
            row.close_reason = "expired"
            self.db.commit()
            raise ValidationError("Código expirado")

        result = self.db.execute(
            update(PasswordReset)
            .where(PasswordReset.id == row.id)
            .where(PasswordReset.used.is_(False))
            .values(
                used=True,
                used_at=now,
                active=False,
                used_ip=ip,
                used_user_agent=(user_agent or "")[:500] or None,
                closed_at=func.coalesce(PasswordReset.closed_at, now),
                close_reason=func.coalesce(PasswordReset.close_reason, "used"),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise ValidationError("Enlace inválido o ya utilizado")

        user = self.db.get(User, user_id)
        if user is None:
            self.db.rollback()
            raise ValidationError("Enlace inválido o ya utilizado")
        user.password_hash = hash_password(password)
        self.db.commit()
        logger.info("Password changed for user %s through reset #%s", user_id, reset_id)
