"""
Request ledger and state machine for approval-gated mutations.

One ``AuthorizationLedger`` serves both kinds of request (EDIT and
DEACTIVATE_RESTORE); every query is filtered by the ledger's kind, so the two
ledgers never see each other's rows.

Lifecycle:
    PENDING --approve--> APPROVED (code issued) --verify--> code used
    PENDING --reject---> REJECTED

Transactions are short: lock the request row, check, write the change and its
audit event, commit. Notifications go out after the commit and can never undo
it.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from math import ceil
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fishfarm.core import audit
from fishfarm.core import notifier as events
from fishfarm.core.auth import SUPERADMIN
from fishfarm.core.config import Settings, settings as default_settings
from fishfarm.core.credentials import check_code, generate_code
from fishfarm.core.errors import (
    AlreadyUsedError,
    AuthorizationError,
    ExpiredError,
    ForbiddenError,
    InvalidStateError,
    MismatchError,
    NotFoundError,
    ValidationError,
)
from fishfarm.core.record_summary import summarize_record
from fishfarm.core.time import Clock, as_utc, utcnow
from fishfarm.models.authorization_request import AuthorizationRequest, RequestKind, RequestState
from fishfarm.models.user import User

logger = logging.getLogger(__name__)

APPROVE = "approve"
REJECT = "reject"

MAX_TABLE_LENGTH = 50
MAX_REASON_LENGTH = 2000

# never copied into audit snapshots
SECRET_FIELDS = ("code_hash",)


@dataclass
class SubmitResult:
    request: AuthorizationRequest
    created: bool


@dataclass
class VerificationResult:
    request_id: int
    used_by: int
    used_at: datetime


@dataclass
class PendingStatus:
    pending: bool
    has_code: bool = False
    request: Optional[AuthorizationRequest] = None


@dataclass
class RequestPage:
    items: List[AuthorizationRequest] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 50

    @property
    def pages(self) -> int:
        return ceil(self.total / self.page_size) if self.page_size else 0


class AuthorizationLedger:
    def __init__(
        self,
        db: Session,
        kind: RequestKind,
        *,
        notifier=None,
        clock: Clock = utcnow,
        settings: Settings = default_settings,
    ):
        self.db = db
        self.kind = RequestKind(kind)
        self.notifier = notifier
        self.clock = clock
        self.settings = settings

    # ------------------------------------------------------------------ reads

    def _query(self):
        return self.db.query(AuthorizationRequest).filter(AuthorizationRequest.kind == self.kind.value)

    def get(self, request_id: int) -> AuthorizationRequest:
        row = self._query().filter(AuthorizationRequest.id == request_id).first()
        if row is None:
            raise NotFoundError()
        return row

    def _lock(self, request_id: int) -> AuthorizationRequest:
        row = (
            self._query()
            .filter(AuthorizationRequest.id == request_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if row is None:
            raise NotFoundError()
        return row

    def _pending_for(self, table: str, record_id: int, requester_id: int) -> Optional[AuthorizationRequest]:
        return (
            self._query()
            .filter(AuthorizationRequest.target_table == table)
            .filter(AuthorizationRequest.target_record_id == record_id)
            .filter(AuthorizationRequest.requester_id == requester_id)
            .filter(AuthorizationRequest.state == RequestState.PENDING.value)
            .order_by(AuthorizationRequest.id.desc())
            .first()
        )

    def list(
        self,
        state: Optional[str] = None,
        requester_id: Optional[int] = None,
        q: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> RequestPage:
        page = max(1, page)
        page_size = max(1, min(200, page_size))

        query = (
            self.db.query(AuthorizationRequest, User.name, User.email)
            .outerjoin(User, User.id == AuthorizationRequest.requester_id)
            .filter(AuthorizationRequest.kind == self.kind.value)
        )
        if state:
            query = query.filter(AuthorizationRequest.state == state)
        if requester_id is not None:
            query = query.filter(AuthorizationRequest.requester_id == requester_id)
        if q:
            like = f"%{q.strip()}%"
            query = query.filter(
                or_(
                    AuthorizationRequest.reason.ilike(like),
                    AuthorizationRequest.target_table.ilike(like),
                    User.name.ilike(like),
                )
            )

        total = query.with_entities(func.count(AuthorizationRequest.id)).scalar() or 0
        rows = (
            query.order_by(AuthorizationRequest.created_at.desc(), AuthorizationRequest.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        items: List[AuthorizationRequest] = []
        for request, requester_name, requester_email in rows:
            request.requester_name = requester_name
            request.requester_email = requester_email
            items.append(request)
        return RequestPage(items=items, total=int(total), page=page, page_size=page_size)

    def pending_status(self, table: str, record_id: int, requester_id: Optional[int] = None) -> PendingStatus:
        """
        State of the newest request for a record, as the edit screens need it.

        ``pending`` is true while the request waits for a decision, or once it
        is approved and its code is still usable.
        """
        query = (
            self._query()
            .filter(AuthorizationRequest.target_table == table)
            .filter(AuthorizationRequest.target_record_id == record_id)
        )
        if requester_id is not None:
            query = query.filter(AuthorizationRequest.requester_id == requester_id)
        row = query.order_by(AuthorizationRequest.created_at.desc(), AuthorizationRequest.id.desc()).first()
        if row is None:
            return PendingStatus(pending=False)

        has_code = False
        if row.state == RequestState.APPROVED.value and row.code_hash:
            expires_at = as_utc(row.code_expires_at)
            expired = expires_at is not None and self.clock() > expires_at
            has_code = not expired and not row.code_used

        pending = row.state == RequestState.PENDING.value or (
            row.state == RequestState.APPROVED.value and has_code
        )
        return PendingStatus(pending=pending, has_code=has_code, request=row)

    # ----------------------------------------------------------------- writes

    def submit(self, requester_id: int, table: str, record_id: int, reason: str) -> SubmitResult:
        """
        Open a request, or return the caller's PENDING one for the same record.

        Idempotent per (kind, table, record, requester). A concurrent duplicate
        trips the partial unique index and is answered with the row that won.
        """
        table = (table or "").strip()
        reason = (reason or "").strip()
        if not table or len(table) > MAX_TABLE_LENGTH:
            raise ValidationError("Tabla requerida")
        if not isinstance(record_id, int) or record_id < 1:
            raise ValidationError("registro_id inválido")
        if len(reason) < self.settings.REASON_MIN_LENGTH:
            raise ValidationError("Motivo demasiado corto")
        if len(reason) > MAX_REASON_LENGTH:
            raise ValidationError("Motivo demasiado largo")

        existing = self._pending_for(table, record_id, requester_id)
        if existing is not None:
            return SubmitResult(request=existing, created=False)

        now = self.clock()
        row = AuthorizationRequest(
            kind=self.kind.value,
            target_table=table,
            target_record_id=record_id,
            requester_id=requester_id,
            reason=reason,
            state=RequestState.PENDING.value,
            code_used=False,
            created_at=now,
        )
        try:
            self.db.add(row)
            self.db.flush()
            audit.log_audit(
                self.db,
                actor_id=requester_id,
                action=audit.INSERT,
                target_table=self.kind.ledger,
                target_record_id=row.id,
                detail={"new": audit.snapshot(row, exclude=SECRET_FIELDS)},
                occurred_at=now,
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self._pending_for(table, record_id, requester_id)
            if existing is None:
                raise
            logger.info("Duplicate %s request for %s #%s collapsed into #%s", self.kind.value, table, record_id, existing.id)
            return SubmitResult(request=existing, created=False)

        logger.info("%s request #%s opened by user %s for %s #%s", self.kind.value, row.id, requester_id, table, record_id)

        requester = self._user(requester_id)
        self._notify(
            events.REQUEST_CREATED,
            self._approver_emails(),
            {
                "request_id": row.id,
                "kind": self.kind.value,
                "table": table,
                "record_id": record_id,
                "reason": reason,
                "requester_name": self._display_name(requester, requester_id),
                "summary": summarize_record(self.db, table, record_id),
            },
        )
        return SubmitResult(request=row, created=True)

    def decide(self, request_id: int, approver_id: int, action: str, comment: Optional[str] = None) -> AuthorizationRequest:
        """
        Approve or reject a PENDING request. Decisions are one-shot.

        On approval a fresh code is generated; only its hash is stored and the
        plain code goes to the requester through the notifier.
        """
        action = (action or "").strip().lower()
        if action not in (APPROVE, REJECT):
            raise ValidationError('Action inválida. Debe ser "approve" o "reject".')
        comment = (comment or "").strip() or None

        plain_code = None
        try:
            row = self._lock(request_id)
            if row.state != RequestState.PENDING.value:
                raise InvalidStateError("Solo se puede procesar solicitudes en estado PENDIENTE")

            before = audit.snapshot(row, exclude=SECRET_FIELDS)
            now = self.clock()
            values: Dict[str, Any] = {"approver_id": approver_id, "decided_at": now}
            if action == APPROVE:
                plain_code, code_hash = generate_code(self.settings.AUTH_CODE_LENGTH)
                values.update(
                    state=RequestState.APPROVED.value,
                    code_hash=code_hash,
                    code_expires_at=now + timedelta(hours=self.settings.AUTH_CODE_TTL_HOURS),
                    code_used=False,
                )
            else:
                values.update(state=RequestState.REJECTED.value, decision_comment=comment)

            result = self.db.execute(
                update(AuthorizationRequest)
                .where(AuthorizationRequest.id == row.id)
                .where(AuthorizationRequest.state == RequestState.PENDING.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidStateError("Solo se puede procesar solicitudes en estado PENDIENTE")
            self.db.refresh(row)

            after = audit.snapshot(row, exclude=SECRET_FIELDS)
            detail = {"old": before, "new": after}
            if comment:
                detail["comment"] = comment
            audit.log_audit(
                self.db,
                actor_id=approver_id,
                action=audit.APPROVE if action == APPROVE else audit.REJECT,
                target_table=self.kind.ledger,
                target_record_id=row.id,
                detail=detail,
                occurred_at=now,
            )
            self.db.commit()
        except AuthorizationError:
            self.db.rollback()
            raise

        logger.info("%s request #%s %s by user %s", self.kind.value, row.id, row.state, approver_id)

        requester = self._user(row.requester_id)
        approver = self._user(approver_id)
        data = {
            "request_id": row.id,
            "kind": self.kind.value,
            "table": row.target_table,
            "record_id": row.target_record_id,
            "reason": row.reason,
            "requester_name": self._display_name(requester, row.requester_id),
            "approver_name": self._display_name(approver, approver_id),
        }
        recipients = [requester.email] if requester is not None else []
        if action == APPROVE:
            data.update(code=plain_code, expires_at=as_utc(row.code_expires_at).isoformat())
            self._notify(events.APPROVED, recipients, data)
        else:
            data.update(comment=comment)
            self._notify(events.REJECTED, recipients, data)
        return row

    def verify_code(
        self,
        request_id: int,
        actor_id: int,
        submitted_code: str,
        *,
        privileged: bool = False,
    ) -> VerificationResult:
        """
        Spend the code of an APPROVED request.

        The check and the flip of ``code_used`` happen in one transaction
        together with the CODE_USED audit event, and the flip is conditional on
        the code still being unused, so a code can only be spent once.
        """
        code = (submitted_code or "").strip()
        if not code:
            raise ValidationError("Código requerido")

        try:
            row = self._lock(request_id)
            if not privileged and row.requester_id != actor_id:
                raise ForbiddenError("No autorizado para verificar este código")
            if row.state != RequestState.APPROVED.value or not row.code_hash:
                raise InvalidStateError("La solicitud no ha sido aprobada o no tiene código")
            if row.code_used:
                raise AlreadyUsedError()

            now = self.clock()
            expires_at = as_utc(row.code_expires_at)
            if expires_at is not None and now > expires_at:
                raise ExpiredError()
            if not check_code(code, row.code_hash):
                raise MismatchError()

            result = self.db.execute(
                update(AuthorizationRequest)
                .where(AuthorizationRequest.id == row.id)
                .where(AuthorizationRequest.code_used.is_(False))
                .values(code_used=True)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise AlreadyUsedError()

            audit.log_audit(
                self.db,
                actor_id=actor_id,
                action=audit.CODE_USED,
                target_table=self.kind.ledger,
                target_record_id=row.id,
                detail={"request_id": row.id, "used_by": actor_id, "used_at": now.isoformat()},
                occurred_at=now,
            )
            self.db.commit()
            self.db.refresh(row)
        except AuthorizationError as exc:
            self.db.rollback()
            logger.info(
                "Code verification for %s request #%s by user %s refused: %s",
                self.kind.value,
                request_id,
                actor_id,
                getattr(exc, "detail", exc),
            )
            raise

        logger.info("Code of %s request #%s used by user %s", self.kind.value, row.id, actor_id)
        return VerificationResult(request_id=row.id, used_by=actor_id, used_at=now)

    # ---------------------------------------------------------------- helpers

    def _user(self, user_id: Optional[int]) -> Optional[User]:
        if user_id is None:
            return None
        return self.db.get(User, user_id)

    @staticmethod
    def _display_name(user: Optional[User], user_id: Optional[int]) -> str:
        if user is None:
            return f"Usuario {user_id}"
        return user.name or user.email

    def _approver_emails(self) -> List[str]:
        configured = self.settings.admin_email_list
        if configured:
            return configured
        rows = (
            self.db.query(User.email)
            .filter(User.role == SUPERADMIN)
            .filter(User.active.is_(True))
            .all()
        )
        return [email for (email,) in rows if email]

    def _notify(self, event: str, recipients: List[str], data: Dict[str, Any]) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.send(event, recipients, data)
        except Exception:
            logger.exception("Notifier failed for %s on %s request #%s", event, self.kind.value, data.get("request_id"))
