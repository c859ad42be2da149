"""
Pass check for protected records.

An operator holds a "pass" on a record when they spent the code of an APPROVED
request for that record (a CODE_USED audit event) within the last few minutes.
The gate is recomputed on every mutation attempt; a pass simply ages out.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from sqlalchemy.orm import Session

from fishfarm.core.audit import latest_code_used
from fishfarm.core.auth import CurrentUser
from fishfarm.core.config import settings
from fishfarm.core.errors import ForbiddenError
from fishfarm.core.time import Clock, as_utc, parse_iso, utcnow
from fishfarm.models.authorization_request import AuthorizationRequest, RequestKind, RequestState

logger = logging.getLogger(__name__)

ACTIVE_FIELD = "active"

DENIED_MESSAGES = {
    RequestKind.EDIT: "No autorizado: requiere código válido reciente de edición.",
    RequestKind.DEACTIVATE_RESTORE: "No autorizado: requiere código válido reciente de inactivación/restauración.",
}


@dataclass(frozen=True)
class MutationIntent:
    """What a handler is about to do: HTTP method plus the fields it touches."""
    method: str
    fields: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, method: str, fields: Iterable[str] = ()) -> "MutationIntent":
        return cls(method=method.upper(), fields=frozenset(fields))


def required_kind_for(intent: MutationIntent) -> RequestKind:
    """DELETE or touching ``active`` needs a deactivate/restore pass; anything else an edit pass."""
    if intent.method == "DELETE" or ACTIVE_FIELD in intent.fields:
        return RequestKind.DEACTIVATE_RESTORE
    return RequestKind.EDIT


def required_kinds_for(intent: MutationIntent) -> Tuple[RequestKind, ...]:
    """
    Every pass the mutation needs.

    A body that changes ``active`` together with other columns needs both a
    deactivate/restore pass and an edit pass.
    """
    kind = required_kind_for(intent)
    if kind is RequestKind.DEACTIVATE_RESTORE and intent.method != "DELETE" and intent.fields - {ACTIVE_FIELD}:
        return (RequestKind.DEACTIVATE_RESTORE, RequestKind.EDIT)
    return (kind,)


def changed_fields(row, values: Dict[str, Any]) -> FrozenSet[str]:
    """Keys of ``values`` whose value differs from what ``row`` holds now."""
    return frozenset(k for k, v in values.items() if getattr(row, k) != v)


class PassCheckGate:
    def __init__(self, db: Session, *, clock: Clock = utcnow, window_minutes: Optional[int] = None):
        self.db = db
        self.clock = clock
        self.window_minutes = window_minutes if window_minutes is not None else settings.PASS_WINDOW_MINUTES

    def has_fresh_pass(
        self,
        actor_id: int,
        table: str,
        record_id: int,
        kind: RequestKind,
        window_minutes: Optional[int] = None,
    ) -> bool:
        kind = RequestKind(kind)
        window = self.window_minutes if window_minutes is None else window_minutes
        cutoff = self.clock() - timedelta(minutes=window)

        approved = (
            self.db.query(AuthorizationRequest.id)
            .filter(AuthorizationRequest.kind == kind.value)
            .filter(AuthorizationRequest.target_table == table)
            .filter(AuthorizationRequest.target_record_id == record_id)
            .filter(AuthorizationRequest.state == RequestState.APPROVED.value)
            .order_by(AuthorizationRequest.created_at.desc(), AuthorizationRequest.id.desc())
            .all()
        )
        for (request_id,) in approved:
            event = latest_code_used(self.db, kind.ledger, request_id)
            if event is None:
                continue
            detail = event.detail or {}
            used_by = detail.get("used_by")
            used_at = parse_iso(detail.get("used_at")) or as_utc(event.occurred_at)
            if used_by is None or str(used_by) != str(actor_id):
                continue
            if used_at is not None and used_at >= cutoff:
                return True
        return False

    def enforce(self, user: CurrentUser, table: str, record_id: int, kind: RequestKind) -> None:
        """Raise ForbiddenError unless ``user`` may mutate the record right now."""
        if user.is_privileged:
            return
        kind = RequestKind(kind)
        if not self.has_fresh_pass(user.id, table, record_id, kind):
            logger.warning("User %s denied %s on %s #%s: no fresh pass", user.id, kind.value, table, record_id)
            raise ForbiddenError(DENIED_MESSAGES[kind])

    def enforce_intent(self, user: CurrentUser, table: str, record_id: int, intent: MutationIntent) -> None:
        for kind in required_kinds_for(intent):
            self.enforce(user, table, record_id, kind)
