"""
Authorization request routes.

The same router is built twice:
- /edit-requests           -> EDIT ledger
- /inactivation-requests   -> DEACTIVATE_RESTORE ledger

Operators open requests and spend codes; SUPERADMIN lists and decides.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from fishfarm.api.deps import ledger_dependency
from fishfarm.core.auth import CurrentUser, OPERADOR, SUPERADMIN, require_role
from fishfarm.core.authorization import AuthorizationLedger
from fishfarm.core.time import as_utc
from fishfarm.models.authorization_request import RequestKind
from fishfarm.schemas.authorization_request import (
    CodeVerification,
    PendingRequestOut,
    PendingStatusOut,
    RequestCreate,
    RequestDecision,
    RequestListItem,
    RequestOut,
    RequestPageOut,
    VerificationOut,
    normalize_state,
)

VERIFIED_MESSAGES = {
    RequestKind.EDIT: "Código verificado. Ahora puede editar el registro.",
    RequestKind.DEACTIVATE_RESTORE: "Código verificado para inactivación/restauración.",
}


def build_router(kind: RequestKind, prefix: str) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[prefix.strip("/")])
    get_ledger = ledger_dependency(kind)
    any_user = require_role(SUPERADMIN, OPERADOR)
    admin_only = require_role(SUPERADMIN)

    @router.post("", response_model=RequestOut, status_code=201)
    def submit_request(
        payload: RequestCreate,
        response: Response,
        ledger: AuthorizationLedger = Depends(get_ledger),
        current_user: CurrentUser = Depends(any_user),
    ):
        """
        Open a request for the caller. If the caller already has a PENDING
        request for the same record, that one is returned with 200 instead.
        """
        result = ledger.submit(current_user.id, payload.table, payload.record_id, payload.reason)
        if not result.created:
            response.status_code = 200
        return result.request

    @router.get("", response_model=RequestPageOut)
    def list_requests(
        ledger: AuthorizationLedger = Depends(get_ledger),
        current_user: CurrentUser = Depends(admin_only),
        estado: Optional[str] = Query(None, description="PENDING|APPROVED|REJECTED (or PENDIENTE|APROBADO|RECHAZADO)"),
        operador_id: Optional[int] = Query(None),
        q: Optional[str] = Query(None, description="search reason, table or operator name"),
        page: int = Query(1, ge=1),
        page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
    ):
        result = ledger.list(
            state=normalize_state(estado),
            requester_id=operador_id,
            q=q,
            page=page,
            page_size=page_size,
        )
        return RequestPageOut(
            data=[RequestListItem.model_validate(r) for r in result.items],
            page=result.page,
            page_size=result.page_size,
            total=result.total,
            pages=result.pages,
        )

    @router.get("/pending", response_model=PendingStatusOut)
    def pending_request(
        tabla: str = Query(..., min_length=1, max_length=50),
        registro_id: int = Query(..., ge=1),
        ledger: AuthorizationLedger = Depends(get_ledger),
        current_user: CurrentUser = Depends(any_user),
    ):
        """Operators only see their own requests; SUPERADMIN sees anyone's."""
        requester_id = None if current_user.is_privileged else current_user.id
        status = ledger.pending_status(tabla.strip(), registro_id, requester_id=requester_id)
        if status.request is None:
            return PendingStatusOut(pending=False)
        row = status.request
        return PendingStatusOut(
            pending=status.pending,
            request=PendingRequestOut(
                id=row.id,
                has_code=status.has_code,
                state=row.state,
                expires_at=as_utc(row.code_expires_at),
                requester_id=row.requester_id,
            ),
        )

    @router.get("/{request_id}", response_model=RequestOut)
    def get_request(
        request_id: int,
        ledger: AuthorizationLedger = Depends(get_ledger),
        current_user: CurrentUser = Depends(any_user),
    ):
        row = ledger.get(request_id)
        if not current_user.is_privileged and row.requester_id != current_user.id:
            # operators cannot read other operators' requests
            raise HTTPException(status_code=404, detail="Solicitud no encontrada")
        return row

    @router.patch("/{request_id}", response_model=RequestOut)
    def decide_request(
        request_id: int,
        payload: RequestDecision,
        ledger: AuthorizationLedger = Depends(get_ledger),
        current_user: CurrentUser = Depends(admin_only),
    ):
        """Approve (issues and emails a code) or reject (emails the comment)."""
        return ledger.decide(request_id, current_user.id, payload.action, payload.comment)

    @router.post("/{request_id}/verify", response_model=VerificationOut)
    def verify_code(
        request_id: int,
        payload: CodeVerification,
        ledger: AuthorizationLedger = Depends(get_ledger),
        current_user: CurrentUser = Depends(any_user),
    ):
        result = ledger.verify_code(
            request_id,
            current_user.id,
            payload.code,
            privileged=current_user.is_privileged,
        )
        return VerificationOut(
            request_id=result.request_id,
            used_at=result.used_at,
            msg=VERIFIED_MESSAGES[kind],
        )

    return router


edit_requests_router = build_router(RequestKind.EDIT, "/edit-requests")
inactivation_requests_router = build_router(RequestKind.DEACTIVATE_RESTORE, "/inactivation-requests")
