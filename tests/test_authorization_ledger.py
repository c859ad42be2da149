"""Tests for the request ledger and its state machine."""

from datetime import date

import pytest

from conftest import FailingNotifier
from fishfarm.core import notifier as events
from fishfarm.core.audit import APPROVE, CODE_USED, INSERT, REJECT
from fishfarm.core.authorization import AuthorizationLedger
from fishfarm.core.errors import (
    AlreadyUsedError,
    ExpiredError,
    ForbiddenError,
    InvalidStateError,
    MismatchError,
    NotFoundError,
    ValidationError,
)
from fishfarm.core.record_summary import summarize_record
from fishfarm.models.audit_event import AuditEvent
from fishfarm.models.authorization_request import AuthorizationRequest, RequestKind, RequestState
from fishfarm.models.loss import Loss


@pytest.fixture
def ledger(db, clock, notifier, settings):
    return AuthorizationLedger(db, RequestKind.EDIT, notifier=notifier, clock=clock, settings=settings)


def _approve(ledger, users, notifier, table="losses", record_id=7):
    request = ledger.submit(users["ana"].id, table, record_id, "conteo mal digitado").request
    ledger.decide(request.id, users["admin"].id, "approve")
    _, data = notifier.last(events.APPROVED)
    return request, data["code"]


def _events(db, action):
    return db.query(AuditEvent).filter(AuditEvent.action == action).all()


def test_submit_creates_pending_request(ledger, users, db, notifier):
    result = ledger.submit(users["ana"].id, "losses", 7, "conteo mal digitado")

    assert result.created
    assert result.request.state == RequestState.PENDING.value
    assert result.request.kind == RequestKind.EDIT.value
    assert not result.request.code_used
    assert result.request.code_hash is None

    inserts = _events(db, INSERT)
    assert len(inserts) == 1
    assert inserts[0].target_table == "edit_requests"
    assert "code_hash" not in inserts[0].detail["new"]

    recipients, data = notifier.last(events.REQUEST_CREATED)
    assert recipients == ["admin@granja.test"]
    assert data["requester_name"] == "Ana"
    assert data["summary"] is None


def test_request_email_summarizes_the_record(ledger, users, db, clock, notifier):
    loss = Loss(date=date(2026, 2, 20), lot_id=1, pond_id=None, dead=3, missing=0, surplus=2, deformed=1,
                active=True, created_by=users["ana"].id, created_at=clock())
    db.add(loss)
    db.commit()

    ledger.submit(users["ana"].id, "losses", loss.id, "conteo mal digitado")

    _, data = notifier.last(events.REQUEST_CREATED)
    lines = data["summary"].splitlines()
    assert lines[0] == f"ID: {loss.id}"
    assert "Fecha: 2026-02-20" in lines
    assert "Piscina: -" in lines
    assert "Muertos: 3" in lines
    assert "Sobrantes: 2" in lines


def test_summarize_unknown_table_or_row(db):
    assert summarize_record(db, "ponds", 1) is None
    assert summarize_record(db, "harvests", 404) is None


def test_submit_is_idempotent_per_requester_and_record(ledger, users):
    first = ledger.submit(users["ana"].id, "losses", 7, "conteo mal digitado")
    second = ledger.submit(users["ana"].id, "losses", 7, "otra vez lo mismo")

    assert not second.created
    assert second.request.id == first.request.id


def test_submit_other_requester_gets_own_request(ledger, users):
    first = ledger.submit(users["ana"].id, "losses", 7, "conteo mal digitado")
    second = ledger.submit(users["beto"].id, "losses", 7, "conteo mal digitado")
    assert second.created
    assert second.request.id != first.request.id


def test_concurrent_duplicate_collapses_on_unique_index(ledger, users, db, clock, notifier, settings, monkeypatch):
    winner = AuthorizationLedger(db, RequestKind.EDIT, notifier=notifier, clock=clock, settings=settings)
    first = winner.submit(users["ana"].id, "losses", 7, "conteo mal digitado")

    # the loser's read happened before the winner's insert
    real = ledger._pending_for
    calls = []

    def stale_read(*args):
        calls.append(args)
        return None if len(calls) == 1 else real(*args)

    monkeypatch.setattr(ledger, "_pending_for", stale_read)
    second = ledger.submit(users["ana"].id, "losses", 7, "conteo mal digitado")

    assert not second.created
    assert second.request.id == first.request.id
    assert db.query(AuthorizationRequest).count() == 1


def test_edit_and_inactivation_ledgers_are_separate(ledger, users, db, clock, notifier, settings):
    inactivation = AuthorizationLedger(db, RequestKind.DEACTIVATE_RESTORE, notifier=notifier, clock=clock, settings=settings)
    edit = ledger.submit(users["ana"].id, "losses", 7, "conteo mal digitado")
    other = inactivation.submit(users["ana"].id, "losses", 7, "registro duplicado")

    assert other.created
    assert other.request.id != edit.request.id
    with pytest.raises(NotFoundError):
        inactivation.get(edit.request.id)


@pytest.mark.parametrize(
    "table,record_id,reason",
    [
        ("", 7, "conteo mal digitado"),
        ("losses", 0, "conteo mal digitado"),
        ("losses", 7, "   "),
        ("losses", 7, "abc"),
        ("x" * 51, 7, "conteo mal digitado"),
    ],
)
def test_submit_rejects_bad_input(ledger, users, table, record_id, reason):
    with pytest.raises(ValidationError):
        ledger.submit(users["ana"].id, table, record_id, reason)


def test_approve_issues_hashed_code(ledger, users, db, clock, notifier):
    request = ledger.submit(users["ana"].id, "losses", 7, "conteo mal digitado").request
    decided = ledger.decide(request.id, users["admin"].id, "approve")

    assert decided.state == RequestState.APPROVED.value
    assert decided.approver_id == users["admin"].id
    assert decided.code_hash

    recipients, data = notifier.last(events.APPROVED)
    assert recipients == ["ana@granja.test"]
    assert len(data["code"]) == 4
    assert data["code"] not in decided.code_hash

    approvals = _events(db, APPROVE)
    assert len(approvals) == 1
    assert approvals[0].detail["old"]["state"] == "PENDING"
    assert approvals[0].detail["new"]["state"] == "APPROVED"
    assert "code_hash" not in approvals[0].detail["new"]


def test_reject_keeps_comment(ledger, users, db, notifier):
    request = ledger.submit(users["ana"].id, "losses", 7, "conteo mal digitado").request
    decided = ledger.decide(request.id, users["admin"].id, "reject", "insufficient justification")

    assert decided.state == RequestState.REJECTED.value
    assert decided.decision_comment == "insufficient justification"
    assert decided.code_hash is None

    rejections = _events(db, REJECT)
    assert rejections[0].detail["comment"] == "insufficient justification"
    _, data = notifier.last(events.REJECTED)
    assert data["comment"] == "insufficient justification"


def test_decision_is_final(ledger, users):
    request = ledger.submit(users["ana"].id, "losses", 7, "conteo mal digitado").request
    ledger.decide(request.id, users["admin"].id, "reject")

    with pytest.raises(InvalidStateError):
        ledger.decide(request.id, users["admin"].id, "approve")
    assert ledger.get(request.id).state == RequestState.REJECTED.value


def test_decide_unknown_action(ledger, users):
    request = ledger.submit(users["ana"].id, "losses", 7, "conteo mal digitado").request
    with pytest.raises(ValidationError):
        ledger.decide(request.id, users["admin"].id, "maybe")


def test_decide_missing_request(ledger, users):
    with pytest.raises(NotFoundError):
        ledger.decide(999, users["admin"].id, "approve")


def test_notifier_failure_does_not_undo_decision(users, db, clock, settings):
    failing = FailingNotifier()
    ledger = AuthorizationLedger(db, RequestKind.EDIT, notifier=failing, clock=clock, settings=settings)
    request = ledger.submit(users["ana"].id, "losses", 7, "conteo mal digitado").request
    ledger.decide(request.id, users["admin"].id, "approve")

    assert failing.calls == 2
    db.expire_all()
    assert ledger.get(request.id).state == RequestState.APPROVED.value


def test_verify_spends_code_once(ledger, users, db, notifier):
    request, code = _approve(ledger, users, notifier)

    result = ledger.verify_code(request.id, users["ana"].id, code)
    assert result.request_id == request.id
    assert result.used_by == users["ana"].id

    with pytest.raises(AlreadyUsedError):
        ledger.verify_code(request.id, users["ana"].id, code)

    used = _events(db, CODE_USED)
    assert len(used) == 1
    assert used[0].target_table == "edit_requests"
    assert used[0].target_record_id == str(request.id)
    assert used[0].detail["used_by"] == users["ana"].id


def test_verify_wrong_code(ledger, users, notifier):
    request, code = _approve(ledger, users, notifier)
    wrong = str((int(code) + 1) % 10000).zfill(4)

    with pytest.raises(MismatchError) as excinfo:
        ledger.verify_code(request.id, users["ana"].id, wrong)
    assert excinfo.value.public_message == "Código inválido o expirado"
    assert not ledger.get(request.id).code_used


def test_verify_after_expiry(ledger, users, clock, notifier):
    request, code = _approve(ledger, users, notifier)
    clock.advance(hours=24, seconds=1)

    with pytest.raises(ExpiredError):
        ledger.verify_code(request.id, users["ana"].id, code)


def test_verify_just_before_expiry(ledger, users, clock, notifier):
    request, code = _approve(ledger, users, notifier)
    clock.advance(hours=23, minutes=59)
    assert ledger.verify_code(request.id, users["ana"].id, code).request_id == request.id


def test_verify_pending_request(ledger, users):
    request = ledger.submit(users["ana"].id, "losses", 7, "conteo mal digitado").request
    with pytest.raises(InvalidStateError):
        ledger.verify_code(request.id, users["ana"].id, "1234")


def test_verify_by_other_operator_is_forbidden(ledger, users, notifier):
    request, code = _approve(ledger, users, notifier)
    with pytest.raises(ForbiddenError):
        ledger.verify_code(request.id, users["beto"].id, code)
    assert not ledger.get(request.id).code_used


def test_verify_blank_code(ledger, users, notifier):
    request, _ = _approve(ledger, users, notifier)
    with pytest.raises(ValidationError):
        ledger.verify_code(request.id, users["ana"].id, "  ")


def test_list_and_search(ledger, users):
    ledger.submit(users["ana"].id, "losses", 7, "conteo mal digitado")
    ledger.submit(users["beto"].id, "harvests", 3, "kilos equivocados")
    rejected = ledger.submit(users["beto"].id, "losses", 9, "fecha equivocada").request
    ledger.decide(rejected.id, users["admin"].id, "reject")

    everything = ledger.list()
    assert everything.total == 3

    pending = ledger.list(state="PENDING")
    assert pending.total == 2

    by_name = ledger.list(q="Beto")
    assert by_name.total == 2
    assert {r.requester_name for r in by_name.items} == {"Beto"}

    paged = ledger.list(page=2, page_size=2)
    assert len(paged.items) == 1
    assert paged.pages == 2


def test_pending_status(ledger, users, clock, notifier):
    assert not ledger.pending_status("losses", 7).pending

    request, code = _approve(ledger, users, notifier)
    status = ledger.pending_status("losses", 7, requester_id=users["ana"].id)
    assert status.pending and status.has_code
    assert status.request.id == request.id

    assert ledger.pending_status("losses", 7, requester_id=users["beto"].id).request is None

    ledger.verify_code(request.id, users["ana"].id, code)
    status = ledger.pending_status("losses", 7)
    assert not status.pending
    assert not status.has_code
