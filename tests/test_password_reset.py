"""Tests for the forgotten-password flow."""

import pytest

from conftest import PASSWORD
from fishfarm.core import notifier as events
from fishfarm.core.credentials import verify_password
from fishfarm.core.errors import CodeRejectedError, ExpiredError, MismatchError, ValidationError
from fishfarm.core.password_reset import PasswordResetService
from fishfarm.models.password_reset import PasswordReset


@pytest.fixture
def service(db, clock, notifier, settings):
    return PasswordResetService(db, notifier=notifier, clock=clock, settings=settings)


def _other(code):
    return str((int(code) + 1) % 10 ** len(code)).zfill(len(code))


def _sent_code(notifier):
    _, data = notifier.last(events.PASSWORD_RESET)
    return data["code"]


def test_request_stores_hash_and_emails_code(service, users, notifier):
    row = service.request_reset(" ANA@granja.test ", ip="10.0.0.5", user_agent="pytest")

    recipients, data = notifier.last(events.PASSWORD_RESET)
    assert recipients == ["ana@granja.test"]
    assert len(data["code"]) == 6
    assert row.code_hash != data["code"]
    assert row.active and not row.used
    assert row.ip_address == "10.0.0.5"


def test_unknown_address_gets_nothing(service, users, notifier):
    assert service.request_reset("nadie@granja.test") is None
    assert service.request_reset("") is None
    assert notifier.sent == []


def test_new_request_supersedes_old_code(service, users, notifier, db):
    first = service.request_reset("ana@granja.test")
    old_code = _sent_code(notifier)
    service.request_reset("ana@granja.test")
    new_code = _sent_code(notifier)

    db.refresh(first)
    assert not first.active
    assert first.close_reason == "superseded"
    if old_code != new_code:
        with pytest.raises(MismatchError):
            service.verify("ana@granja.test", old_code)
    assert service.verify("ana@granja.test", new_code).close_reason == "verified"


def test_code_verifies_once(service, users, notifier):
    service.request_reset("ana@granja.test")
    code = _sent_code(notifier)

    row = service.verify("ana@granja.test", code)
    assert not row.active
    assert row.close_reason == "verified"

    with pytest.raises(CodeRejectedError):
        service.verify("ana@granja.test", code)


def test_wrong_code(service, users, notifier):
    service.request_reset("ana@granja.test")
    with pytest.raises(MismatchError) as excinfo:
        service.verify("ana@granja.test", _other(_sent_code(notifier)))
    assert excinfo.value.public_message == "Código inválido o expirado"


@pytest.mark.parametrize("email,code", [("no-es-correo", "123456"), ("ana@granja.test", "12ab56"), ("ana@granja.test", "1234")])
def test_malformed_input(service, users, email, code):
    with pytest.raises(CodeRejectedError):
        service.verify(email, code)


def test_expired_code_is_closed(service, users, notifier, clock, db):
    row = service.request_reset("ana@granja.test")
    clock.advance(minutes=31)

    with pytest.raises(ExpiredError):
        service.verify("ana@granja.test", _sent_code(notifier))
    db.refresh(row)
    assert row.close_reason == "expired"
    assert not row.active


def test_reset_changes_password_once(service, users, notifier, db):
    service.request_reset("ana@granja.test")
    row = service.verify("ana@granja.test", _sent_code(notifier))

    service.reset_password(row.id, users["ana"].id, "nueva-clave")
    db.refresh(users["ana"])
    assert verify_password("nueva-clave", users["ana"].password_hash)
    assert db.get(PasswordReset, row.id).used

    with pytest.raises(ValidationError):
        service.reset_password(row.id, users["ana"].id, "otra-clave")


def test_reset_rejects_short_password_and_wrong_user(service, users, notifier):
    service.request_reset("ana@granja.test")
    row = service.verify("ana@granja.test", _sent_code(notifier))

    with pytest.raises(ValidationError):
        service.reset_password(row.id, users["ana"].id, "abc")
    with pytest.raises(ValidationError):
        service.reset_password(row.id, users["beto"].id, "nueva-clave")


def test_http_flow(client, users, notifier):
    assert client.post("/password/forgot", json={"email": "ana@granja.test"}).json() == {"success": True}
    code = _sent_code(notifier)

    bad = client.post("/password/verify", json={"email": "ana@granja.test", "codigo": _other(code)})
    assert bad.status_code == 400
    assert bad.json() == {"detail": "Código inválido o expirado"}

    resp = client.post("/password/verify", json={"email": "ana@granja.test", "codigo": code})
    assert resp.status_code == 200
    assert "pw_reset" in resp.cookies

    resp = client.post("/password/reset", json={"password": "nueva-clave"})
    assert resp.status_code == 200

    assert client.post("/login", json={"email": "ana@granja.test", "password": PASSWORD}).status_code == 401
    assert client.post("/login", json={"email": "ana@granja.test", "password": "nueva-clave"}).status_code == 200


def test_forgot_does_not_reveal_addresses(client, users, notifier):
    resp = client.post("/password/forgot", json={"email": "nadie@granja.test"})
    assert resp.json() == {"success": True}
    assert notifier.sent == []


def test_reset_needs_verified_session(client, users):
    resp = client.post("/password/reset", json={"password": "nueva-clave"})
    assert resp.status_code == 401

    client.cookies.set("pw_reset", "not-a-token")
    assert client.post("/password/reset", json={"password": "nueva-clave"}).status_code == 401
