"""Tests for the email notifier."""

import smtplib

from fishfarm.core import notifier as events
from fishfarm.core.config import Settings
from fishfarm.core.notifier import Notifier


def _settings(**overrides):
    values = dict(DATABASE_URL="sqlite://", JWT_SECRET="test-secret", SMTP_HOST=None)
    values.update(overrides)
    return Settings(**values)


DATA = {
    "request_id": 12,
    "kind": "EDIT",
    "table": "losses",
    "record_id": 7,
    "reason": "conteo mal digitado",
    "requester_name": "Ana",
    "approver_name": "Admin",
    "code": "4821",
    "expires_at": "2026-03-03T08:00:00+00:00",
}


def test_render_approved_contains_code():
    subject, body = Notifier(_settings()).render(events.APPROVED, DATA)
    assert "4821" in subject
    assert "edición" in body
    assert "losses" in body


def test_render_rejected_comment_is_optional():
    notifier = Notifier(_settings())
    _, body = notifier.render(events.REJECTED, dict(DATA, comment=None))
    assert "Comentario" not in body
    _, body = notifier.render(events.REJECTED, dict(DATA, comment="insufficient justification"))
    assert "insufficient justification" in body


def test_render_request_created_with_record_summary():
    notifier = Notifier(_settings())
    _, body = notifier.render(events.REQUEST_CREATED, dict(DATA, summary="ID: 7\nMuertos: 3\nLote: <sin lote>"))
    assert "Información del registro" in body
    assert "Muertos: 3" in body
    assert "&lt;sin lote&gt;" in body

    _, body = notifier.render(events.REQUEST_CREATED, dict(DATA, summary=None))
    assert "Información del registro" not in body


def test_render_password_reset():
    subject, body = Notifier(_settings()).render(events.PASSWORD_RESET, {"name": "Ana", "code": "048213", "expires_at": "2026-03-02T08:30:00+00:00"})
    assert "contraseña" in subject
    assert "048213" in body
    assert "Ana" in body


def test_unconfigured_smtp_only_logs(caplog):
    notifier = Notifier(_settings())
    with caplog.at_level("INFO"):
        assert notifier.send(events.REQUEST_CREATED, ["admin@granja.test"], DATA) is False
    assert "SMTP NOT CONFIGURED" in caplog.text


def test_no_recipients():
    assert Notifier(_settings(SMTP_HOST="smtp.test")).send(events.APPROVED, [], DATA) is False


def test_smtp_failure_is_swallowed(monkeypatch):
    def refuse(*args, **kwargs):
        raise smtplib.SMTPConnectError(421, "down")

    monkeypatch.setattr(smtplib, "SMTP", refuse)
    notifier = Notifier(_settings(SMTP_HOST="smtp.test"))
    assert notifier.send(events.APPROVED, ["ana@granja.test"], DATA) is False


def test_smtp_delivery(monkeypatch):
    sent = []

    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            self.host = host

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self):
            sent.append("tls")

        def login(self, user, password):
            sent.append(("login", user))

        def sendmail(self, sender, to, message):
            sent.append(("mail", sender, tuple(to)))

    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    notifier = Notifier(_settings(SMTP_HOST="smtp.test", SMTP_USER="bot", SMTP_FROM="granja@test"))
    assert notifier.send(events.APPROVED, ["ana@granja.test"], DATA) is True
    assert sent == ["tls", ("login", "bot"), ("mail", "granja@test", ("ana@granja.test",))]
