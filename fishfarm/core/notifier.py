"""
Email notifications for the authorization workflow.

- REQUEST_CREATED: approvers learn that an operator asked to edit or
  deactivate/restore a record.
- APPROVED: the operator receives the one-time code.
- REJECTED: the operator receives the approver's comment.
- PASSWORD_RESET: a user receives a password recovery code.

Delivery is best effort. Nothing here raises: failures are logged and the
caller carries on, because the decision has already been committed.
If SMTP_HOST is not configured the message is only logged (dev mode).
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Iterable, Tuple

from jinja2 import Template

from fishfarm.core.config import Settings

logger = logging.getLogger(__name__)

REQUEST_CREATED = "REQUEST_CREATED"
APPROVED = "APPROVED"
REJECTED = "REJECTED"
PASSWORD_RESET = "PASSWORD_RESET"

KIND_LABELS = {
    "EDIT": "edición",
    "DEACTIVATE_RESTORE": "inactivación/restauración",
}

TEMPLATES: Dict[str, Tuple[Template, Template]] = {
    REQUEST_CREATED: (
        Template("Nueva solicitud de {{ kind_label }} #{{ request_id }} | {{ requester_name }} | Tabla: {{ table }}"),
        Template(
            "<h2>Nueva solicitud de {{ kind_label }}</h2>"
            "<p><strong>{{ requester_name }}</strong> solicita autorización sobre "
            "<strong>{{ table }}</strong> #{{ record_id }}.</p>"
            "<p><strong>Motivo:</strong> {{ reason }}</p>"
            "{% if summary %}<h3>Información del registro</h3><pre>{{ summary|e }}</pre>{% endif %}"
            '<p><a href="{{ app_url }}">Revisar solicitudes</a></p>'
        ),
    ),
    APPROVED: (
        Template("Solicitud #{{ request_id }} aprobada | Código: {{ code }}"),
        Template(
            "<h2>Solicitud #{{ request_id }} aprobada</h2>"
            "<p>Hola {{ requester_name }}, use el siguiente código para la {{ kind_label }} de "
            "<strong>{{ table }}</strong> #{{ record_id }}. Es de un solo uso.</p>"
            '<p style="font-size:28px;letter-spacing:6px"><strong>{{ code }}</strong></p>'
            "<p>Vence: {{ expires_at }}</p>"
            "<p>Aprobado por: {{ approver_name }}</p>"
        ),
    ),
    REJECTED: (
        Template("Solicitud de {{ kind_label }} #{{ request_id }} rechazada"),
        Template(
            "<h2>Solicitud #{{ request_id }} rechazada</h2>"
            "<p>Hola {{ requester_name }}, su solicitud sobre <strong>{{ table }}</strong> "
            "fue rechazada por {{ approver_name }}.</p>"
            "<p><strong>Motivo original:</strong> {{ reason }}</p>"
            "{% if comment %}<p><strong>Comentario:</strong> {{ comment }}</p>{% endif %}"
        ),
    ),
    PASSWORD_RESET: (
        Template("Código de recuperación de contraseña"),
        Template(
            "<h2>Código de recuperación</h2>"
            "<p>Hola {{ name }}, usa este código para restablecer tu contraseña.</p>"
            '<p style="font-size:28px;letter-spacing:6px"><strong>{{ code }}</strong></p>'
            "<p>Válido hasta: {{ expires_at }}</p>"
        ),
    ),
}


class Notifier:
    def __init__(self, settings: Settings):
        self.settings = settings

    def is_configured(self) -> bool:
        return bool(self.settings.SMTP_HOST)

    def render(self, event: str, data: Dict[str, Any]) -> Tuple[str, str]:
        subject_tpl, body_tpl = TEMPLATES[event]
        context = dict(data)
        context.setdefault("kind_label", KIND_LABELS.get(data.get("kind"), ""))
        context.setdefault("app_url", self.settings.APP_URL)
        return subject_tpl.render(**context), body_tpl.render(**context)

    def send(self, event: str, recipients: Iterable[str], data: Dict[str, Any]) -> bool:
        """Send ``event`` to ``recipients``. Returns True only if SMTP accepted it."""
        to = [r for r in recipients if r]
        if not to:
            logger.warning("Notification %s for request %s has no recipients", event, data.get("request_id"))
            return False
        try:
            subject, body = self.render(event, data)
            if not self.is_configured():
                logger.info("[EMAIL NOT SENT - SMTP NOT CONFIGURED] to=%s subject=%s", ",".join(to), subject)
                return False
            self._deliver(subject, body, to)
            logger.info("Notification %s sent for request %s", event, data.get("request_id"))
            return True
        except Exception:
            logger.exception("Failed to send %s notification for request %s", event, data.get("request_id"))
            return False

    def _deliver(self, subject: str, body_html: str, to: list) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.settings.SMTP_FROM
        msg["To"] = ", ".join(to)
        msg.attach(MIMEText(body_html, "html"))

        with smtplib.SMTP(self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=10) as server:
            if self.settings.SMTP_USE_TLS:
                server.starttls()
            if self.settings.SMTP_USER:
                server.login(self.settings.SMTP_USER, self.settings.SMTP_PASS or "")
            server.sendmail(self.settings.SMTP_FROM, to, msg.as_string())
