"""
Errors raised by the authorization workflow (request ledger, code verification,
pass check).

Each error carries the HTTP status it maps to and the message shown to the
operator. They are turned into JSON responses by the handler registered in
fishfarm.main.create_app; nothing below the route layer builds HTTP responses.
"""
from fastapi import Request
from fastapi.responses import JSONResponse


class AuthorizationError(Exception):
    status_code = 400
    public_message = "Solicitud inválida"

    def __init__(self, message: str = None):
        super().__init__(message or self.public_message)
        if message:
            self.public_message = message


class ValidationError(AuthorizationError):
    status_code = 400
    public_message = "Datos inválidos"


class NotFoundError(AuthorizationError):
    status_code = 404
    public_message = "Solicitud no encontrada"


class InvalidStateError(AuthorizationError):
    status_code = 409
    public_message = "La solicitud no está en un estado válido para esta operación"


class ForbiddenError(AuthorizationError):
    status_code = 403
    public_message = "No autorizado: requiere código válido reciente"


class CodeRejectedError(AuthorizationError):
    """
    A submitted code was refused. Subclasses say why, but callers only ever see
    the generic message so the reason is not leaked.
    """
    status_code = 400
    public_message = "Código inválido o expirado"
    reason = "rejected"

    def __init__(self, message: str = None):
        # public message stays generic; ``message`` only goes to logs
        super().__init__()
        self.detail = message or self.reason


class ExpiredError(CodeRejectedError):
    reason = "expired"


class AlreadyUsedError(CodeRejectedError):
    reason = "already used"


class MismatchError(CodeRejectedError):
    reason = "mismatch"


async def authorization_error_handler(request: Request, exc: AuthorizationError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.public_message},
    )
