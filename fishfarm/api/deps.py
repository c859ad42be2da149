from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from fishfarm.core.authorization import AuthorizationLedger
from fishfarm.core.config import Settings
from fishfarm.core.notifier import Notifier
from fishfarm.core.pass_check import PassCheckGate
from fishfarm.core.time import Clock
from fishfarm.models.authorization_request import RequestKind


def get_db(request: Request) -> Generator[Session, None, None]:
    """One session per HTTP request, from the factory create_app put on app.state."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def ledger_dependency(kind: RequestKind):
    """Dependency factory returning the ledger of the given kind."""
    def _ledger(
        db: Session = Depends(get_db),
        notifier: Notifier = Depends(get_notifier),
        clock: Clock = Depends(get_clock),
        settings: Settings = Depends(get_settings),
    ) -> AuthorizationLedger:
        return AuthorizationLedger(db, kind, notifier=notifier, clock=clock, settings=settings)
    return _ledger


def get_gate(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> PassCheckGate:
    return PassCheckGate(db, clock=clock, window_minutes=settings.PASS_WINDOW_MINUTES)
