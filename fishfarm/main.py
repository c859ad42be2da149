import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from fishfarm.core.config import Settings, settings as default_settings
from fishfarm.core.database import build_engine, build_session_factory
from fishfarm.core.errors import AuthorizationError, authorization_error_handler
from fishfarm.core.notifier import Notifier
from fishfarm.core.time import Clock, utcnow

# every model must be imported so Base.metadata knows all tables
from fishfarm.models import audit_event, authorization_request, harvest, loss, password_reset, user  # noqa: F401

from fishfarm.api.routes.audit_logs import router as audit_logs_router
from fishfarm.api.routes.auth import router as auth_router
from fishfarm.api.routes.authorization_requests import edit_requests_router, inactivation_requests_router
from fishfarm.api.routes.harvests import router as harvests_router
from fishfarm.api.routes.losses import router as losses_router
from fishfarm.api.routes.password import router as password_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    clock: Optional[Clock] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    """
    Build the application.

    Tests hand in their own session factory, clock and notifier; in production
    the engine is built from DATABASE_URL and disposed on shutdown.
    """
    settings = settings or default_settings

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    engine = None
    if session_factory is None:
        engine = build_engine(settings.DATABASE_URL)
        session_factory = build_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting fishfarm backend (env=%s)", settings.ENV)
        yield
        if engine is not None:
            engine.dispose()
        logger.info("Fishfarm backend stopped")

    app = FastAPI(title="Fish Farm Backend", lifespan=lifespan)

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.clock = clock or utcnow
    app.state.notifier = notifier or Notifier(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AuthorizationError, authorization_error_handler)

    app.include_router(auth_router)
    app.include_router(password_router)
    app.include_router(edit_requests_router)
    app.include_router(inactivation_requests_router)
    app.include_router(losses_router)
    app.include_router(harvests_router)
    app.include_router(audit_logs_router)

    @app.get("/health")
    def health():
        return {"ok": True, "service": "backend"}

    @app.get("/db-health")
    def db_health(request: Request):
        db = request.app.state.session_factory()
        try:
            db.execute(text("select 1"))
            return {"ok": True, "db": "connected"}
        finally:
            db.close()

    return app


app = create_app()
