from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from timetracker.core.config import Settings, load_settings
from timetracker.core.errors import register_exception_handlers, unexpected_error_response
from timetracker.core.logging import configure_logging
from timetracker.database import build_engine, build_session_factory
from timetracker import models  # noqa: F401
from timetracker.routers.admin import router as admin_router
from timetracker.routers.auth import router as auth_router
from timetracker.routers.customers import router as customers_router
from timetracker.routers.daily_login import router as daily_login_router
from timetracker.routers.organizations import router as organizations_router
from timetracker.routers.processes import router as processes_router
from timetracker.routers.timer import router as timer_router
from timetracker.routers.users import router as users_router

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    """
    Build the application.

    Served with `uvicorn timetracker.main:create_app --factory`; tests pass their
    own settings and engine.
    """
    settings = settings or load_settings()
    owns_engine = engine is None
    engine = engine or build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level, env=settings.env)
        logger.info("Time tracker starting", extra={"env": settings.env})
        try:
            yield
        finally:
            if owns_engine:
                engine.dispose()

    app = FastAPI(title="Time Tracker", version=VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    @app.middleware("http")
    async def catch_unhandled_exceptions(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            return unexpected_error_response(request, exc)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(admin_router)
    app.include_router(timer_router)
    app.include_router(daily_login_router)
    app.include_router(organizations_router)
    app.include_router(customers_router)
    app.include_router(processes_router)

    @app.get("/")
    def root():
        return {"status": "Time Tracker running"}

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "version": VERSION,
        }

    return app
