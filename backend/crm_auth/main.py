"""CRM Auth - authentication, session and user provisioning API."""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crm_auth.api import admin, auth
from crm_auth.api.errors import register_exception_handlers
from crm_auth.config import Settings, get_settings
from crm_auth.database import Database
from crm_auth.logging_config import configure_logging
from crm_auth.services.admin import ensure_system_admin
from crm_auth.services.notifications import Notifier
from crm_auth.services.tokens import TokenService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)

    owns_database = app.state.database is None
    if owns_database:
        app.state.database = Database(settings.database_url, echo=settings.debug)

    database: Database = app.state.database
    database.create_all()
    with database.session_scope() as db:
        ensure_system_admin(db, settings)

    logger.info("%s started", settings.app_name)
    yield

    if owns_database:
        database.dispose()
        app.state.database = None


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Authentication, sessions and user provisioning for the CRM",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.notifier = notifier or Notifier.from_settings(settings)
    app.state.token_service = TokenService(
        settings.secret_key,
        algorithm=settings.algorithm,
        expire_days=settings.access_token_expire_days,
    )

    # CORS for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "app": settings.app_name}

    app.include_router(auth.router, prefix="/api")
    app.include_router(admin.router, prefix="/api")
    return app
