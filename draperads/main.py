import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from draperads.auth.dependencies import LOGIN_URL, AuthenticationRequired
from draperads.auth.sessions import install_session_middleware
from draperads.config import settings
from draperads.db.base import engine, init_db, session_scope
from draperads.db.repositories import OAuthStatesRepository, WebSessionsRepository
from draperads.db.seed import seed_reference_data
from draperads.routers import ad_sets, ads, auth, catalog, meta, publish, targeting, uploads, wizard
from draperads.services.meta_ads import MetaAdsConfigError
from draperads.wizard.registry import wizard_registry
from draperads.wizard.selection import SelectionError
from draperads.wizard.state import CreativeValidationError, WizardStateError

logger = logging.getLogger(__name__)


def _request_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    errors = []
    for error in exc.errors():
        # drop the "body"/"query"/"path" prefix so the field name is what the client sent
        loc = [str(part) for part in error.get("loc", ())][1:]
        errors.append(
            {
                "field": ".".join(loc) or "body",
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "value_error"),
            }
        )
    return errors


@asynccontextmanager
async def _app_lifespan(_app: FastAPI) -> AsyncIterator[None]:
    logging.basicConfig(level=settings.LOG_LEVEL)
    if settings.DB_AUTO_CREATE:
        init_db()
        with session_scope() as session:
            seed_reference_data(session)
    with session_scope() as session:
        purged_sessions = WebSessionsRepository(session).purge_expired()
        purged_states = OAuthStatesRepository(session).purge_expired()
    logger.info(
        "Purged expired sessions",
        extra={"sessions": purged_sessions, "oauth_states": purged_states},
    )
    try:
        yield
    finally:
        wizard_registry.clear()


def create_app() -> FastAPI:
    app = FastAPI(
        title="DraperAds API",
        default_response_class=ORJSONResponse,
        lifespan=_app_lifespan,
    )

    allow_origins = sorted(set(settings.BACKEND_CORS_ORIGINS))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_session_middleware(app, on_session_lost=wizard_registry.discard)

    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=str(upload_dir), check_dir=False), name="uploads")

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(_request: Request, exc: RequestValidationError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=400,
            content={"detail": "Invalid request data", "errors": _request_errors(exc)},
        )

    @app.exception_handler(AuthenticationRequired)
    async def authentication_required_handler(_request: Request, exc: AuthenticationRequired) -> ORJSONResponse:
        return ORJSONResponse(status_code=401, content={"detail": exc.detail, "loginUrl": LOGIN_URL})

    @app.exception_handler(CreativeValidationError)
    async def creative_validation_error_handler(_request: Request, exc: CreativeValidationError) -> ORJSONResponse:
        return ORJSONResponse(status_code=400, content={"detail": str(exc), "errors": exc.errors})

    @app.exception_handler(WizardStateError)
    async def wizard_state_error_handler(_request: Request, exc: WizardStateError) -> ORJSONResponse:
        return ORJSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(SelectionError)
    async def selection_error_handler(_request: Request, exc: SelectionError) -> ORJSONResponse:
        return ORJSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(MetaAdsConfigError)
    async def meta_config_error_handler(_request: Request, exc: MetaAdsConfigError) -> ORJSONResponse:
        logger.error("Meta integration is not configured", extra={"error": str(exc)})
        return ORJSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(_request: Request, exc: SQLAlchemyError) -> ORJSONResponse:
        logger.exception("Database error", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Database query failed."})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health/db")
    def health_db() -> dict[str, str]:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return {"db": "ok"}
        except SQLAlchemyError as exc:
            return {"db": f"error: {exc}"}

    app.include_router(auth.router)
    app.include_router(catalog.router)
    app.include_router(ads.router)
    app.include_router(ad_sets.router)
    app.include_router(uploads.router)
    app.include_router(publish.router)
    app.include_router(meta.router)
    app.include_router(targeting.router)
    app.include_router(wizard.router)

    return app


app = create_app()
