"""FastAPI application factory for the notes API."""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from noteauth.api.router_auth import router as auth_router
from noteauth.api.router_notes import router as notes_router
from noteauth.core.errors import install_error_handlers
from noteauth.core.logging import clear_user_context, configure_logging, get_logger
from noteauth.core.services import AuthServices, build_services
from noteauth.core.settings import AppSettings
from noteauth.db.engine import create_engine, create_session_factory

logger = get_logger(__name__)


def create_app(
    settings: AppSettings | None = None,
    services: AuthServices | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = settings or AppSettings()
    configure_logging(settings.auth.log_level, settings.auth.log_json)

    services = services or build_services(settings)
    engine = create_engine(settings.database)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logger.info("app_started", strategy=settings.auth.strategy)
        yield
        await services.http_client.aclose()
        await engine.dispose()
        logger.info("app_stopped")

    app = FastAPI(
        title="Notes API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.session_factory = create_session_factory(engine)

    origins = settings.auth.get_cors_origin_list()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH"],
            allow_headers=["Authorization", "Content-Type"],
        )

    @app.middleware("http")
    async def reset_log_context(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        clear_user_context()
        return await call_next(request)

    install_error_handlers(app)
    app.include_router(auth_router)
    app.include_router(notes_router)

    return app
