"""
GeneratorLog - generator runtime tracking and maintenance reminders
Main FastAPI application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from generatorlog import __version__
from generatorlog.api.errors import register_error_handlers
from generatorlog.api.router import router as api_router
from generatorlog.core.clock import isoformat_utc, utcnow
from generatorlog.core.config import Settings, get_settings
from generatorlog.core.db.engine import engine, init_db
from generatorlog.core.logger import configure_app_logging, get_logger
from generatorlog.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from generatorlog.core.rate_limit import RateLimiter, auth_limiter

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    rate_limiter: RateLimiter | None = None,
    create_tables: bool = True,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use instead of the environment
        rate_limiter: Toggle rate limiter; built from settings when omitted.
            The application owns it and closes it on shutdown.
        create_tables: Create missing tables on the default engine
    """
    settings = settings or get_settings()
    if rate_limiter is None:
        rate_limiter = RateLimiter(
            limit=settings.api_rate_limit,
            window_seconds=settings.api_rate_window_seconds,
            sweep_interval=settings.rate_limit_sweep_seconds,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.rate_limiter.close()
        logger.info("GeneratorLog application stopped")

    app = FastAPI(
        title="GeneratorLog",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.rate_limiter = rate_limiter
    app.state.limiter = auth_limiter

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "x-api-key"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_error_handlers(app)
    app.include_router(api_router)

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "timestamp": isoformat_utc(utcnow()),
            "environment": settings.env,
        }

    @app.get("/")
    def root():
        return {"name": "GeneratorLog API", "version": __version__, "status": "running"}

    if create_tables:
        init_db(engine)

    logger.info(f"GeneratorLog application initialized ({settings.env})")
    return app


def app_factory() -> FastAPI:
    """
    Configure logging and build the app from the environment, e.g.
    `uvicorn --factory generatorlog.app:app_factory`.
    """
    settings = get_settings()
    configure_app_logging(level=settings.log_level, log_to_file=settings.log_to_file)
    return create_app(settings)
