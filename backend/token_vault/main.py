"""Gmail Token Vault - FastAPI Entry Point."""
import sys

# asyncpg is incompatible with Windows ProactorEventLoop (default on Windows).
# Must be set before any asyncio usage.
if sys.platform == "win32":
    import asyncio
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI

from token_vault.config import settings
from token_vault.database import engine
from token_vault.logging_config import configure_logging
from token_vault.middleware.cors import setup_cors
from token_vault.middleware.error_handler import setup_error_handlers
from token_vault.middleware.logging_middleware import LoggingMiddleware
from token_vault.middleware.metrics import MetricsMiddleware, setup_metrics
from token_vault.api.v1 import admin_tokens as admin_tokens_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    logger.info("startup", env=settings.APP_ENV)
    if settings.SENTRY_DSN:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration

        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[FastApiIntegration()],
            traces_sample_rate=0.1 if settings.APP_ENV == "production" else 1.0,
            environment=settings.APP_ENV,
            send_default_pii=False,
        )

    yield

    await engine.dispose()
    logger.info("shutdown")


def create_app() -> FastAPI:
    configure_logging()

    application = FastAPI(
        title="Gmail Token Vault API",
        description="Encrypted storage, migration and key rotation for Gmail OAuth tokens",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Middleware (order matters: last added = first executed)
    setup_cors(application)
    setup_error_handlers(application)
    application.add_middleware(LoggingMiddleware)
    application.add_middleware(MetricsMiddleware)

    # Prometheus metrics endpoint
    setup_metrics(application)

    # API Routers
    application.include_router(
        admin_tokens_router.router, prefix="/api/v1/admin/gmail-tokens", tags=["Token Vault Admin"],
    )

    # Health check
    @application.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
