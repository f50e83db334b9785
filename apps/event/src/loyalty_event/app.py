from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from loguru import logger

from loyalty_event.core.settings import settings
from loyalty_event.domain.keys import LoyaltyKeys
from .api.routes import api_router, root_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing
from .services.commerce import HttpCommerceClient
from .services.loyalty import LoyaltyEventProcessor


APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    keys = LoyaltyKeys.from_settings(settings)
    app.state.loyalty_keys = keys

    # Tests and embedding callers may wire their own processor before startup.
    if getattr(app.state, "event_processor", None) is not None:
        yield
        return

    http_client = httpx.AsyncClient(timeout=settings.ctp_timeout_seconds)
    commerce_client: HttpCommerceClient | None = None
    try:
        commerce_client = HttpCommerceClient.from_settings(settings, http_client=http_client)
    except ValueError as exc:
        app.state.event_processor = None
        app.state.startup_error = str(exc)
        logger.error("Loyalty event processor disabled", reason=str(exc))
    else:
        app.state.event_processor = LoyaltyEventProcessor(commerce_client, keys)
        app.state.startup_error = None
        logger.info(
            "Loyalty event processor enabled",
            project_key=settings.ctp_project_key,
            container=keys.container,
            ledger_enabled=keys.ledger_enabled,
            max_update_attempts=keys.max_update_attempts,
        )

    try:
        yield
    finally:
        if commerce_client is not None:
            await commerce_client.aclose()
        await http_client.aclose()


def create_app() -> FastAPI:
    """Application factory for the loyalty event service."""
    configure_logging(
        service_name="loyalty-event",
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="Loyalty Event Service",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    configure_tracing(
        app,
        service_name="loyalty-event",
        service_version=APP_VERSION,
        environment=settings.environment,
    )

    app.include_router(api_router)
    app.include_router(root_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
