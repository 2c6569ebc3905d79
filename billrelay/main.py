import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .config import Settings, get_settings
from .errors import install_error_handlers
from .state import build_state

from .routes.webhook_api import router as webhook_router
from .routes.print_api import router as print_router
from .routes.token_api import router as token_router
from .routes.status_api import router as status_router

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    relay = app.state.relay
    logger.info("API key required: %s", bool(relay.settings.api_key))
    logger.info("Webhook secret configured: %s", bool(relay.settings.webhook_secret))
    logger.info("Item source: %s", relay.settings.item_source)
    relay.reaper.start()
    try:
        yield
    finally:
        await relay.reaper.stop()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Bill Relay (Payment Webhook Intake & Print Queue)",
        lifespan=lifespan,
    )
    app.state.relay = build_state(settings)
    install_error_handlers(app)

    # Routers
    app.include_router(webhook_router)
    app.include_router(print_router)
    app.include_router(token_router)
    app.include_router(status_router)
    return app


app = create_app()
