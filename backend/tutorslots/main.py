# backend/tutorslots/main.py
import logging

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.constants import API_DESCRIPTION, API_PREFIX, API_TITLE, API_VERSION
from .errors import register_error_handlers
from .middleware.prometheus_middleware import PrometheusMiddleware
from .routes import availability, bookings, health, payments, slots, stripe_webhooks

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    register_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(PrometheusMiddleware)

    api_v1 = APIRouter(prefix=API_PREFIX)
    api_v1.include_router(availability.router)
    api_v1.include_router(slots.router)
    api_v1.include_router(bookings.router)
    api_v1.include_router(bookings.listing_router)
    api_v1.include_router(payments.router)
    api_v1.include_router(stripe_webhooks.router)
    app.include_router(api_v1)

    # Health and metrics stay outside the versioned prefix
    app.include_router(health.router)

    logger.info(f"{API_TITLE} v{API_VERSION} starting in {settings.environment} mode")
    return app


app = create_app()
