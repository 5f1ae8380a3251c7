# backend/franchise_booking/main.py
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import settings
from .errors import register_error_handlers
from .middleware.prometheus_middleware import PrometheusMiddleware
from .routes import prometheus
from .routes.v1 import bookings as bookings_v1, health as health_v1, reviews as reviews_v1

API_TITLE = "Franchise Booking Engine"
API_DESCRIPTION = "Booking lifecycle, conflict resolution and reviews for home and care services"
API_VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events."""
    logger.info(f"Starting {API_TITLE} v{API_VERSION} ({settings.environment})")
    logger.info(
        f"Business hours {settings.business_day_start}-{settings.business_day_end} "
        f"{settings.business_timezone}, slot interval {settings.slot_interval_minutes}m"
    )
    yield
    logger.info(f"Shutting down {API_TITLE}")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

# Register unified error envelope handlers
register_error_handlers(app)

app.add_middleware(PrometheusMiddleware)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")

api_v1.include_router(health_v1.router, prefix="/health")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(reviews_v1.router, prefix="/reviews")

app.include_router(api_v1)
app.include_router(prometheus.router)


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint - API information"""
    return {"message": f"Welcome to the {API_TITLE}!", "version": API_VERSION, "docs": "/docs"}
