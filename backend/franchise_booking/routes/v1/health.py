# backend/franchise_booking/routes/v1/health.py
"""
Health check endpoints for monitoring and load balancer probes.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging

from fastapi import APIRouter
from pydantic import BaseModel

from ...core.config import settings
from ...database import get_db_pool_status

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

SERVICE_NAME = "franchise-booking-engine"


class HealthResponse(BaseModel):
    status: str
    service: str
    environment: str
    timestamp: str
    db_pool: dict[str, int]


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Lightweight: reports pool statistics without running a query.
    """
    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        db_pool=get_db_pool_status(),
    )
