"""
Health Check Module
===================
Health endpoints reporting admission load.
"""

import time
from enum import Enum
from typing import Dict, Optional

from fastapi import APIRouter, Response
from pydantic import BaseModel
import structlog

from .admission import AdmissionController, AdmissionSnapshot

logger = structlog.get_logger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"


class ComponentHealth(BaseModel):
    status: str
    active: Optional[int] = None
    limit: Optional[int] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    service: str
    version: str
    components: Dict[str, ComponentHealth]
    timestamp: float


def probe_payload(snapshot: AdmissionSnapshot) -> dict:
    """Body returned by the proxy endpoint when called without a url."""
    return {
        "status": HealthStatus.HEALTHY.value,
        "activeRequests": snapshot.active,
        "maxConcurrent": snapshot.limit,
    }


def check_admission(admission: AdmissionController) -> ComponentHealth:
    snapshot = admission.snapshot()
    return ComponentHealth(
        status="saturated" if snapshot.saturated else "ok",
        active=snapshot.active,
        limit=snapshot.limit,
    )


def create_health_router(
    service_name: str,
    admission: AdmissionController,
    version: str = "1.0.0",
) -> APIRouter:
    """
    Create a health check router.

    Args:
        service_name: Name of the service (e.g., "streamflow-proxy")
        admission: The admission controller whose load is reported
        version: Service version

    Returns:
        FastAPI router with /health, /health/live, and /health/ready endpoints
    """
    router = APIRouter(tags=["Health"])

    @router.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check with admission load."""
        admission_health = check_admission(admission)
        overall_status = HealthStatus.HEALTHY
        if admission_health.status == "saturated":
            overall_status = HealthStatus.DEGRADED

        return HealthResponse(
            status=overall_status,
            service=service_name,
            version=version,
            components={"admission": admission_health},
            timestamp=time.time(),
        )

    @router.get("/health/live")
    async def liveness_probe():
        """Liveness probe - always returns 200 if the process is serving."""
        return {"status": "alive"}

    @router.get("/health/ready")
    async def readiness_probe():
        """Readiness probe - 503 while every admission slot is taken."""
        snapshot = admission.snapshot()
        if snapshot.saturated:
            logger.info("readiness_saturated", active=snapshot.active, limit=snapshot.limit)
            return Response(
                content='{"status": "not_ready", "reason": "saturated"}',
                status_code=503,
                media_type="application/json",
            )
        return {"status": "ready"}

    return router
