# Hey future me - this router is for Docker/Kubernetes health checks!
#
# Endpoints:
# - /health/live     → Liveness probe (process is running)
# - /health/ready    → Readiness probe (credential store reachable)
#
# Spotify itself is NOT probed - an upstream outage shouldn't get our pods restarted.
"""Health check endpoints for Docker/Kubernetes probes."""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


class LivenessStatus(BaseModel):
    """Simple liveness probe response."""

    status: str = Field(description="alive")
    timestamp: str = Field(description="ISO timestamp")


class ReadinessStatus(BaseModel):
    """Readiness probe response."""

    status: str = Field(description="ready or not_ready")
    timestamp: str = Field(description="ISO timestamp")
    database: bool = Field(description="Database connection OK")


@router.get("/live", response_model=LivenessStatus)
async def liveness_probe() -> LivenessStatus:
    """Liveness probe. Returns 200 while the process is running, no dependency checks."""
    return LivenessStatus(
        status="alive",
        timestamp=datetime.now(UTC).isoformat(),
    )


@router.get("/ready", response_model=ReadinessStatus)
async def readiness_probe(request: Request) -> JSONResponse:
    """Readiness probe.

    Returns 200 if the credential store answers, 503 otherwise.
    """
    db_ok = False
    db = getattr(request.app.state, "db", None)
    if db is not None:
        try:
            await db.ping()
            db_ok = True
        except Exception as e:
            logger.warning("Readiness check: database ping failed: %s", e)

    response = ReadinessStatus(
        status="ready" if db_ok else "not_ready",
        timestamp=datetime.now(UTC).isoformat(),
        database=db_ok,
    )
    status_code = status.HTTP_200_OK if db_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=response.model_dump(), status_code=status_code)
