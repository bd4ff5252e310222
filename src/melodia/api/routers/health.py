"""Health check endpoints for container probes."""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy import text

logger = logging.getLogger(__name__)

router = APIRouter()


class LivenessStatus(BaseModel):
    status: str = Field(description="alive")
    timestamp: str = Field(description="ISO timestamp")


class ReadinessStatus(BaseModel):
    status: str = Field(description="ready or not_ready")
    timestamp: str = Field(description="ISO timestamp")
    database: bool = Field(description="Database answered a trivial query")
    pool: dict[str, Any] = Field(default_factory=dict)


@router.get("/live", response_model=LivenessStatus)
async def liveness_probe() -> LivenessStatus:
    """Process is up; no dependency checks."""
    return LivenessStatus(status="alive", timestamp=datetime.now(UTC).isoformat())


# Hey future me - readiness runs a real SELECT 1. A 503 here tells the orchestrator to stop
# routing traffic, it does NOT restart the container (that is what /live is for).
@router.get("/ready", response_model=ReadinessStatus)
async def readiness_probe(request: Request) -> JSONResponse:
    db = getattr(request.app.state, "db", None)
    database_ok = False
    pool: dict[str, Any] = {}
    if db is not None:
        try:
            async with db.session_scope() as session:
                await session.execute(text("SELECT 1"))
            database_ok = True
            pool = db.get_pool_stats()
        except Exception as e:
            logger.warning("Readiness check failed: %s", e)

    body = ReadinessStatus(
        status="ready" if database_ok else "not_ready",
        timestamp=datetime.now(UTC).isoformat(),
        database=database_ok,
        pool=pool,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(),
    )
