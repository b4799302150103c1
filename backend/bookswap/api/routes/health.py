"""Health & Readiness Probes — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if the database or Redis is unreachable (readiness)

Design Decisions:
    - Separate liveness/readiness: liveness restarts, readiness removes from load balancer
"""

import logging
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "bookswap-exchange",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness probe — includes database and broker connectivity."""
    db_manager = getattr(request.app.state, "db_manager", None)
    bus = getattr(request.app.state, "bus", None)
    db_ok = await db_manager.health_check() if db_manager else False
    bus_ok = await bus.ping() if bus else False
    if not (db_ok and bus_ok):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "checks": {
                    "database": "healthy" if db_ok else "unavailable",
                    "event_bus": "healthy" if bus_ok else "unavailable",
                },
            },
        )
    return {
        "status": "ready",
        "checks": {"database": "healthy", "event_bus": "healthy"},
    }
