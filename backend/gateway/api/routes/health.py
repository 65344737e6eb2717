"""Health Probes — process liveness and application store readiness.

Invariants:
    - GET /api/v1/health/ is 200 whenever the process serves requests
    - GET /api/v1/health/ready is 503 until the application store answers SELECT 1
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

import gateway.infrastructure.database as db_module

router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/")
async def liveness():
    return {"status": "healthy"}


@router.get("/ready")
async def readiness():
    manager = db_module.db_manager
    if manager is None or not await manager.health_check():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "database_unavailable"},
        )
    return {"status": "ready", "checks": {"database": "healthy"}}
