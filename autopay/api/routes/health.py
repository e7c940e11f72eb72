"""Health & Readiness Probes.

Invariants:
    - GET /health/ returns 200 whenever the process is up (liveness)
    - GET /health/ready returns 503 when the database is unreachable (readiness)
"""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from autopay.infrastructure import database

router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def liveness():
    return {"status": "healthy", "service": "autopay-engine"}


@router.get("/ready")
async def readiness(request: Request):
    manager = database.db_manager
    db_ok = await manager.is_ready() if manager else False
    ticker = getattr(request.app.state, "ticker", None)
    scheduler = "running" if ticker is not None and ticker.running else "stopped"
    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "database_unavailable"},
        )
    return {
        "status": "ready",
        "checks": {"database": "healthy", "scheduler": scheduler},
    }
