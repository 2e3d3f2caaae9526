"""
Health check endpoints

- /health/live  - the process is up
- /health/ready - the database answers a trivial query
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
import time

from fra_patta.core.config import settings
from fra_patta.core.database import get_db
from fra_patta.core.logging_config import logger


router = APIRouter(prefix="/health", tags=["Health Checks"])


@router.get("/live")
async def liveness():
    return {"status": "alive", "timestamp": datetime.utcnow().isoformat()}


@router.get("/ready")
async def readiness(db: AsyncSession = Depends(get_db)):
    """Ready when the database answers"""
    start = time.time()
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "unreachable", "error": str(e)}
        )

    return {
        "status": "ready",
        "database": "ok",
        "latency_ms": round((time.time() - start) * 1000, 2),
        "environment": settings.ENVIRONMENT,
    }
