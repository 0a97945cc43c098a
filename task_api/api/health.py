"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter

from task_api.database import health_check as db_health_check

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint.

    Returns:
        Status and timestamp in ISO8601 format
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    db_healthy = await db_health_check()
    health_status["database"] = "healthy" if db_healthy else "unhealthy"

    return health_status
