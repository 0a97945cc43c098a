"""Admin API endpoints for inspecting and resetting rate limits."""

from fastapi import APIRouter, Depends, Request
import structlog

from task_api.api.client_ip import resolve_client_ip
from task_api.api.dependencies import get_rate_limit_service, require_admin
from task_api.models.user import User
from task_api.services.rate_limit_service import RateLimitService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin/rate-limit", tags=["Admin"])


@router.get("/info")
async def rate_limit_info(
    admin: User = Depends(require_admin),
    service: RateLimitService = Depends(get_rate_limit_service),
) -> dict:
    """Current rate limit configuration (admin only)."""
    settings = service.settings
    return {
        "enabled": service.enabled,
        "capacity": service.capacity,
        "tokensPerPeriod": settings.rate_limit_tokens,
        "periodSeconds": service.period_seconds,
        "perIp": settings.rate_limit_per_ip,
        "excludedPaths": settings.rate_limit_excluded_paths_list,
        "trustedProxies": settings.rate_limit_trusted_proxies_list,
        "maxClients": settings.rate_limit_max_clients,
    }


@router.get("/stats")
async def rate_limit_stats(
    request: Request,
    admin: User = Depends(require_admin),
    service: RateLimitService = Depends(get_rate_limit_service),
) -> dict:
    """Registry size and the calling client's remaining tokens (admin only)."""
    client_id = getattr(request.state, "client_ip", None) or resolve_client_ip(
        request, service.settings.rate_limit_trusted_proxies_list
    )
    return {
        "enabled": service.enabled,
        "activeBuckets": service.bucket_count(),
        "maxClients": service.settings.rate_limit_max_clients,
        "clientId": client_id,
        "availableTokens": service.available_tokens(client_id),
    }


@router.post("/clear-cache")
async def clear_rate_limit_cache(
    admin: User = Depends(require_admin),
    service: RateLimitService = Depends(get_rate_limit_service),
) -> dict:
    """Drop every bucket, resetting all clients to full capacity (admin only)."""
    cleared = service.clear_all()
    logger.info("admin_rate_limit_cleared", admin_id=str(admin.id), cleared=cleared)
    return {"cleared": cleared, "message": "Rate limit cache cleared"}
