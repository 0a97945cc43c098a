"""Periodic housekeeping for refresh tokens and rate limit buckets."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from task_api.config import Settings, get_settings
from task_api.services.rate_limit_service import RateLimitService
from task_api.services.refresh_token_service import RefreshTokenService

logger = structlog.get_logger(__name__)


async def run_cleanup_cycle(
    refresh_tokens: RefreshTokenService,
    rate_limiter: RateLimitService,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> dict[str, int]:
    """Purge stale refresh tokens and idle rate limit buckets once.

    Returns:
        Counts per cleanup step
    """
    settings = settings or get_settings()
    now = now or datetime.now(timezone.utc)

    counts = {
        "expired": await refresh_tokens.purge_expired(now),
        "revoked": await refresh_tokens.purge_old_revoked(
            now - timedelta(days=settings.refresh_token_revoked_retention_days)
        ),
        "unused": await refresh_tokens.purge_unused(
            now - timedelta(days=settings.refresh_token_unused_retention_days)
        ),
        "buckets": rate_limiter.sweep_idle(),
    }
    logger.info("cleanup_cycle_completed", **counts)
    return counts


async def cleanup_loop(
    refresh_tokens: RefreshTokenService,
    rate_limiter: RateLimitService,
    settings: Optional[Settings] = None,
) -> None:
    """Run ``run_cleanup_cycle`` forever at the configured interval.

    A failed cycle is logged and retried on the next interval.
    """
    settings = settings or get_settings()
    interval = settings.refresh_token_cleanup_interval_seconds

    while True:
        try:
            await asyncio.sleep(interval)
            await run_cleanup_cycle(refresh_tokens, rate_limiter, settings)
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning("cleanup_cycle_error", error=str(e))
