"""Startup configuration checks.

Run once from the application lifespan. Collects every violation before
failing so operators see the full list in one go.
"""

from typing import List

import structlog

from task_api.config import DEFAULT_JWT_SECRET, Settings
from task_api.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

MINIMUM_SECRET_LENGTH = 32


def validate_settings(settings: Settings) -> List[str]:
    """Validate security and rate-limit configuration.

    Args:
        settings: The application settings to validate

    Returns:
        List of error messages (empty if valid)
    """
    errors: List[str] = []

    secret = settings.jwt_secret or ""
    if not secret.strip():
        errors.append("JWT_SECRET must be set")
    elif settings.is_production:
        if secret == DEFAULT_JWT_SECRET:
            errors.append("JWT_SECRET is the development default; generate a new secret")
        elif len(secret.encode("utf-8")) < MINIMUM_SECRET_LENGTH:
            errors.append(
                f"JWT_SECRET must be at least {MINIMUM_SECRET_LENGTH} bytes in production"
            )

    if settings.access_token_expire_minutes <= 0:
        errors.append("ACCESS_TOKEN_EXPIRE_MINUTES must be positive")

    if settings.refresh_token_expire_days <= 0:
        errors.append("REFRESH_TOKEN_EXPIRE_DAYS must be positive")

    if settings.refresh_token_max_devices <= 0:
        errors.append("REFRESH_TOKEN_MAX_DEVICES must be positive")

    if settings.rate_limit_enabled and settings.rate_limit_capacity <= 0:
        errors.append("RATE_LIMIT_CAPACITY must be positive")

    if settings.rate_limit_period_seconds <= 0:
        errors.append("RATE_LIMIT_PERIOD_SECONDS must be positive")

    if settings.rate_limit_tokens < 0:
        errors.append("RATE_LIMIT_TOKENS must not be negative")

    if settings.rate_limit_max_clients <= 0:
        errors.append("RATE_LIMIT_MAX_CLIENTS must be positive")

    if settings.rate_limit_idle_ttl_seconds <= 0:
        errors.append("RATE_LIMIT_IDLE_TTL_SECONDS must be positive")

    if settings.refresh_token_cleanup_interval_seconds <= 0:
        errors.append("REFRESH_TOKEN_CLEANUP_INTERVAL_SECONDS must be positive")

    return errors


def run_startup_checks(settings: Settings) -> None:
    """Validate settings and raise on the first startup.

    Raises:
        ConfigurationError: If any check fails
    """
    if not settings.is_production and settings.jwt_secret == DEFAULT_JWT_SECRET:
        logger.warning("insecure_jwt_secret", environment=settings.environment)

    errors = validate_settings(settings)
    if errors:
        for error in errors:
            logger.error("startup_check_failed", error=error)
        raise ConfigurationError(errors)

    logger.info("startup_checks_passed", environment=settings.environment)
