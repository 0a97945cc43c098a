"""Per-client token bucket registry and rate limit policy."""

import time
from collections import OrderedDict
from threading import Lock
from typing import Optional

import structlog

from task_api.config import Settings, get_settings
from task_api.services.token_bucket import Clock, TokenBucket

logger = structlog.get_logger(__name__)

GLOBAL_CLIENT_ID = "global"


class RateLimitService:
    """Service for admission control using one token bucket per client.

    The registry is bounded: once ``rate_limit_max_clients`` buckets exist
    the least recently used one is evicted. ``sweep_idle`` drops buckets
    that are full and have not been touched for ``rate_limit_idle_ttl_seconds``.
    """

    def __init__(self, settings: Optional[Settings] = None, clock: Clock = time.monotonic):
        self.settings = settings or get_settings()
        self._clock = clock
        self._buckets: "OrderedDict[str, TokenBucket]" = OrderedDict()
        self._lock = Lock()

        logger.info(
            "rate_limiter_initialized",
            enabled=self.settings.rate_limit_enabled,
            capacity=self.capacity,
            tokens_per_period=self.settings.rate_limit_tokens,
            period_seconds=self.settings.rate_limit_period_seconds,
            per_ip=self.settings.rate_limit_per_ip,
        )

    @property
    def enabled(self) -> bool:
        return self.settings.rate_limit_enabled

    @property
    def capacity(self) -> int:
        return max(0, self.settings.rate_limit_capacity)

    @property
    def period_seconds(self) -> int:
        return self.settings.rate_limit_period_seconds

    def _key(self, client_id: str) -> str:
        return client_id if self.settings.rate_limit_per_ip else GLOBAL_CLIENT_ID

    def _new_bucket(self) -> TokenBucket:
        return TokenBucket(
            capacity=self.settings.rate_limit_capacity,
            refill_amount=self.settings.rate_limit_tokens,
            refill_period=self.settings.rate_limit_period_seconds,
            clock=self._clock,
        )

    def _resolve_bucket(self, client_id: str) -> TokenBucket:
        """Get the bucket for a client, creating it atomically if missing."""
        key = self._key(client_id)
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is not None:
                self._buckets.move_to_end(key)
                return bucket

            bucket = self._new_bucket()
            self._buckets[key] = bucket

            if len(self._buckets) > self.settings.rate_limit_max_clients:
                evicted, _ = self._buckets.popitem(last=False)
                logger.warning("rate_limit_bucket_evicted", client_id=evicted)

            logger.debug("rate_limit_bucket_created", client_id=key)
            return bucket

    def try_consume(self, client_id: str) -> bool:
        """Try to consume one token for a client.

        Args:
            client_id: Client identifier (typically the source IP)

        Returns:
            True if the request is admitted, False if the limit is exceeded
        """
        if not self.enabled:
            return True

        consumed = self._resolve_bucket(client_id).try_consume()
        if not consumed:
            logger.warning("rate_limit_exceeded", client_id=client_id)
        return consumed

    def available_tokens(self, client_id: str) -> int:
        """Remaining tokens for a client.

        Unknown clients report full capacity; no bucket is allocated.
        """
        key = self._key(client_id)
        with self._lock:
            bucket = self._buckets.get(key)
        if bucket is None:
            return self.capacity
        return bucket.available_tokens()

    def bucket_count(self) -> int:
        with self._lock:
            return len(self._buckets)

    def clear_all(self) -> int:
        """Drop every bucket, resetting all limits.

        Returns:
            Number of buckets cleared
        """
        with self._lock:
            count = len(self._buckets)
            self._buckets.clear()
        logger.info("rate_limit_cache_cleared", buckets_cleared=count)
        return count

    def sweep_idle(self) -> int:
        """Remove buckets that are full and idle past the configured TTL.

        Removing a full bucket is lossless: a new one starts full too.

        Returns:
            Number of buckets removed
        """
        ttl = self.settings.rate_limit_idle_ttl_seconds
        with self._lock:
            stale = [
                key
                for key, bucket in self._buckets.items()
                if bucket.idle_for() >= ttl and bucket.available_tokens() >= bucket.capacity
            ]
            for key in stale:
                del self._buckets[key]

        if stale:
            logger.info("rate_limit_buckets_swept", count=len(stale))
        return len(stale)
