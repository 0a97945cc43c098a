"""Error response models."""

from datetime import datetime, timezone
from http import HTTPStatus

from pydantic import Field

from task_api.models.auth import CamelModel


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ErrorResponse(CamelModel):
    """Error body shared by every handled failure.

    Attributes:
        timestamp: When the error was produced (UTC)
        status: HTTP status code
        error: HTTP reason phrase
        message: User-safe explanation (no internal details)
        path: Request path
    """

    timestamp: datetime = Field(default_factory=_now)
    status: int
    error: str
    message: str
    path: str

    @classmethod
    def for_status(cls, status: int, message: str, path: str) -> "ErrorResponse":
        return cls(status=status, error=HTTPStatus(status).phrase, message=message, path=path)


class RateLimitErrorResponse(ErrorResponse):
    """429 body describing the limit and retry delay.

    Attributes:
        limit: Bucket capacity
        retry_after: Seconds until the next refill
    """

    limit: int
    retry_after: int
