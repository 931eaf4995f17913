"""Mapping of domain exceptions to HTTP responses."""
import logging
from dataclasses import dataclass

from fastapi import HTTPException

from market_data_push.db.store import (RecordNotFound, StoreError,
                                       SubscriptionLimitError)
from market_data_push.scheduler import JobNotFoundError

logger = logging.getLogger(__name__)

# Exceptions the routes translate; anything else propagates as a 500.
DOMAIN_EXCEPTIONS: tuple[type[Exception], ...] = (
    StoreError,
    JobNotFoundError,
    ValueError,
)


@dataclass(frozen=True)
class DomainErrorMapper:
    """Maps store/scheduler exceptions to HTTP (status_code, detail)."""

    resource_name: str = "Resource"

    def to_http(self, exc: Exception) -> tuple[int, str]:
        if isinstance(exc, (RecordNotFound, JobNotFoundError)):
            return (404, str(exc) or f"{self.resource_name} not found")
        if isinstance(exc, SubscriptionLimitError):
            return (409, str(exc))
        if isinstance(exc, StoreError):
            logger.error("Store unavailable: %s", exc)
            return (503, "Store unavailable")
        if isinstance(exc, ValueError):  # includes CronSyntaxError
            return (422, str(exc) or f"Invalid {self.resource_name.lower()}")
        return (500, "Internal server error")

    def raise_http(self, exc: Exception) -> None:
        """Map exception to HTTP and raise HTTPException. Never returns."""
        status_code, detail = self.to_http(exc)
        raise HTTPException(status_code=status_code, detail=detail) from exc
