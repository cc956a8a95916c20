"""
Base upstream client.
"""

from abc import ABC, abstractmethod
from typing import Any

from forecaster.services.circuit_breaker import CircuitBreaker
from forecaster.services.client import ServiceClient
from forecaster.services.retry import RetryPolicy


class BaseDataSource(ABC):
    """
    Abstract base class for upstream clients.

    All clients should:
    - Use the injected ServiceClient for HTTP (circuit breaker, retry, timeouts)
    - Return pydantic models wrapped in a ServiceResult
    - Never leak raw upstream errors to the caller
    """

    SERVICE_ID: str
    LABEL: str

    def __init__(self, client: ServiceClient):
        self.client = client

    @property
    def service_id(self) -> str:
        """Unique identifier for this upstream, selects its circuit breaker."""
        return self.SERVICE_ID

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self.client.circuit_breaker(self.SERVICE_ID)

    def circuit_open(self) -> bool:
        return self.circuit_breaker.is_open()

    @abstractmethod
    def retry_policy(self) -> RetryPolicy:
        """Retry tuning for this upstream."""
        ...

    async def request_json(
        self, url: str, params: dict[str, Any] | None = None
    ) -> Any:
        return await self.client.request_json(
            service_id=self.SERVICE_ID,
            url=url,
            params=params,
            retry_policy=self.retry_policy(),
        )
