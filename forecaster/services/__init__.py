"""
Service layer infrastructure - resilience patterns for external API calls.

Provides:
- CacheManager: TTL cache with stale reads
- CircuitBreaker: Per-upstream error-rate tripwire
- RetryPolicy: Bounded exponential backoff
- ServiceClient: Shared HTTP client combining the patterns
- ServiceResult: Success/failure value returned by the clients
"""

from forecaster.services.errors import (
    ErrorKind,
    ServiceError,
    InvalidInputError,
    InvalidCoordinatesError,
    NotFoundError,
    CircuitOpenError,
    RequestTimeoutError,
    InvalidResponseError,
    InvalidRequestError,
    FetchFailedError,
    RetrievalFailedError,
)
from forecaster.services.result import ServiceResult
from forecaster.services.cache import CacheManager, CacheEntry, CacheResult
from forecaster.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from forecaster.services.retry import RetryPolicy
from forecaster.services.client import ServiceClient

__all__ = [
    # Errors
    "ErrorKind",
    "ServiceError",
    "InvalidInputError",
    "InvalidCoordinatesError",
    "NotFoundError",
    "CircuitOpenError",
    "RequestTimeoutError",
    "InvalidResponseError",
    "InvalidRequestError",
    "FetchFailedError",
    "RetrievalFailedError",
    # Result
    "ServiceResult",
    # Cache
    "CacheManager",
    "CacheEntry",
    "CacheResult",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    # Retry
    "RetryPolicy",
    # Client
    "ServiceClient",
]
