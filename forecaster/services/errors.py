"""
Service layer exceptions.

Every exception carries an ErrorKind. Clients raise these internally and
convert them to a ServiceResult at their public boundary.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a failed service call."""

    INVALID_INPUT = "invalid_input"
    INVALID_COORDINATES = "invalid_coordinates"
    NOT_FOUND = "not_found"
    SERVICE_UNAVAILABLE = "service_unavailable"  # Circuit open
    TIMEOUT = "timeout"
    INVALID_RESPONSE = "invalid_response"
    INVALID_REQUEST = "invalid_request"  # Upstream 4xx
    FETCH_FAILED = "fetch_failed"
    RETRIEVAL_FAILED = "retrieval_failed"


class ServiceError(Exception):
    """Base exception for service layer errors."""

    kind: ErrorKind = ErrorKind.FETCH_FAILED

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class InvalidInputError(ServiceError):
    """Caller supplied a blank or unusable value."""

    kind = ErrorKind.INVALID_INPUT


class InvalidCoordinatesError(ServiceError):
    """Latitude or longitude is not a number within range."""

    kind = ErrorKind.INVALID_COORDINATES


class NotFoundError(ServiceError):
    """Upstream returned no match."""

    kind = ErrorKind.NOT_FOUND


class CircuitOpenError(ServiceError):
    """Circuit breaker is open, request blocked."""

    kind = ErrorKind.SERVICE_UNAVAILABLE

    def __init__(self, service_id: str, reset_after_seconds: float):
        self.reset_after_seconds = reset_after_seconds
        super().__init__(
            f"Circuit breaker open for service '{service_id}', "
            f"retry after {reset_after_seconds:.1f}s",
            service_id=service_id,
        )


class RequestTimeoutError(ServiceError):
    """Request timed out."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, service_id: str, timeout: float | None = None):
        self.timeout = timeout
        msg = f"Request to service '{service_id}' timed out"
        if timeout:
            msg += f" after {timeout}s"
        super().__init__(msg, service_id=service_id)


class InvalidResponseError(ServiceError):
    """Upstream answered with a body we cannot use."""

    kind = ErrorKind.INVALID_RESPONSE


class InvalidRequestError(ServiceError):
    """Upstream rejected the request (4xx)."""

    kind = ErrorKind.INVALID_REQUEST

    def __init__(self, service_id: str, status_code: int):
        self.status_code = status_code
        super().__init__(
            f"Service '{service_id}' rejected request with HTTP {status_code}",
            service_id=service_id,
        )


class FetchFailedError(ServiceError):
    """Request failed for a reason other than the ones above."""

    kind = ErrorKind.FETCH_FAILED


class UpstreamServerError(FetchFailedError):
    """Upstream answered 5xx. Retryable."""

    def __init__(self, service_id: str, status_code: int):
        self.status_code = status_code
        super().__init__(
            f"Service '{service_id}' server error: HTTP {status_code}",
            service_id=service_id,
        )


class ConnectionFailedError(FetchFailedError):
    """Connection refused, reset or DNS failure. Retryable."""

    pass


class RetrievalFailedError(ServiceError):
    """Unexpected failure caught at the orchestration boundary."""

    kind = ErrorKind.RETRIEVAL_FAILED
