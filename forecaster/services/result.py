"""
ServiceResult - success/failure value returned by every public client call.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from forecaster.services.errors import ErrorKind, ServiceError

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Either data (success) or an error (failure), never both."""

    data: T | None = None
    error: ServiceError | None = None

    @classmethod
    def success(cls, data: T) -> "ServiceResult[T]":
        return cls(data=data)

    @classmethod
    def failure(cls, error: ServiceError) -> "ServiceResult[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error else None

    @property
    def message(self) -> str | None:
        """Short user-facing message for a failure."""
        if self.error is None:
            return None
        # formatter imports forecaster.services, whose __init__ imports this module
        from forecaster.formatter import user_message

        return user_message(self.error.kind)

    def unwrap(self) -> T:
        """Return data or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.data  # type: ignore[return-value]
