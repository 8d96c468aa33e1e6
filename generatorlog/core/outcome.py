"""
Outcome types returned by the core components.

Expected failures (bad credentials, missing resources, throttling) travel as
values of one of the ErrorKind categories; only the HTTP edge turns them into
responses.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar


T = TypeVar("T")


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"
    INTERNAL = "internal"


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    retry_after: int | None = None
    details: Any = None


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: T | None = None
    failure: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        message: str,
        retry_after: int | None = None,
        details: Any = None,
    ) -> "Outcome[T]":
        return cls(failure=Failure(kind, message, retry_after=retry_after, details=details))


# Shared failures whose wording must not vary with the underlying cause
NOT_AUTHENTICATED = Failure(ErrorKind.UNAUTHENTICATED, "Not authenticated")
