# Ariwa - Result Type
"""
Two-variant result type returned by every API wrapper call.

A call either succeeds with ``Ok(value)`` or fails with ``Err(message)``.
Request faults are never raised through the normal control path.
"""

from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")


class ResultError(Exception):
    """Raised when unwrapping the wrong variant of a result."""


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result carrying the decoded payload."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self) -> str:
        raise ResultError(f"Called unwrap_err on Ok({self.value!r})")

    def map(self, func: Callable[[T], U]) -> "Ok[U]":
        """Apply ``func`` to the payload."""
        return Ok(func(self.value))


@dataclass(frozen=True)
class Err:
    """Failed result carrying a human-readable message.

    Attributes:
        message: Description of the failure
        status: HTTP status code when the failure came from a response
    """

    message: str
    status: Optional[int] = None

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        raise ResultError(f"Called unwrap on Err({self.message!r})")

    def unwrap_err(self) -> str:
        return self.message

    def map(self, func: Callable) -> "Err":
        """Failures pass through unchanged."""
        return self


Result = Union[Ok[T], Err]
