"""
Result values returned across the domain boundary.

Services report expected failures (duplicate check-in, self-recognition,
insufficient coins, ...) as a failed ``Outcome`` instead of raising. The HTTP
adapter converts a failed outcome into the matching ``APIException`` with
``raise_for_outcome``.

Example:
    outcome = await processor.submit(user_id, mood=5)
    if not outcome.ok:
        logger.info(f"Check-in rejected: {outcome.error.code}")
    receipt = outcome.value
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Error taxonomy for user-facing domain failures."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    FUNDS = "funds"


@dataclass(frozen=True)
class DomainError:
    """A user-facing failure with a machine-readable code."""

    kind: ErrorKind
    message: str
    code: str
    details: Optional[Any] = None


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Success value or a ``DomainError``, never both."""

    value: Optional[T] = None
    error: Optional[DomainError] = field(default=None)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        message: str,
        code: str,
        details: Optional[Any] = None,
    ) -> "Outcome[T]":
        return cls(error=DomainError(kind=kind, message=message, code=code, details=details))

    @classmethod
    def validation(cls, message: str, code: str = "VALIDATION_ERROR", details=None) -> "Outcome[T]":
        return cls.fail(ErrorKind.VALIDATION, message, code, details)

    @classmethod
    def conflict(cls, message: str, code: str = "CONFLICT", details=None) -> "Outcome[T]":
        return cls.fail(ErrorKind.CONFLICT, message, code, details)

    @classmethod
    def not_found(cls, message: str, code: str = "NOT_FOUND", details=None) -> "Outcome[T]":
        return cls.fail(ErrorKind.NOT_FOUND, message, code, details)

    @classmethod
    def insufficient_funds(cls, message: str = "Insufficient Happy Coins", details=None) -> "Outcome[T]":
        return cls.fail(ErrorKind.FUNDS, message, "INSUFFICIENT_FUNDS", details)
