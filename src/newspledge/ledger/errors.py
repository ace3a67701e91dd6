"""Error codes and the tagged result type returned by ledger operations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorCode(IntEnum):
    NOT_AUTHORIZED = 100
    INSUFFICIENT_BALANCE = 101
    INSUFFICIENT_STAKE = 102
    MAX_SUPPLY_EXCEEDED = 103
    PAUSED = 104
    NULL_PRINCIPAL = 105
    STAKE_LOCKED = 106
    INVALID_AMOUNT = 107


class LedgerFault(Exception):
    """Base class for fatal ledger failures (programming errors, never domain rejections)."""


class InvariantViolation(LedgerFault):
    def __init__(self, message: str, failures: list[Any] | None = None):
        super().__init__(message)
        self.failures = failures or []


class ReplayError(LedgerFault):
    """A journal entry could not be re-applied to a fresh ledger."""


class LedgerRejected(Exception):
    """Raised by ``Err.unwrap()`` for callers that want exceptions at their boundary."""

    def __init__(self, code: ErrorCode):
        super().__init__(f"ledger rejected operation: {code.name} ({int(code)})")
        self.code = code


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value}


@dataclass(frozen=True)
class Err:
    code: ErrorCode

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise LedgerRejected(self.code)

    def to_dict(self) -> dict[str, Any]:
        return {"error": int(self.code)}


Result = Ok[T] | Err
