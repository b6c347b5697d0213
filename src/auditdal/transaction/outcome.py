from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, cast

from auditdal.exception import TransactionError

T = TypeVar("T")


@dataclass(frozen=True)
class TransactionOutcome(Generic[T]):
    """Result of running a unit of work inside a transaction.

    On failure ``cause`` is what the unit of work raised and
    ``rollback_error`` is set only when the rollback that followed failed
    as well, leaving the transaction in an unknown state.
    """

    value: Optional[T] = None
    cause: Optional[BaseException] = None
    rollback_error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: T) -> TransactionOutcome[T]:
        return cls(value=value)

    @classmethod
    def failure(
        cls,
        cause: BaseException,
        rollback_error: Optional[BaseException] = None,
    ) -> TransactionOutcome[T]:
        return cls(cause=cause, rollback_error=rollback_error)

    @property
    def ok(self) -> bool:
        return self.cause is None

    @property
    def rolled_back(self) -> bool:
        """True when the unit of work failed and its rollback succeeded"""
        return not self.ok and self.rollback_error is None

    def unwrap(self) -> T:
        if self.cause is None:
            return cast(T, self.value)
        message = f"Transaction failed: {self.cause}"
        if self.rollback_error is not None:
            message += f" (rollback also failed: {self.rollback_error})"
        raise TransactionError(
            message, cause=self.cause, rollback_error=self.rollback_error
        ) from self.cause
