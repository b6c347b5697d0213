from typing import Optional


class DALError(Exception):
    """Base exception for all data access layer errors"""

    pass


class ConfigurationError(DALError):
    """Raised when a connection name or driver is not configured"""

    pass


class DatabaseError(DALError):
    """Generic query or connection failure

    Carries the underlying exception and, for retried operations, how many
    attempts were made before giving up.
    """

    def __init__(
        self,
        message: str,
        *,
        cause: Optional[BaseException] = None,
        attempts: int = 1,
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.attempts = attempts


class TransactionError(DALError):
    """Raised on transaction misuse or when a unit of work fails

    When the unit of work failed, ``cause`` is the original exception and
    ``rollback_error`` is set if the rollback that followed also failed.
    """

    def __init__(
        self,
        message: str,
        *,
        cause: Optional[BaseException] = None,
        rollback_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.cause = cause
        self.rollback_error = rollback_error


class SchemaError(DALError):
    """Raised when table, column or index introspection fails"""

    def __init__(
        self, message: str, *, cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message)
        self.cause = cause
