from __future__ import annotations

import logging
import warnings
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar
from uuid import uuid4

from auditdal.config import RetryPolicy
from auditdal.connections import ConnectionRegistry
from auditdal.exception import TransactionError
from auditdal.interface.base import Connection

from .context import TransactionContext
from .outcome import TransactionOutcome
from .retry import retry
from .savepoint import create_sql, release_sql, rollback_sql, savepoint_name

T = TypeVar("T")

logger = logging.getLogger(__name__)


class TransactionCoordinator:
    """
    Runs units of work transactionally against one logical connection.

    Nested transactions are emulated with savepoints: the first level
    issues ``BEGIN``, every level below it a ``SAVEPOINT``. Commits and
    rollbacks unwind the most recent level first.

    Each coordinator checks out a handle of its own from the registry's
    pool and keeps it until the outermost level ends, so transactions on
    different coordinators never share a session. A coordinator is not
    thread safe; each request, job or thread must use its own.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        name: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Args:
            registry: Where the connection is looked up
            name: Logical connection name. Defaults to `None`, meaning the
                registry's default at the time the handle is checked out.
            retry_policy: Policy for `query_with_retry`. Defaults to the
                policy in the registry's configuration.
        """
        self.transaction_id = f"txn_{uuid4().hex[:8]}"
        self._registry = registry
        self._name = name
        self._retry_policy = retry_policy or registry.config.retry
        self._context = TransactionContext()
        self._connection: Optional[Connection] = None

    def __enter__(self):
        self.begin()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            try:
                self.commit()
            except BaseException:
                self._rollback_after_error()
                raise
            return False
        self._rollback_after_error()
        return False

    @property
    def connection_name(self) -> str:
        if self._connection is not None:
            return self._connection.name
        return self._name or self._registry.default_connection

    @property
    def connection(self) -> Connection:
        """The handle this coordinator has checked out of the pool.

        It is held until the outermost transaction level ends, or until
        `release` when used outside a transaction.
        """
        if self._connection is None:
            self._connection = self._registry.checkout(self._name)
        return self._connection

    @property
    def savepoints(self) -> Tuple[str, ...]:
        return tuple(self._context.savepoints)

    def in_transaction(self) -> bool:
        return self._context.active

    def get_transaction_level(self) -> int:
        return self._context.depth

    def release(self) -> None:
        """Give the handle back to the pool. Refuses while any transaction
        level is still open."""
        if self._context.active:
            raise TransactionError(
                f"Cannot release the connection of {self.transaction_id} "
                "with an open transaction"
            )
        connection, self._connection = self._connection, None
        if connection is not None:
            self._registry.checkin(connection)

    def reset(self) -> None:
        """Clear leftover savepoint bookkeeping before reusing this
        coordinator. Refuses while any transaction level is still open."""
        self._context.reset()
        self.release()

    def begin(self, savepoint: Optional[str] = None) -> None:
        """Open a transaction level.

        Issues ``SAVEPOINT <name>`` when a savepoint is named or a
        transaction is already open (an anonymous level gets a generated
        name), otherwise a top-level ``BEGIN``.
        """
        if savepoint is None and self._context.active:
            savepoint = savepoint_name(self._context.depth + 1)
        sql = create_sql(savepoint) if savepoint else None
        connection = self.connection

        logger.debug(
            "Beginning %s in transaction %s",
            savepoint or "transaction",
            self.transaction_id,
        )
        try:
            if sql:
                connection.statement(sql)
            else:
                connection.begin_transaction()
        except Exception as e:
            if not self._context.active:
                self.release()
            raise TransactionError(
                f"Failed to begin transaction {self.transaction_id}: {e}",
                cause=e,
            ) from e

        self._context.entered(savepoint)

    def commit(self) -> None:
        """Release the most recent savepoint, or commit the transaction
        when no savepoint is open."""
        if not self._context.active:
            raise TransactionError("No active transaction to commit")

        savepoint = self._context.top
        connection = self.connection
        try:
            if savepoint:
                connection.statement(release_sql(savepoint))
            else:
                connection.commit()
        except Exception as e:
            logger.error(
                "Commit failed for %s: %s", self.transaction_id, e
            )
            raise TransactionError(
                f"Failed to commit transaction {self.transaction_id}: {e}",
                cause=e,
            ) from e

        self._context.exited(pop=savepoint is not None)
        if not self._context.active:
            self.release()
        if savepoint:
            logger.debug("Released savepoint %s", savepoint)
        else:
            logger.info(
                "Transaction %s committed successfully", self.transaction_id
            )

    def rollback(self, savepoint: Optional[str] = None) -> None:
        """Undo the most recent transaction level.

        A named savepoint is rolled back to without being removed from the
        savepoint stack; otherwise the most recent savepoint is popped and
        rolled back to, or the whole transaction is rolled back.
        """
        if not self._context.active:
            raise TransactionError("No active transaction to rollback")

        pop = False
        target = savepoint
        if target is None and self._context.top:
            target = self._context.top
            pop = True
        sql = rollback_sql(target) if target else None
        connection = self.connection

        try:
            if sql:
                connection.statement(sql)
            else:
                connection.rollback()
        except Exception as e:
            logger.critical(
                "Rollback failed for %s: %s", self.transaction_id, e
            )
            raise TransactionError(
                f"Failed to rollback transaction {self.transaction_id}: {e}",
                cause=e,
            ) from e

        self._context.exited(pop=pop)
        if not self._context.active:
            self.release()
        if target:
            logger.debug("Rolled back to savepoint %s", target)
        else:
            logger.info(
                "Transaction %s rolled back successfully",
                self.transaction_id,
            )

    def try_transaction(
        self, work: Callable[[], T]
    ) -> TransactionOutcome[T]:
        """Run ``work`` in a transaction level and report how it went.

        Unlike `transaction`, a failing unit of work does not raise: the
        outcome carries the error and, if the rollback failed too, the
        rollback error.
        """
        self.begin()
        level = self._context.depth

        try:
            result = work()
        except Exception as e:
            return TransactionOutcome.failure(e, self._unwind(level))
        except BaseException:
            self._unwind(level)
            raise

        try:
            self.commit()
        except TransactionError as e:
            return TransactionOutcome.failure(
                e.cause or e, self._unwind(level)
            )
        except BaseException:
            self._unwind(level)
            raise
        return TransactionOutcome.success(result)

    def transaction(self, work: Callable[[], T]) -> T:
        """Run ``work`` in a transaction level, commit and return its result.

        Raises:
            TransactionError: If ``work`` raised. The transaction level has
                been rolled back and the original error is the cause.
        """
        return self.try_transaction(work).unwrap()

    def atomic(self, work: Callable[[], T]) -> T:
        warnings.warn(
            "atomic() is deprecated, use transaction()",
            DeprecationWarning,
            stacklevel=2,
        )
        return self.transaction(work)

    def batch(self, operations: Sequence[Callable[[], T]]) -> List[T]:
        """Run ``operations`` in order inside one transaction.

        If any operation fails, none of the batch is kept and the remaining
        operations are not run.
        """

        def run() -> List[T]:
            results = []
            for index, operation in enumerate(operations):
                if not callable(operation):
                    raise TransactionError(
                        f"Batch operation {index} is not executable"
                    )
                results.append(operation())
            return results

        return self.transaction(run)

    def query_with_retry(
        self,
        work: Callable[[Connection], T],
        max_attempts: Optional[int] = None,
    ) -> T:
        """Call ``work`` with the connection, retrying with exponential
        backoff. The attempts are not wrapped in a transaction.

        Raises:
            DatabaseError: Once every attempt has failed
        """
        # Unknown connection names are never retried
        self._registry.resolve(self.connection_name)
        policy = self._retry_policy
        if max_attempts is not None:
            policy = RetryPolicy(
                max_attempts=max_attempts, base_delay=policy.base_delay
            )

        def on_failure(attempt: int, error: Exception) -> None:
            if not self._context.active:
                self.release()

        try:
            return retry(lambda: work(self.connection), policy, on_failure)
        finally:
            if not self._context.active:
                self.release()

    def _rollback_after_error(self) -> None:
        if not self._context.active:
            return
        try:
            self.rollback()
        except Exception as e:
            logger.critical(
                "Rollback after error in %s also failed: %s",
                self.transaction_id,
                e,
            )

    def _unwind(self, level: int) -> Optional[Exception]:
        """Roll back every level down to and including ``level``"""
        try:
            while self._context.depth >= level:
                self.rollback()
        except Exception as e:
            logger.critical(
                "Rollback of %s after failure also failed: %s",
                self.transaction_id,
                e,
            )
            return e
        return None
