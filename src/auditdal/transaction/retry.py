from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from auditdal.config import RetryPolicy
from auditdal.exception import ConfigurationError, DatabaseError

T = TypeVar("T")

logger = logging.getLogger(__name__)


def retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    on_failure: Optional[Callable[[int, Exception], None]] = None,
) -> T:
    """Run ``operation`` until it succeeds or the policy runs out.

    Each attempt is independent: nothing is rolled back between attempts,
    so operations that write must be idempotent.

    Args:
        operation: Zero-argument callable to attempt
        policy: Attempt count and backoff base
        on_failure: Called with the attempt number and the error after
            every failed attempt that will be retried

    Raises:
        ConfigurationError: Straight away, without further attempts
        DatabaseError: After the last attempt fails, carrying its error
            and the number of attempts made
    """
    last: Optional[Exception] = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return operation()
        except ConfigurationError:
            raise
        except Exception as e:
            last = e
            if attempt == policy.max_attempts:
                break
            delay = policy.delay(attempt)
            logger.warning(
                "Attempt %d/%d failed, retrying in %.3fs: %s",
                attempt,
                policy.max_attempts,
                delay,
                e,
            )
            if on_failure is not None:
                on_failure(attempt, e)
            time.sleep(delay)

    raise DatabaseError(
        f"Database operation failed after {policy.max_attempts} "
        f"attempts: {last}",
        cause=last,
        attempts=policy.max_attempts,
    ) from last
