"""
Transaction coordination: nested transactions through savepoints, batch
execution and retry-with-backoff for a single logical connection.
"""

from .context import TransactionContext
from .coordinator import TransactionCoordinator
from .outcome import TransactionOutcome

__all__ = [
    "TransactionContext",
    "TransactionCoordinator",
    "TransactionOutcome",
]
