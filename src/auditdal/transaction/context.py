from dataclasses import dataclass, field
from typing import List, Optional

from auditdal.exception import TransactionError


@dataclass
class TransactionContext:
    """Nesting state of one coordinator.

    ``depth`` counts every unmatched begin, top-level and savepoint alike.
    ``savepoints`` holds savepoint names, most recent last.
    """

    depth: int = 0
    savepoints: List[str] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return self.depth > 0

    @property
    def top(self) -> Optional[str]:
        return self.savepoints[-1] if self.savepoints else None

    def entered(self, savepoint: Optional[str] = None) -> None:
        if savepoint:
            self.savepoints.append(savepoint)
        self.depth += 1

    def exited(self, pop: bool = False) -> None:
        if self.depth <= 0:
            raise TransactionError("No active transaction")
        if pop:
            self.savepoints.pop()
        self.depth -= 1

    def reset(self) -> None:
        if self.depth:
            raise TransactionError(
                f"Cannot reset a context with {self.depth} open "
                "transaction level(s)"
            )
        self.savepoints.clear()
