from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

from auditdal.config import ConnectionConfig
from auditdal.registry import InterfaceRegistry

Bindings = Optional[Sequence[Any]]


class Connection(ABC):
    """A live handle on one database connection.

    Transactions are driven with literal SQL so that savepoint statements
    issued by the coordinator share the same session state as ``BEGIN``.
    """

    def __init__(self, interface: BaseInterface, raw: Any) -> None:
        self.interface = interface
        self.raw = raw

    def __str__(self) -> str:
        return f"<{self.__class__.__name__} {self.interface.config.name}>"

    @property
    def name(self) -> str:
        return self.interface.config.name

    def begin_transaction(self) -> None:
        self.statement("BEGIN")

    def commit(self) -> None:
        self.statement("COMMIT")

    def rollback(self) -> None:
        self.statement("ROLLBACK")

    @abstractmethod
    def statement(self, sql: str, bindings: Bindings = None) -> None: ...

    @abstractmethod
    def select(
        self, sql: str, bindings: Bindings = None
    ) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def has_table(self, table: str) -> bool: ...

    @abstractmethod
    def get_column_listing(self, table: str) -> List[str]: ...

    @abstractmethod
    def get_indexes(self, table: str) -> List[Dict[str, Any]]:
        """Indexes on ``table`` as ``{"name", "unique", "columns"}``"""


class BaseInterface(ABC):
    scheme = "dummy"
    aliases: Tuple[str, ...] = ()
    connection_class: Type[Connection]

    def __init_subclass__(cls) -> None:
        for driver in (cls.scheme, *cls.aliases):
            InterfaceRegistry.add(driver, cls)

    @abstractmethod
    def _setup_pool(self): ...

    @abstractmethod
    def open(self): ...

    @abstractmethod
    def close(self): ...

    @abstractmethod
    def _acquire(self, timeout: Optional[float] = None) -> Any: ...

    @abstractmethod
    def _release(self, raw: Any) -> None: ...

    def __init__(self, config: ConnectionConfig) -> None:
        """Interface initialization.

        Args:
            config (ConnectionConfig): The logical connection this
                interface opens handles for
        """
        self._config = config
        self._setup_pool()

    def __str__(self) -> str:
        return f"<{self.__class__.__name__} {self.dsn}>"

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def dsn(self) -> str:
        return self._config.dsn

    @property
    def min_size(self) -> int:
        return self._config.min_size

    @property
    def max_size(self) -> Optional[int]:
        return self._config.max_size

    def acquire(self, timeout: Optional[float] = None) -> Connection:
        """Check a handle out of the pool

        Args:
            timeout (float, optional): Time before an error is raised on
                failure to connect. Defaults to `None`.

        Returns:
            Connection: A handle that must be given back with `release`
        """
        return self.connection_class(self, self._acquire(timeout))

    def release(self, connection: Connection) -> None:
        self._release(connection.raw)
