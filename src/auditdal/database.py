from __future__ import annotations

from typing import Callable, Mapping, Optional, Type, TypeVar, Union

from auditdal.config import DatabaseConfig
from auditdal.connections import ConnectionRegistry
from auditdal.interface.base import BaseInterface, Connection
from auditdal.transaction import TransactionCoordinator

T = TypeVar("T")


class Database:
    """Main entryway for the data access layer.

    Holds the connection registry for the process and hands out one
    transaction coordinator per logical request.

    Example:

    ```python
    db = Database(
        {
            "default": "primary",
            "connections": {
                "primary": {"url": "postgres://app:secret@db:5432/audits"},
            },
        }
    )

    def handle_request():
        coordinator = db.coordinator()
        return coordinator.transaction(lambda: save_audit_plan(coordinator))
    ```
    """

    def __init__(
        self,
        config: Union[DatabaseConfig, Mapping],
        *,
        interfaces: Optional[Mapping[str, Type[BaseInterface]]] = None,
    ):
        """
        Args:
            config (Union[DatabaseConfig, Mapping]): Connection settings,
                either loaded already or in the nested mapping layout
                accepted by `DatabaseConfig.from_mapping`
            interfaces (Mapping[str, Type[BaseInterface]], optional): Extra
                driver interfaces for this instance only.
                Defaults to `None`.
        """
        if not isinstance(config, DatabaseConfig):
            config = DatabaseConfig.from_mapping(config)
        self._registry = ConnectionRegistry(config, interfaces=interfaces)
        self._default_coordinator: Optional[TransactionCoordinator] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None):
        return cls(DatabaseConfig.from_env(environ))

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    def coordinator(
        self, name: Optional[str] = None
    ) -> TransactionCoordinator:
        """A fresh coordinator, to be used by a single request or job"""
        return TransactionCoordinator(self._registry, name)

    def connection(self, name: Optional[str] = None) -> Connection:
        """The handle to run statements on.

        Inside `transaction` this is the handle the transaction runs on;
        otherwise the registry's shared handle for ``name``.
        """
        shared = self._default_coordinator
        if (
            shared is not None
            and shared.in_transaction()
            and (name is None or name == shared.connection_name)
        ):
            return shared.connection
        return self._registry.get_connection(name)

    def transaction(self, work: Callable[[], T]) -> T:
        """Run ``work`` in a transaction on the default connection.

        Shares one coordinator across calls; long-lived services should
        prefer a `coordinator` per request.
        """
        return self._shared_coordinator().transaction(work)

    def query_with_retry(
        self,
        work: Callable[[Connection], T],
        max_attempts: Optional[int] = None,
    ) -> T:
        return self._shared_coordinator().query_with_retry(
            work, max_attempts
        )

    def close(self) -> None:
        self._registry.close()
        self._default_coordinator = None

    def _shared_coordinator(self) -> TransactionCoordinator:
        if self._default_coordinator is None:
            self._default_coordinator = self.coordinator()
        return self._default_coordinator
