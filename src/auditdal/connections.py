from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Type

from auditdal.config import UNKNOWN, ConnectionConfig, DatabaseConfig
from auditdal.exception import ConfigurationError, DatabaseError, SchemaError
from auditdal.interface import BaseInterface, Connection
from auditdal.registry import InterfaceRegistry

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Single source of truth for which logical connections exist.

    Resolves a connection name to its configuration, lazily opens one pool
    per name and caches the handle checked out of it. A registry is owned
    by whoever built it; changing its default never touches process-wide
    state.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        interfaces: Optional[Mapping[str, Type[BaseInterface]]] = None,
    ) -> None:
        """
        Args:
            config: Connections known to this registry and the default one
            interfaces: Driver name to interface class overrides, consulted
                before the global `InterfaceRegistry`
        """
        self._config = config
        self._default = config.default
        self._interface_overrides = {
            driver.lower(): interface
            for driver, interface in (interfaces or {}).items()
        }
        self._pools: Dict[str, BaseInterface] = {}
        self._connections: Dict[str, Connection] = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def default_connection(self) -> str:
        return self._default

    def available_connections(self) -> List[str]:
        return list(self._config.connections)

    def resolve(self, name: Optional[str] = None) -> ConnectionConfig:
        name = name or self._default
        config = self._config.get(name)
        if config is None:
            raise ConfigurationError(
                f"Database connection '{name}' is not configured"
            )
        return config

    def set_default_connection(self, name: str) -> None:
        self.resolve(name)
        logger.debug(
            "Default connection changed from %s to %s", self._default, name
        )
        self._default = name

    def get_connection(self, name: Optional[str] = None) -> Connection:
        """The handle shared by every caller of this registry for ``name``.

        Transactions must not run on it; coordinators `checkout` a handle
        of their own instead.
        """
        config = self.resolve(name)
        connection = self._connections.get(config.name)
        if connection is None:
            connection = self.checkout(config.name)
            self._connections[config.name] = connection
        return connection

    def get_pool(self, name: Optional[str] = None) -> BaseInterface:
        return self._get_pool(self.resolve(name))

    def checkout(self, name: Optional[str] = None) -> Connection:
        """Check a handle out of the pool for exclusive use by the caller,
        which must give it back with `checkin`."""
        config = self.resolve(name)
        pool = self._get_pool(config)
        try:
            connection = pool.acquire()
        except Exception as e:
            raise DatabaseError(
                f"Failed to connect to database '{config.name}': {e}",
                cause=e,
            ) from e
        logger.debug("Acquired connection for %s", pool)
        return connection

    def checkin(self, connection: Connection) -> None:
        try:
            connection.interface.release(connection)
            logger.debug("Released connection for %s", connection.name)
        except Exception as e:
            logger.warning(
                "Error releasing connection for %s: %s", connection.name, e
            )

    def purge(self, name: Optional[str] = None) -> None:
        """Give the cached handle back to its pool; the next lookup will
        check out a fresh one."""
        connection = self._connections.pop(name or self._default, None)
        if connection is not None:
            self.checkin(connection)

    def close(self) -> None:
        for name in list(self._connections):
            self.purge(name)
        for name, pool in self._pools.items():
            try:
                pool.close()
                logger.debug("Closed %s", pool)
            except Exception as e:
                logger.warning("Error closing pool for %s: %s", name, e)
        self._pools.clear()

    def test_connection(self, name: Optional[str] = None) -> bool:
        try:
            self.get_connection(name).select("SELECT 1")
        except Exception as e:
            logger.debug("Connection %s is unhealthy: %s", name, e)
            return False
        return True

    def get_connection_info(
        self, name: Optional[str] = None
    ) -> Dict[str, str]:
        name = name or self._default
        config = self._config.get(name)
        if config is None:
            return {
                "name": name,
                "driver": UNKNOWN,
                "host": UNKNOWN,
                "database": UNKNOWN,
                "port": UNKNOWN,
            }
        return config.info()

    def table_exists(self, table: str, name: Optional[str] = None) -> bool:
        connection = self.get_connection(name)
        try:
            return connection.has_table(table)
        except Exception as e:
            raise SchemaError(
                f"Failed to check for table '{table}': {e}", cause=e
            ) from e

    def get_table_info(
        self, table: str, name: Optional[str] = None
    ) -> Dict[str, Any]:
        connection = self.get_connection(name)
        try:
            return {
                "table": table,
                "columns": connection.get_column_listing(table),
                "indexes": connection.get_indexes(table),
            }
        except Exception as e:
            raise SchemaError(
                f"Failed to get table info for '{table}': {e}", cause=e
            ) from e

    def _get_pool(self, config: ConnectionConfig) -> BaseInterface:
        pool = self._pools.get(config.name)
        if pool is None:
            interface = self._interface_overrides.get(
                config.driver.lower()
            ) or InterfaceRegistry.get(config.driver)
            if interface is None:
                raise ConfigurationError(
                    f"No interface registered for driver '{config.driver}' "
                    f"(connection '{config.name}')"
                )
            try:
                pool = interface(config)
                pool.open()
            except Exception as e:
                raise DatabaseError(
                    f"Failed to open pool for database '{config.name}': {e}",
                    cause=e,
                ) from e
            self._pools[config.name] = pool
            logger.info("Opened %s", pool)
        return pool
