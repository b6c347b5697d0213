from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional, Type

if TYPE_CHECKING:
    from auditdal.interface.base import BaseInterface


class InterfaceRegistry:
    """
    Maps a configured driver name (``pgsql``, ``sqlite``, ...) to the
    interface class able to open connections for it. Interfaces register
    themselves when subclassed; applications can add their own drivers.
    """

    _interfaces: Dict[str, Type[BaseInterface]] = {}

    @classmethod
    def add(cls, driver: str, interface: Type[BaseInterface]) -> None:
        cls._interfaces[driver.lower()] = interface

    @classmethod
    def get(cls, driver: str) -> Optional[Type[BaseInterface]]:
        return cls._interfaces.get(driver.lower())

    @classmethod
    def remove(cls, driver: str) -> None:
        cls._interfaces.pop(driver.lower(), None)

    @classmethod
    def drivers(cls) -> List[str]:
        return sorted(cls._interfaces)
