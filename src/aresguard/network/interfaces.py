r"""Sources of the OS network interface state."""

from __future__ import annotations

__all__ = ["InterfaceSource", "PsutilInterfaceSource", "classify_interface"]

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import psutil

from aresguard.core.config import DEFAULT_POLL_INTERVAL
from aresguard.exceptions import ConnectivityCheckError
from aresguard.network.status import ConnectionType

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger: logging.Logger = logging.getLogger(__name__)

_PREFIXES: tuple[tuple[tuple[str, ...], ConnectionType], ...] = (
    (("wl", "wifi", "ath"), ConnectionType.WIFI),
    (("wwan", "rmnet", "ppp", "ccmni", "pdp_ip"), ConnectionType.CELLULAR),
    (("tun", "tap", "wg", "utun", "ipsec", "vpn"), ConnectionType.VPN),
    (("eth", "en", "em"), ConnectionType.ETHERNET),
)


def classify_interface(name: str) -> ConnectionType:
    r"""Return the connection type of an interface from its name.

    Example:
        ```pycon
        >>> from aresguard.network.interfaces import classify_interface
        >>> classify_interface("wlan0")
        <ConnectionType.WIFI: 'wifi'>
        >>> classify_interface("Local Area Connection 2")
        <ConnectionType.ETHERNET: 'ethernet'>
        >>> classify_interface("docker0")
        <ConnectionType.OTHER: 'other'>

        ```
    """
    lowered = name.lower()
    for prefixes, connection_type in _PREFIXES:
        if lowered.startswith(prefixes):
            return connection_type
    if "wi-fi" in lowered or "wireless" in lowered:
        return ConnectionType.WIFI
    if "mobile broadband" in lowered or "cellular" in lowered:
        return ConnectionType.CELLULAR
    # Windows names wired adapters "Ethernet N" or "Local Area Connection N"
    if "ethernet" in lowered or "local area connection" in lowered:
        return ConnectionType.ETHERNET
    return ConnectionType.OTHER


class InterfaceSource(ABC):
    r"""Point-in-time query and change feed of the host interfaces."""

    @abstractmethod
    async def connections(self) -> list[ConnectionType]:
        """Return the types of the interfaces that are up.

        Raises:
            ConnectivityCheckError: If the OS state cannot be read.
        """

    @abstractmethod
    def watch(self) -> AsyncIterator[list[ConnectionType]]:
        """Yield the interface types every time they change.

        Raises:
            ConnectivityCheckError: If the OS state cannot be read.
        """


class PsutilInterfaceSource(InterfaceSource):
    r"""Interface source reading ``psutil.net_if_stats()``.

    Loopback and down interfaces are ignored. Changes are detected by
    polling.

    Args:
        poll_interval: Seconds between two polls. Must be > 0.
    """

    def __init__(self, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        if poll_interval <= 0:
            msg = f"poll_interval must be > 0, got {poll_interval}"
            raise ValueError(msg)
        self._poll_interval = poll_interval

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(poll_interval={self._poll_interval})"

    async def connections(self) -> list[ConnectionType]:
        try:
            stats = await asyncio.to_thread(psutil.net_if_stats)
        except (psutil.Error, OSError) as exc:
            msg = f"Failed to read the network interfaces: {exc}"
            raise ConnectivityCheckError(msg) from exc
        types = []
        for name, stat in sorted(stats.items()):
            if not stat.isup or self._is_loopback(name, stat):
                continue
            types.append(classify_interface(name))
        return types

    async def watch(self) -> AsyncIterator[list[ConnectionType]]:
        previous = await self.connections()
        while True:
            await asyncio.sleep(self._poll_interval)
            current = await self.connections()
            if current != previous:
                logger.debug(f"Network interfaces changed: {previous} -> {current}")
                previous = current
                yield current

    @staticmethod
    def _is_loopback(name: str, stat: Any) -> bool:
        if "loopback" in stat.flags.split(","):
            return True
        lowered = name.lower()
        return lowered in {"lo", "lo0"} or lowered.startswith("loopback")
