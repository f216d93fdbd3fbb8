r"""Connectivity status types."""

from __future__ import annotations

__all__ = ["ConnectionType", "ConnectivityState", "NetworkStatus"]

import enum
from dataclasses import dataclass


class NetworkStatus(enum.Enum):
    r"""Connectivity status of the host.

    ``UNKNOWN`` is the state before the first check and after a
    monitoring error.
    """

    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"


class ConnectionType(enum.Enum):
    r"""Kind of an up network interface.

    Only ``OTHER`` interfaces do not count as a path to the internet.
    """

    WIFI = "wifi"
    CELLULAR = "cellular"
    ETHERNET = "ethernet"
    VPN = "vpn"
    OTHER = "other"


@dataclass
class ConnectivityState:
    r"""Snapshot of the connectivity monitor.

    Attributes:
        status: The current status.
        initialized: Whether the first check completed.
        last_error: The message of the last monitoring error, if any.
    """

    status: NetworkStatus = NetworkStatus.UNKNOWN
    initialized: bool = False
    last_error: str | None = None
