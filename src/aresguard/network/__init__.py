r"""Connectivity monitoring and network-aware request coordination."""

from __future__ import annotations

__all__ = [
    "ConnectionType",
    "ConnectivityMonitor",
    "ConnectivityState",
    "InterfaceSource",
    "NetworkCoordinator",
    "NetworkStatus",
    "PsutilInterfaceSource",
    "QueuedRequest",
    "StatusStream",
    "Subscription",
]

from aresguard.network.coordinator import NetworkCoordinator, QueuedRequest
from aresguard.network.interfaces import InterfaceSource, PsutilInterfaceSource
from aresguard.network.monitor import ConnectivityMonitor
from aresguard.network.status import ConnectionType, ConnectivityState, NetworkStatus
from aresguard.network.stream import StatusStream, Subscription
