from __future__ import annotations

import asyncio
from unittest.mock import Mock

import psutil
import pytest

from aresguard.exceptions import ConnectivityCheckError
from aresguard.network.interfaces import PsutilInterfaceSource, classify_interface
from aresguard.network.status import ConnectionType


def stat(isup: bool = True, flags: str = "up,broadcast,running,multicast") -> Mock:
    return Mock(isup=isup, flags=flags)


########################################
#     Tests for classify_interface     #
########################################


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("wlan0", ConnectionType.WIFI),
        ("wlp2s0", ConnectionType.WIFI),
        ("Wi-Fi", ConnectionType.WIFI),
        ("Wireless Network Connection", ConnectionType.WIFI),
        ("wwan0", ConnectionType.CELLULAR),
        ("rmnet_data0", ConnectionType.CELLULAR),
        ("ppp0", ConnectionType.CELLULAR),
        ("pdp_ip0", ConnectionType.CELLULAR),
        ("tun0", ConnectionType.VPN),
        ("wg0", ConnectionType.VPN),
        ("utun3", ConnectionType.VPN),
        ("eth0", ConnectionType.ETHERNET),
        ("enp3s0", ConnectionType.ETHERNET),
        ("en0", ConnectionType.ETHERNET),
        ("Ethernet 2", ConnectionType.ETHERNET),
        ("Local Area Connection", ConnectionType.ETHERNET),
        ("Local Area Connection* 10", ConnectionType.ETHERNET),
        ("Mobile Broadband Connection", ConnectionType.CELLULAR),
        ("Cellular", ConnectionType.CELLULAR),
        ("docker0", ConnectionType.OTHER),
        ("br-1234", ConnectionType.OTHER),
        ("veth12ab", ConnectionType.OTHER),
    ],
)
def test_classify_interface(name: str, expected: ConnectionType) -> None:
    assert classify_interface(name) is expected


###########################################
#     Tests for PsutilInterfaceSource     #
###########################################


def test_psutil_interface_source_invalid_poll_interval() -> None:
    with pytest.raises(ValueError, match=r"poll_interval must be > 0, got 0"):
        PsutilInterfaceSource(poll_interval=0)


@pytest.mark.asyncio
async def test_psutil_interface_source_connections(mock_net_if_stats: Mock) -> None:
    """Test that down and loopback interfaces are ignored."""
    mock_net_if_stats.return_value = {
        "lo": stat(flags="up,loopback,running"),
        "wlan0": stat(),
        "eth0": stat(isup=False),
        "docker0": stat(),
        "tun0": stat(),
    }
    connections = await PsutilInterfaceSource().connections()
    assert connections == [ConnectionType.OTHER, ConnectionType.VPN, ConnectionType.WIFI]


@pytest.mark.asyncio
async def test_psutil_interface_source_loopback_flag(mock_net_if_stats: Mock) -> None:
    mock_net_if_stats.return_value = {"Loopback Pseudo-Interface 1": stat(flags="up,loopback")}
    assert await PsutilInterfaceSource().connections() == []


@pytest.mark.asyncio
async def test_psutil_interface_source_loopback_name(mock_net_if_stats: Mock) -> None:
    mock_net_if_stats.return_value = {"lo": stat(flags="up,running"), "lo0": stat(flags="")}
    assert await PsutilInterfaceSource().connections() == []


@pytest.mark.asyncio
async def test_psutil_interface_source_lo_prefix_not_loopback(mock_net_if_stats: Mock) -> None:
    """Test that an interface whose name starts with 'lo' is kept when it
    is not a loopback interface."""
    mock_net_if_stats.return_value = {"lowpan0": stat(), "local0": stat()}
    assert await PsutilInterfaceSource().connections() == [
        ConnectionType.OTHER,
        ConnectionType.OTHER,
    ]


@pytest.mark.asyncio
async def test_psutil_interface_source_windows_names(mock_net_if_stats: Mock) -> None:
    mock_net_if_stats.return_value = {
        "Local Area Connection": stat(flags=""),
        "Mobile Broadband Connection": stat(flags=""),
    }
    assert await PsutilInterfaceSource().connections() == [
        ConnectionType.ETHERNET,
        ConnectionType.CELLULAR,
    ]


@pytest.mark.asyncio
async def test_psutil_interface_source_no_interface(mock_net_if_stats: Mock) -> None:
    mock_net_if_stats.return_value = {}
    assert await PsutilInterfaceSource().connections() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [OSError("permission denied"), psutil.AccessDenied()])
async def test_psutil_interface_source_error(mock_net_if_stats: Mock, error: Exception) -> None:
    """Test that a failure to read the interfaces raises
    ConnectivityCheckError."""
    mock_net_if_stats.side_effect = error
    with pytest.raises(ConnectivityCheckError, match=r"Failed to read the network interfaces"):
        await PsutilInterfaceSource().connections()


@pytest.mark.asyncio
async def test_psutil_interface_source_watch_yields_changes(mock_net_if_stats: Mock) -> None:
    """Test that watch yields only when the interfaces change."""
    snapshots = iter(
        [
            {"eth0": stat()},
            {"eth0": stat()},
            {"eth0": stat(isup=False)},
        ]
    )
    mock_net_if_stats.side_effect = lambda: next(snapshots, {"eth0": stat(isup=False)})
    watch = PsutilInterfaceSource(poll_interval=0.001).watch()
    try:
        assert await asyncio.wait_for(anext(watch), 1.0) == []
    finally:
        await watch.aclose()
    assert mock_net_if_stats.call_count == 3


def test_psutil_interface_source_repr() -> None:
    assert repr(PsutilInterfaceSource(poll_interval=2.0)) == "PsutilInterfaceSource(poll_interval=2.0)"
