import ipaddress
import socket
from collections import namedtuple
from unittest import mock

import psutil
import pytest

from tyr.netaddr import get_ip_address, get_local_ip_addresses, is_private_ip

Addr = namedtuple("Addr", "family address netmask broadcast ptp")
Stat = namedtuple("Stat", "isup flags")

PRIVATE = [
    "127.0.0.1",
    "10.1.2.3",
    "172.16.0.1",
    "172.31.255.254",
    "192.168.1.1",
    "169.254.1.1",
    "::1",
    "fe80::1",
    "fd00::1",
    "224.0.0.1",
    "ff02::1",
    "::ffff:192.168.1.1",
]

PUBLIC = ["8.8.8.8", "203.0.113.5", "172.32.0.1", "2001:db8::1"]


@pytest.mark.parametrize("ip", PRIVATE)
def test_private_addresses(ip):
    assert is_private_ip(ip)
    assert is_private_ip(ipaddress.ip_address(ip))


@pytest.mark.parametrize("ip", PUBLIC)
def test_public_addresses(ip):
    assert not is_private_ip(ip)


def test_scoped_ipv6_string():
    assert is_private_ip("fe80::1%eth0")


def _fake_addrs():
    return {
        "eth0": [
            Addr(psutil.AF_LINK, "00:00:5e:00:53:01", None, None, None),
            Addr(socket.AF_INET, "203.0.113.5", "255.255.255.0", None, None),
            Addr(socket.AF_INET, "10.0.0.1", "255.0.0.0", None, None),
            Addr(socket.AF_INET6, "2001:db8::1", None, None, None),
            Addr(socket.AF_INET6, "fe80::1%eth0", None, None, None),
        ],
        "lo": [Addr(socket.AF_INET, "198.51.100.1", None, None, None)],
        "ppp0": [Addr(socket.AF_INET, "198.51.100.2", None, None, None)],
        "dummy0": [Addr(socket.AF_INET, "198.51.100.3", None, None, None)],
    }


def _fake_stats():
    return {
        "eth0": Stat(True, "up,broadcast,running,multicast"),
        "lo": Stat(True, "up,loopback,running"),
        "ppp0": Stat(True, "up,pointopoint,running,multicast"),
        "dummy0": Stat(True, "up,running"),
    }


@mock.patch("psutil.net_if_stats", side_effect=_fake_stats)
@mock.patch("psutil.net_if_addrs", side_effect=_fake_addrs)
def test_local_addresses_filtering(_addrs, _stats):
    result = get_local_ip_addresses(None)
    assert result == {
        "eth0": [ipaddress.ip_address("203.0.113.5"), ipaddress.ip_address("2001:db8::1")]
    }


@mock.patch("psutil.net_if_stats", side_effect=_fake_stats)
@mock.patch("psutil.net_if_addrs", side_effect=_fake_addrs)
def test_local_addresses_enabled_interfaces(_addrs, _stats):
    assert get_local_ip_addresses(["other"]) == {}
    assert list(get_local_ip_addresses(["eth0"])) == ["eth0"]


@mock.patch("psutil.net_if_stats", side_effect=_fake_stats)
@mock.patch("psutil.net_if_addrs", side_effect=_fake_addrs)
def test_get_ip_address(_addrs, _stats):
    v4, v6 = get_ip_address()
    assert v4 == ipaddress.ip_address("203.0.113.5")
    assert v6 == ipaddress.ip_address("2001:db8::1")


@mock.patch("psutil.net_if_stats", return_value={})
@mock.patch("psutil.net_if_addrs", return_value={})
def test_get_ip_address_none(_addrs, _stats):
    assert get_ip_address() == (None, None)


@mock.patch("psutil.net_if_addrs", side_effect=OSError("boom"))
def test_interface_error_is_wrapped(_addrs):
    with pytest.raises(OSError, match="failed to get network interfaces"):
        get_local_ip_addresses(None)