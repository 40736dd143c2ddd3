"""Discovery of the host's public network addresses."""

from __future__ import annotations

import ipaddress
import socket
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

import psutil

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_PRIVATE_BLOCKS = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "127.0.0.0/8",  # IPv4 loopback
        "10.0.0.0/8",  # RFC1918
        "172.16.0.0/12",  # RFC1918
        "192.168.0.0/16",  # RFC1918
        "169.254.0.0/16",  # RFC3927 link-local
        "::1/128",  # IPv6 loopback
        "fe80::/10",  # IPv6 link-local
        "fc00::/7",  # IPv6 unique local addr
    )
)

_V4_LINK_LOCAL_MULTICAST = ipaddress.ip_network("224.0.0.0/24")


def _parse(ip: Union[str, IPAddress]) -> IPAddress:
    if isinstance(ip, str):
        return ipaddress.ip_address(ip.split("%", 1)[0])
    return ip


def _unmap(addr: IPAddress) -> IPAddress:
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        return addr.ipv4_mapped
    return addr


def is_private_ip(ip: Union[str, IPAddress]) -> bool:
    """True for loopback, link-local, RFC1918 and unique-local addresses."""
    addr = _unmap(_parse(ip))
    if addr.is_loopback or addr.is_link_local:
        return True
    if isinstance(addr, ipaddress.IPv4Address):
        if addr in _V4_LINK_LOCAL_MULTICAST:
            return True
    else:
        packed = addr.packed
        if packed[0] == 0xFF and packed[1] & 0x0F == 0x02:
            return True
    return any(addr in block for block in _PRIVATE_BLOCKS if block.version == addr.version)


def _interface_flags(stats: dict, name: str) -> Set[str]:
    stat = stats.get(name)
    flags = getattr(stat, "flags", "") if stat is not None else ""
    return {flag for flag in flags.split(",") if flag}


def get_local_ip_addresses(
    enabled_interfaces: Optional[Iterable[str]] = None,
) -> Dict[str, List[IPAddress]]:
    """Map interface names to their non-private addresses.

    Loopback and point-to-point interfaces, and interfaces without broadcast
    or multicast support, are skipped. A non-empty ``enabled_interfaces``
    restricts the result to those names.
    """
    try:
        addrs = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
    except (OSError, psutil.Error) as exc:
        raise OSError("failed to get network interfaces") from exc

    enabled = set(enabled_interfaces or ())
    result: Dict[str, List[IPAddress]] = {}

    for name, entries in addrs.items():
        flags = _interface_flags(stats, name)
        # Platforms that report no flags are not filtered by them.
        if flags:
            if flags & {"loopback", "pointopoint"}:
                continue
            if not flags & {"broadcast", "multicast"}:
                continue

        if enabled and name not in enabled:
            continue

        for entry in entries:
            if entry.family not in (socket.AF_INET, socket.AF_INET6):
                continue
            try:
                ip = _parse(entry.address)
            except ValueError:
                continue
            if is_private_ip(ip):
                continue
            result.setdefault(name, []).append(ip)

    return result


def get_ip_address() -> Tuple[Optional[ipaddress.IPv4Address], Optional[ipaddress.IPv6Address]]:
    """Return one public IPv4 and one public IPv6 address, either may be None."""
    v4: Optional[ipaddress.IPv4Address] = None
    v6: Optional[ipaddress.IPv6Address] = None

    for ips in get_local_ip_addresses(None).values():
        for ip in ips:
            if isinstance(ip, ipaddress.IPv4Address):
                v4 = ip
            else:
                v6 = ip
            if v4 is not None and v6 is not None:
                return v4, v6

    return v4, v6