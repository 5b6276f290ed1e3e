"""Lookups of the IPv4 networks configured on local interfaces."""

from __future__ import annotations

import ipaddress
import socket
from typing import Iterator, Union

import psutil

MAX_INTERFACE_INDEX = 99

InterfaceLike = Union[str, ipaddress.IPv4Interface]


def get_net_address(interface: InterfaceLike) -> str:
    """Return the network address of an interface address, e.g. '10.0.0.0/24'."""
    network = ipaddress.IPv4Interface(interface).network
    return f"{network.network_address}/{network.prefixlen}"


def _ipv4_interfaces(addrs) -> Iterator[ipaddress.IPv4Interface]:
    for addr in addrs:
        if addr.family != socket.AF_INET or not addr.netmask:
            continue
        try:
            yield ipaddress.IPv4Interface(f"{addr.address}/{addr.netmask}")
        except ValueError:
            continue


def get_interface_name_from_net_address(target_net: str) -> str:
    """Return the name of the interface attached to ``target_net``, or ''."""
    for name, addrs in psutil.net_if_addrs().items():
        for iface in _ipv4_interfaces(addrs):
            if get_net_address(iface) == target_net:
                return name
    return ""


def get_minimum_index_net_address() -> str:
    """Return the network address of the lowest-index interface that has IPv4."""
    indexed = []
    for name, addrs in psutil.net_if_addrs().items():
        try:
            indexed.append((socket.if_nametoindex(name), addrs))
        except OSError:
            continue
    indexed.sort(key=lambda item: item[0])

    min_index = MAX_INTERFACE_INDEX
    iface_net = ""
    for index, addrs in indexed:
        if index > min_index:
            continue
        for iface in _ipv4_interfaces(addrs):
            min_index = index
            iface_net = get_net_address(iface)
    return iface_net


def get_host_ip(dev_name: str) -> str | None:
    """Return the first IPv4 address on ``dev_name``, or None if it has none."""
    addrs = psutil.net_if_addrs().get(dev_name)
    if not addrs:
        return None
    for addr in addrs:
        if addr.family == socket.AF_INET:
            return str(ipaddress.IPv4Address(addr.address))
    return None