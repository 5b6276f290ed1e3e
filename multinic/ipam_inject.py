"""Rewriting of per-interface plugin configs: IPAM sections, selected masters and pod info."""

from __future__ import annotations

import ipaddress
import json
import socket
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

import psutil

from .logger import logger

EMPTY_IPAM = '"ipam":{}'
EMPTY_STATIC_IPAM = '"ipam":{"type":"static","addresses":[]}'

_POD_NAME_KEY = "K8S_POD_NAME="
_POD_NAMESPACE_KEY = "K8S_POD_NAMESPACE="

ConfData = Union[bytes, str]

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _as_text(data: ConfData) -> str:
    return data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data


def _marshal(obj: Any) -> str:
    text = json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    for raw, escaped in _HTML_ESCAPES.items():
        text = text.replace(raw, escaped)
    return text


@dataclass
class IPConfig:
    """An address assigned to the interface at position ``interface``."""

    address: Union[ipaddress.IPv4Interface, ipaddress.IPv6Interface]
    interface: Optional[int] = None
    gateway: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IPConfig":
        """Build an IP config from a CNI result entry."""
        if not isinstance(data, dict) or "address" not in data:
            raise ValueError(f"invalid IP config: {data!r}")
        interface = data.get("interface")
        if interface is not None and (isinstance(interface, bool) or not isinstance(interface, int)):
            raise ValueError(f"invalid interface index: {interface!r}")
        return cls(
            address=ipaddress.ip_interface(data["address"]),
            interface=interface,
            gateway=data.get("gateway") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the CNI result entry for this config."""
        out: dict[str, Any] = {}
        if self.interface is not None:
            out["interface"] = self.interface
        out["address"] = str(self.address)
        if self.gateway:
            out["gateway"] = self.gateway
        return out


def get_pod_info(cni_args: str) -> tuple[str, str]:
    """Extract the pod name and namespace from a CNI_ARGS string."""
    pod_name = ""
    pod_namespace = ""
    for part in cni_args.split(";"):
        if part.startswith(_POD_NAME_KEY):
            pod_name = part[len(_POD_NAME_KEY):]
        if part.startswith(_POD_NAMESPACE_KEY):
            pod_namespace = part[len(_POD_NAMESPACE_KEY):]
    return pod_name, pod_namespace


def replace_multi_nic_ipam(conf_bytes: ConfData, ip_config: Optional[IPConfig]) -> bytes:
    """Replace an empty IPAM section with a static one holding ``ip_config``'s address."""
    single_ipam = EMPTY_STATIC_IPAM
    if ip_config is not None:
        single_ipam = (
            '"ipam":{"type":"static","addresses":[{"address":"%s"}]}' % ip_config.address
        )
    return _as_text(conf_bytes).replace(EMPTY_IPAM, single_ipam).encode("utf-8")


def inject_multi_nic_ipam(
    conf_bytes: ConfData, ip_configs: Sequence[IPConfig], ip_index: int
) -> bytes:
    """Fill the IPAM section with the address at ``ip_index``, or leave it empty-static."""
    ip_config = ip_configs[ip_index] if 0 <= ip_index < len(ip_configs) else None
    return replace_multi_nic_ipam(conf_bytes, ip_config)


def inject_single_nic_ipam(single_conf_bytes: ConfData, multi_conf_bytes: ConfData) -> bytes:
    """Copy the IPAM section of the multi-NIC config into a single-NIC config."""
    try:
        parsed = json.loads(_as_text(multi_conf_bytes))
    except ValueError:
        parsed = None
    ipam = parsed.get("ipam") if isinstance(parsed, dict) else None
    if not isinstance(ipam, dict):
        ipam = None
    single_ipam = '"ipam":' + _marshal(ipam)
    return _as_text(single_conf_bytes).replace(EMPTY_IPAM, single_ipam).encode("utf-8")


def replace_empty_ipam(conf_bytes: ConfData) -> bytes:
    """Replace an empty IPAM section with a static one that has no addresses."""
    return _as_text(conf_bytes).replace(EMPTY_IPAM, EMPTY_STATIC_IPAM).encode("utf-8")


def inject_master(
    in_data: ConfData,
    selected_net_addrs: Optional[Sequence[str]],
    selected_masters: Optional[Sequence[str]],
    selected_device_ids: Optional[Sequence[str]],
) -> bytes:
    """Replace the interface pool of a config with the selected networks, masters and devices."""
    obj = json.loads(_as_text(in_data))
    if not isinstance(obj, dict):
        raise ValueError("network config is not a JSON object")

    def as_list(values: Optional[Sequence[str]]) -> Optional[list[str]]:
        return None if values is None else list(values)

    obj["masterNets"] = as_list(selected_net_addrs)
    obj["masters"] = as_list(selected_masters)
    obj["deviceIDs"] = as_list(selected_device_ids)
    return _marshal(obj).encode("utf-8")


def get_host_ip_config(index: int, dev_name: str) -> Optional[IPConfig]:
    """Return the first IPv4 address of ``dev_name`` as the config for interface ``index``."""
    addrs = psutil.net_if_addrs().get(dev_name)
    if addrs is None:
        logger.debug("cannot find link %s", dev_name)
        return None
    for addr in addrs:
        if addr.family != socket.AF_INET or not addr.netmask:
            continue
        try:
            address = ipaddress.IPv4Interface(f"{addr.address}/{addr.netmask}")
        except ValueError:
            continue
        return IPConfig(address=address, interface=index)
    logger.debug("cannot list address on %s", dev_name)
    return None