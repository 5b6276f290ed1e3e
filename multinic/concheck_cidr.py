"""CIDR resources as read by the connection check: host pod blocks per network."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

CIDR_RESOURCE = "cidrs.v1.multinic.fms.io"


@dataclass
class HostInterfaceInfo:
    """The pod block given to one host on one interface."""

    host_index: int = 0
    host_name: str = ""
    interface_name: str = ""
    host_ip: str = ""
    pod_cidr: str = ""


@dataclass
class CIDREntry:
    """One interface network and the host blocks carved out of it."""

    net_address: str = ""
    interface_index: int = 0
    vlan_cidr: str = ""
    hosts: list[HostInterfaceInfo] = field(default_factory=list)


@dataclass
class CIDRSpec:
    """The desired state of a CIDR resource."""

    cidrs: list[CIDREntry] = field(default_factory=list)


def _field(obj: Mapping[str, Any], key: str, kind: type) -> Any:
    value = obj.get(key)
    if value is None:
        return kind()
    if kind is int and (isinstance(value, bool) or not isinstance(value, int)):
        raise ValueError(f"field {key!r} must be an integer, got {value!r}")
    if kind is not int and not isinstance(value, kind):
        raise ValueError(f"field {key!r} must be of type {kind.__name__}, got {value!r}")
    return value


def _objects(obj: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    items = _field(obj, key, list)
    if not all(isinstance(item, Mapping) for item in items):
        raise ValueError(f"field {key!r} must be a list of objects")
    return items


def _host(data: Mapping[str, Any]) -> HostInterfaceInfo:
    return HostInterfaceInfo(
        host_index=_field(data, "hostIndex", int),
        host_name=_field(data, "hostName", str),
        interface_name=_field(data, "interfaceName", str),
        host_ip=_field(data, "hostIP", str),
        pod_cidr=_field(data, "podCIDR", str),
    )


def _entry(data: Mapping[str, Any]) -> CIDREntry:
    return CIDREntry(
        net_address=_field(data, "netAddress", str),
        interface_index=_field(data, "interfaceIndex", int),
        vlan_cidr=_field(data, "vlanCIDR", str),
        hosts=[_host(item) for item in _objects(data, "hosts")],
    )


def parse_cidr_spec(resource: Mapping[str, Any]) -> CIDRSpec:
    """Read the spec of a CIDR resource object."""
    spec = resource.get("spec") if isinstance(resource, Mapping) else None
    if not isinstance(spec, Mapping):
        raise ValueError("CIDR resource has no spec")
    return CIDRSpec(cidrs=[_entry(item) for item in _objects(spec, "cidr")])


def get_name(resource: Mapping[str, Any]) -> str:
    """Return the metadata name of a resource object."""
    metadata = resource.get("metadata") if isinstance(resource, Mapping) else None
    if not isinstance(metadata, Mapping) or not isinstance(metadata.get("name"), str):
        raise ValueError("resource has no metadata name")
    return metadata["name"]


def get_pod_cidrs_map(spec: CIDRSpec) -> dict[str, list[str]]:
    """Group the pod CIDRs of a spec by host name, in spec order."""
    pod_cidrs: dict[str, list[str]] = {}
    for entry in spec.cidrs:
        for host in entry.hosts:
            pod_cidrs.setdefault(host.host_name, []).append(host.pod_cidr)
    return pod_cidrs