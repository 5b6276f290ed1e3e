"""HTTP client for the node daemon: NIC selection and IP allocation."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any

ALLOCATE_PATH = "allocate"
DEALLOCATE_PATH = "deallocate"
NIC_SELECT_PATH = "select"

DEFAULT_DAEMON_PORT = 11000
DEFAULT_DAEMON_IP = "localhost"

IPAM_TIMEOUT = 120.0
SELECT_TIMEOUT = 300.0

_CONTENT_TYPE = "application/json; charset=utf-8"


class DaemonError(Exception):
    """The daemon could not be reached or gave an unusable answer."""


@dataclass
class IPResponse:
    """An address the daemon assigned on one master interface."""

    interface_name: str = ""
    ip_address: str = ""
    vlan_block_size: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IPResponse":
        return cls(
            interface_name=data.get("interface") or "",
            ip_address=data.get("ip") or "",
            vlan_block_size=data.get("block") or "",
        )


@dataclass
class NicArgs:
    """NIC selection hints given in a pod annotation."""

    num_of_interfaces: int = 0
    interface_names: list[str] = field(default_factory=list)
    target: str = ""
    dev_class: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "NicArgs":
        data = data or {}
        return cls(
            num_of_interfaces=data.get("nics") or 0,
            interface_names=list(data.get("masters") or []),
            target=data.get("target") or "",
            dev_class=data.get("class") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.num_of_interfaces:
            out["nics"] = self.num_of_interfaces
        if self.interface_names:
            out["masters"] = list(self.interface_names)
        if self.target:
            out["target"] = self.target
        if self.dev_class:
            out["class"] = self.dev_class
        return out


@dataclass
class NICSelectResponse:
    """The NICs the daemon selected for a pod."""

    device_ids: list[str] = field(default_factory=list)
    masters: list[str] = field(default_factory=list)


def _address(daemon_ip: str, daemon_port: int, path: str) -> str:
    return f"http://{daemon_ip or DEFAULT_DAEMON_IP}:{daemon_port or DEFAULT_DAEMON_PORT}/{path}"


def _post(address: str, payload: dict[str, Any], timeout: float) -> Any:
    request = urllib.request.Request(
        address,
        data=json.dumps(payload).encode(),
        headers={"Content-Type": _CONTENT_TYPE},
        method="POST",
    )
    opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))
    try:
        with opener.open(request, timeout=timeout) as response:
            status, reason = response.status, response.reason
            body = response.read()
    except urllib.error.HTTPError as err:
        raise DaemonError(f"{err.code} {err.reason}") from err
    except OSError as err:
        raise DaemonError(f"post fail: {err}") from err
    if status != 200:
        raise DaemonError(f"{status} {reason}")
    try:
        return json.loads(body)
    except ValueError as err:
        raise DaemonError(f"read body: {err}") from err


def _parse_ip_responses(data: Any) -> list[IPResponse]:
    if data is None:
        data = []
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise DaemonError(f"cannot decode response: {data!r}")
    if not data:
        raise DaemonError("response nothing")
    return [IPResponse.from_dict(item) for item in data]


def request_ip(
    daemon_ip: str,
    daemon_port: int,
    pod_name: str,
    pod_namespace: str,
    host_name: str,
    def_name: str,
    masters: list[str] | None,
) -> list[IPResponse]:
    """Ask the daemon to allocate one address per master interface for a pod."""
    payload = {
        "pod": pod_name,
        "namespace": pod_namespace,
        "host": host_name,
        "def": def_name,
        "masters": masters,
    }
    data = _post(_address(daemon_ip, daemon_port, ALLOCATE_PATH), payload, IPAM_TIMEOUT)
    return _parse_ip_responses(data)


def deallocate(
    daemon_port: int,
    pod_name: str,
    pod_namespace: str,
    host_name: str,
    def_name: str,
) -> list[IPResponse]:
    """Ask the local daemon to release the addresses of a pod."""
    payload = {
        "pod": pod_name,
        "namespace": pod_namespace,
        "host": host_name,
        "def": def_name,
        "masters": None,
    }
    data = _post(_address("localhost", daemon_port, DEALLOCATE_PATH), payload, IPAM_TIMEOUT)
    return _parse_ip_responses(data)


def select_nics(
    daemon_ip: str,
    daemon_port: int,
    pod_name: str,
    pod_namespace: str,
    host_name: str,
    def_name: str,
    nic_set: NicArgs | None,
    master_nets: list[str] | None,
) -> NICSelectResponse:
    """Ask the daemon which master interfaces a pod should use."""
    payload = {
        "pod": pod_name,
        "namespace": pod_namespace,
        "host": host_name,
        "def": def_name,
        "masterNets": master_nets,
        "args": (nic_set or NicArgs()).to_dict(),
    }
    data = _post(_address(daemon_ip, daemon_port, NIC_SELECT_PATH), payload, SELECT_TIMEOUT)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise DaemonError(f"cannot decode response: {data!r}")
    response = NICSelectResponse(
        device_ids=list(data.get("deviceIDs") or []),
        masters=list(data.get("masters") or []),
    )
    if not response.masters:
        raise DaemonError("response nothing")
    return response