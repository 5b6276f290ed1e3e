"""The multi-NIC network config and its loading with daemon-side NIC selection."""

from __future__ import annotations

import json
import socket
from dataclasses import dataclass, field
from typing import Any, Optional

from .daemon_client import NicArgs, select_nics
from .ipam_inject import ConfData, _as_text, get_pod_info

IPVLAN_MODE_CONFIG = "l3"
DEFAULT_SUBNET = "172.30.0.0/16"
DEFAULT_HOST_BLOCK = 8
DEFAULT_INTERFACE_BLOCK = 2
LOG_FILE_PATH = "/var/log/multi-nic-cni.log"


@dataclass
class NetConf:
    """General config of a multi-NIC network attachment."""

    cni_version: str = ""
    name: str = ""
    type: str = ""
    ipam: dict[str, Any] = field(default_factory=dict)
    dns: dict[str, Any] = field(default_factory=dict)
    raw_prev_result: Optional[dict[str, Any]] = None
    main_plugin: Optional[dict[str, Any]] = None
    subnet: str = ""
    master_net_addrs: list[str] = field(default_factory=list)
    device_ids: list[str] = field(default_factory=list)
    masters: list[str] = field(default_factory=list)
    is_multi_nic_ipam: bool = False
    daemon_ip: str = ""
    daemon_port: int = 0
    nic_set: Optional[NicArgs] = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def ipam_type(self) -> str:
        """The type of the IPAM plugin, or '' when there is none."""
        value = self.ipam.get("type")
        return value if isinstance(value, str) else ""


def _str(obj: dict[str, Any], key: str) -> str:
    value = obj.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {value!r}")
    return value


def _int(obj: dict[str, Any], key: str) -> int:
    value = obj.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r} must be an integer, got {value!r}")
    return value


def _bool(obj: dict[str, Any], key: str) -> bool:
    value = obj.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"field {key!r} must be a boolean, got {value!r}")
    return value


def _str_list(obj: dict[str, Any], key: str) -> list[str]:
    value = obj.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"field {key!r} must be a list of strings, got {value!r}")
    return list(value)


def _object(obj: dict[str, Any], key: str) -> Optional[dict[str, Any]]:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError(f"field {key!r} must be an object, got {value!r}")
    return value


def parse_net_conf(data: ConfData) -> NetConf:
    """Parse a multi-NIC network config from JSON."""
    obj = json.loads(_as_text(data))
    if obj is None:
        return NetConf()
    if not isinstance(obj, dict):
        raise ValueError("network config is not a JSON object")

    nic_set = None
    args = _object(obj, "args")
    if args is not None:
        cni = _object(args, "cni")
        if cni is not None:
            nic_set = NicArgs.from_dict(cni)

    return NetConf(
        cni_version=_str(obj, "cniVersion"),
        name=_str(obj, "name"),
        type=_str(obj, "type"),
        ipam=dict(_object(obj, "ipam") or {}),
        dns=dict(_object(obj, "dns") or {}),
        raw_prev_result=_object(obj, "prevResult"),
        main_plugin=_object(obj, "plugin"),
        subnet=_str(obj, "subnet"),
        master_net_addrs=_str_list(obj, "masterNets"),
        device_ids=_str_list(obj, "deviceIDs"),
        masters=_str_list(obj, "masters"),
        is_multi_nic_ipam=_bool(obj, "multiNICIPAM"),
        daemon_ip=_str(obj, "daemonIP"),
        daemon_port=_int(obj, "daemonPort"),
        nic_set=nic_set,
        raw=obj,
    )


def load_conf(stdin_data: ConfData, cni_args: str) -> tuple[NetConf, str]:
    """Parse the config, ask the daemon to select NICs, and return it with the device type."""
    n = parse_net_conf(stdin_data)
    device_type = (n.main_plugin or {}).get("type")
    if not isinstance(device_type, str):
        raise ValueError("plugin type is missing from network config")
    if not n.subnet:
        n.subnet = DEFAULT_SUBNET

    host_name = socket.gethostname()
    pod_name, pod_namespace = get_pod_info(cni_args)
    nic_set = n.nic_set if n.nic_set is not None else NicArgs()

    response = select_nics(
        n.daemon_ip,
        n.daemon_port,
        pod_name,
        pod_namespace,
        host_name,
        n.name,
        nic_set,
        n.master_net_addrs,
    )
    n.masters = list(response.masters)
    n.device_ids = list(response.device_ids)
    return n, device_type