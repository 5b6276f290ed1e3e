"""Per-interface configs for the delegated main plugins (ipvlan, sriov, host-device, aws-ipvlan)."""

from __future__ import annotations

import json
from typing import Any, Callable, Optional, Sequence

from .ipam_inject import (
    _HTML_ESCAPES,
    ConfData,
    IPConfig,
    _as_text,
    get_host_ip_config,
    inject_multi_nic_ipam,
    inject_single_nic_ipam,
    replace_empty_ipam,
    replace_multi_nic_ipam,
)
from .logger import logger
from .netconf import NetConf
from .netif import get_host_ip

HOST_DEVICE_IPAM_TYPE = "host-device-ipam"

# Shown in place of an address when a master interface has no IPv4 address.
NO_ADDRESS = "<nil>"

_Field = tuple[str, type]

_IPVLAN_FIELDS: tuple[_Field, ...] = (("master", str), ("mode", str), ("mtu", int))
_SRIOV_FIELDS: tuple[_Field, ...] = (
    ("DPDKMode", bool),
    ("Master", str),
    ("vlan", int),
    ("deviceID", str),
    ("VFID", int),
    ("HostIFNames", str),
    ("ContIFNames", str),
)
_HOST_DEVICE_FIELDS: tuple[_Field, ...] = (
    ("device", str),
    ("hwaddr", str),
    ("DPDKMode", bool),
    ("kernelpath", str),
    ("pciBusID", str),
)
_AWS_IPVLAN_FIELDS: tuple[_Field, ...] = (
    ("primaryIP", str),
    ("podIP", str),
    ("master", str),
    ("mode", str),
    ("mtu", int),
)


def _go_json(obj: Any) -> str:
    text = json.dumps(obj, separators=(",", ":"), ensure_ascii=False)
    for raw, escaped in _HTML_ESCAPES.items():
        text = text.replace(raw, escaped)
    return text


def _sorted(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _sorted(value[key]) for key in sorted(value)}
    if isinstance(value, list):
        return [_sorted(item) for item in value]
    return value


def _lookup(obj: dict[str, Any], key: str) -> Any:
    """Find a field value the way JSON decoding into a struct does: case-insensitively, last wins."""
    folded = key.casefold()
    found = None
    for name, value in obj.items():
        if name == key or name.casefold() == folded:
            found = value
    return found


def _read(obj: dict[str, Any], key: str, kind: type) -> Any:
    value = _lookup(obj, key)
    if value is None:
        return kind()
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"field {key!r} must be an integer, got {value!r}")
    elif not isinstance(value, kind):
        raise ValueError(f"field {key!r} must be of type {kind.__name__}, got {value!r}")
    return value


def _read_object(obj: dict[str, Any], key: str) -> dict[str, Any]:
    value = _lookup(obj, key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"field {key!r} must be an object, got {value!r}")
    return value


def _read_str_list(obj: dict[str, Any], key: str) -> list[str]:
    value = _lookup(obj, key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"field {key!r} must be a list of strings, got {value!r}")
    return list(value)


def _plugin_section(data: ConfData) -> dict[str, Any]:
    obj = json.loads(_as_text(data))
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ValueError("network config is not a JSON object")
    return _read_object(obj, "plugin")


def _base_fields(plugin: dict[str, Any], default_version: str, name: str) -> dict[str, Any]:
    out: dict[str, Any] = {}
    cni_version = _read(plugin, "cniVersion", str) or default_version
    if cni_version:
        out["cniVersion"] = cni_version
    out["name"] = name
    plugin_type = _read(plugin, "type", str)
    if plugin_type:
        out["type"] = plugin_type

    capabilities = _read_object(plugin, "capabilities")
    for key, value in capabilities.items():
        if not isinstance(value, bool):
            raise ValueError(f"capability {key!r} must be a boolean, got {value!r}")
    if capabilities:
        out["capabilities"] = _sorted(capabilities)

    ipam_type = _read(_read_object(plugin, "ipam"), "type", str)
    out["ipam"] = {"type": ipam_type} if ipam_type else {}

    dns_section = _read_object(plugin, "dns")
    dns: dict[str, Any] = {}
    nameservers = _read_str_list(dns_section, "nameservers")
    if nameservers:
        dns["nameservers"] = nameservers
    domain = _read(dns_section, "domain", str)
    if domain:
        dns["domain"] = domain
    for key in ("search", "options"):
        values = _read_str_list(dns_section, key)
        if values:
            dns[key] = values
    out["dns"] = dns

    prev_result = _read_object(plugin, "prevResult")
    if prev_result:
        out["prevResult"] = _sorted(prev_result)
    return out


def _single_conf(
    plugin: dict[str, Any],
    fields: Sequence[_Field],
    n: NetConf,
    name: str,
    overrides: dict[str, Any],
    extra: Optional[dict[str, Any]] = None,
) -> bytes:
    conf = _base_fields(plugin, n.cni_version, name)
    for key, kind in fields:
        conf[key] = overrides[key] if key in overrides else _read(plugin, key, kind)
    if extra:
        conf.update(extra)
    return _go_json(conf).encode("utf-8")


def _inject_ipam(
    conf: bytes, n: NetConf, data: ConfData, ip_configs: Sequence[IPConfig], index: int
) -> bytes:
    if n.is_multi_nic_ipam:
        return inject_multi_nic_ipam(conf, ip_configs, index)
    return inject_single_nic_ipam(conf, data)


def load_ipvlan_conf(
    data: ConfData, if_name: str, n: NetConf, ip_configs: Sequence[IPConfig]
) -> list[bytes]:
    """Return one ipvlan config per selected master interface."""
    plugin = _plugin_section(data)
    confs = []
    for index, master in enumerate(n.masters):
        if not master:
            continue
        conf = _single_conf(
            plugin, _IPVLAN_FIELDS, n, f"{if_name}-{index}", {"master": master}
        )
        confs.append(_inject_ipam(conf, n, data, ip_configs, index))
    return confs


def load_sriov_conf(
    data: ConfData, if_name: str, n: NetConf, ip_configs: Sequence[IPConfig]
) -> list[bytes]:
    """Return one SR-IOV config per selected device."""
    plugin = _plugin_section(data)
    confs = []
    for index, device_id in enumerate(n.device_ids):
        if not device_id:
            continue
        conf = _single_conf(
            plugin, _SRIOV_FIELDS, n, f"{if_name}-{index}", {"deviceID": device_id}
        )
        confs.append(_inject_ipam(conf, n, data, ip_configs, index))
    return confs


def load_host_device_conf(
    data: ConfData, if_name: str, n: NetConf, ip_configs: Sequence[IPConfig]
) -> list[bytes]:
    """Return one host-device config per selected device."""
    plugin = _plugin_section(data)
    confs = []
    for index, device_id in enumerate(n.device_ids):
        if not device_id:
            logger.debug("skip %d: no device ID", index)
            continue
        conf = _single_conf(
            plugin,
            _HOST_DEVICE_FIELDS,
            n,
            f"{if_name}-{index}",
            {},
            extra={"runtimeConfig": {"deviceID": device_id}},
        )
        if n.ipam_type == HOST_DEVICE_IPAM_TYPE:
            ip_config = get_host_ip_config(index, n.masters[index])
            if ip_config is None:
                logger.debug("skip %d: no host IP", index)
                conf = replace_empty_ipam(conf)
            conf = replace_multi_nic_ipam(conf, ip_config)
        else:
            conf = _inject_ipam(conf, n, data, ip_configs, index)
        confs.append(conf)
    return confs


def inject_pod_ip(conf_bytes: ConfData, pod_ip: str) -> bytes:
    """Fill an empty podIP field with ``pod_ip``."""
    return (
        _as_text(conf_bytes)
        .replace('"podIP":""', f'"podIP":"{pod_ip}"')
        .encode("utf-8")
    )


def inject_primary_ip(conf_bytes: ConfData, primary_ip: str) -> bytes:
    """Fill an empty primaryIP field with ``primary_ip``."""
    return (
        _as_text(conf_bytes)
        .replace('"primaryIP":""', f'"primaryIP":"{primary_ip}"')
        .encode("utf-8")
    )


def load_aws_ipvlan_conf(
    data: ConfData, if_name: str, n: NetConf, ip_configs: Sequence[IPConfig]
) -> list[bytes]:
    """Return one aws-ipvlan config per selected master, with host and pod addresses filled in."""
    try:
        plugin = _plugin_section(data)
    except ValueError as err:
        raise ValueError(f"unmarshal AWSIPVLANNetConfig: {err}") from err
    confs = []
    for index, master in enumerate(n.masters):
        conf = _single_conf(
            plugin, _AWS_IPVLAN_FIELDS, n, f"{if_name}-{index}", {"master": master}
        )
        host_ip = get_host_ip(master)
        conf = inject_primary_ip(conf, host_ip if host_ip is not None else NO_ADDRESS)
        if n.is_multi_nic_ipam:
            if index < len(ip_configs):
                conf = inject_multi_nic_ipam(conf, ip_configs, index)
                conf = inject_pod_ip(conf, str(ip_configs[index].address.ip))
                confs.append(conf)
            else:
                logger.debug("index not match config %d, %s", index, ip_configs)
        else:
            confs.append(inject_single_nic_ipam(conf, data))
    return confs


_LOADERS: dict[str, Callable[[ConfData, str, NetConf, Sequence[IPConfig]], list[bytes]]] = {
    "ipvlan": load_ipvlan_conf,
    "sriov": load_sriov_conf,
    "aws-ipvlan": load_aws_ipvlan_conf,
    "host-device": load_host_device_conf,
}


def load_device_confs(
    device_type: str,
    data: ConfData,
    if_name: str,
    n: NetConf,
    ip_configs: Sequence[IPConfig],
) -> list[bytes]:
    """Build the per-interface configs for ``device_type``."""
    loader = _LOADERS.get(device_type)
    if loader is None:
        raise ValueError(f"unsupported device type: {device_type}")
    return loader(data, if_name, n, ip_configs)