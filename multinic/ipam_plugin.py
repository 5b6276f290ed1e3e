"""IPAM plugin that obtains pod addresses on the selected masters from the node daemon."""

from __future__ import annotations

import ipaddress
import json
import os
import socket
import sys
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from .chains import build_string
from .daemon_client import DaemonError, IPResponse, deallocate, request_ip
from .ipam_inject import ConfData, IPConfig, _as_text, get_pod_info
from .logger import initialize_logger, logger
from .netconf import NetConf, _int, _str, _str_list, parse_net_conf

PLUGIN_NAME = "multi-nic-ipam"
LOG_FILE_PATH = "/var/log/multi-nic-ipam.log"

IMPLEMENTED_SPEC_VERSION = "1.0.0"
SUPPORTED_VERSIONS = ("0.1.0", "0.2.0", "0.3.0", "0.3.1", "0.4.0", "1.0.0")

ERR_INVALID_ENVIRONMENT_VARIABLES = 4
ERR_INTERNAL = 999


class PluginError(Exception):
    """A failure reported back to the container runtime."""

    def __init__(self, msg: str, code: int = ERR_INTERNAL, details: str = "") -> None:
        super().__init__(msg)
        self.msg = msg
        self.code = code
        self.details = details


@dataclass
class IPAMConfig:
    """The 'ipam' section of the network config."""

    name: str = ""
    type: str = ""
    daemon_ip: str = ""
    daemon_port: int = 0
    host_block: int = 0
    interface_block: int = 0
    exclude_cidrs: list[str] = field(default_factory=list)
    routes: list[dict[str, str]] = field(default_factory=list)
    dns: dict[str, Any] = field(default_factory=dict)


@dataclass
class _Result:
    ips: list[IPConfig] = field(default_factory=list)
    routes: list[dict[str, str]] = field(default_factory=list)
    dns: dict[str, Any] = field(default_factory=dict)
    interfaces: list[dict[str, Any]] = field(default_factory=list)


def _parse_route(route: Any) -> dict[str, str]:
    if not isinstance(route, dict) or not isinstance(route.get("dst"), str):
        raise ValueError(f"invalid route: {route!r}")
    out = {"dst": str(ipaddress.ip_interface(route["dst"]))}
    gateway = route.get("gw")
    if gateway:
        out["gw"] = str(ipaddress.ip_address(gateway))
    return out


def _parse_dns(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"invalid dns: {value!r}")
    out: dict[str, Any] = {}
    nameservers = _str_list(value, "nameservers")
    if nameservers:
        out["nameservers"] = nameservers
    domain = _str(value, "domain")
    if domain:
        out["domain"] = domain
    for key in ("search", "options"):
        values = _str_list(value, key)
        if values:
            out[key] = values
    return out


def _parse_result(raw: dict[str, Any]) -> _Result:
    try:
        ips = [IPConfig.from_dict(item) for item in raw.get("ips") or []]
        routes = [_parse_route(item) for item in raw.get("routes") or []]
        for key in ("ip4", "ip6"):
            legacy = raw.get(key)
            if isinstance(legacy, dict) and legacy.get("ip"):
                ips.append(
                    IPConfig(
                        address=ipaddress.ip_interface(legacy["ip"]),
                        gateway=legacy.get("gateway") or None,
                    )
                )
                routes.extend(_parse_route(item) for item in legacy.get("routes") or [])
        interfaces = list(raw.get("interfaces") or [])
        dns = _parse_dns(raw.get("dns"))
    except (TypeError, AttributeError, KeyError) as err:
        raise ValueError(str(err)) from err
    return _Result(ips=ips, routes=routes, dns=dns, interfaces=interfaces)


def _format_result(result: _Result, version: str) -> dict[str, Any]:
    if version not in SUPPORTED_VERSIONS:
        raise PluginError(f'unsupported CNI result version "{version}"')
    out: dict[str, Any] = {"cniVersion": version}

    if version.startswith(("0.1.", "0.2.")):
        legacy: dict[int, dict[str, Any]] = {}
        for cfg in result.ips:
            if cfg.address.version not in legacy:
                entry: dict[str, Any] = {"ip": str(cfg.address)}
                if cfg.gateway:
                    entry["gateway"] = cfg.gateway
                legacy[cfg.address.version] = entry
        for route in result.routes:
            entry = legacy.get(ipaddress.ip_interface(route["dst"]).version)
            if entry is not None:
                entry.setdefault("routes", []).append(dict(route))
        if not legacy:
            raise PluginError("cannot convert: no valid IP addresses")
        for family, key in ((4, "ip4"), (6, "ip6")):
            if family in legacy:
                out[key] = legacy[family]
        out["dns"] = dict(result.dns)
        return out

    if result.interfaces:
        out["interfaces"] = list(result.interfaces)
    if result.ips:
        if version.startswith("1."):
            out["ips"] = [cfg.to_dict() for cfg in result.ips]
        else:
            out["ips"] = [
                {"version": str(cfg.address.version), **cfg.to_dict()} for cfg in result.ips
            ]
    if result.routes:
        out["routes"] = [dict(route) for route in result.routes]
    out["dns"] = dict(result.dns)
    return out


def _load_net_conf(data: ConfData) -> NetConf:
    try:
        return parse_net_conf(data)
    except ValueError as err:
        raise PluginError(f"failed to load netconf: {err}") from err


def load_ipam_config(data: ConfData) -> tuple[IPAMConfig, str]:
    """Parse the IPAM section and return it with the config's CNI version."""
    try:
        obj = json.loads(_as_text(data))
    except ValueError as err:
        raise PluginError(str(err)) from err
    if not isinstance(obj, dict):
        raise PluginError("network config is not a JSON object")
    ipam = obj.get("ipam")
    if ipam is None:
        raise PluginError("IPAM config missing 'ipam' key")
    if not isinstance(ipam, dict):
        raise PluginError(f"invalid 'ipam' section: {ipam!r}")
    try:
        config = IPAMConfig(
            name=_str(obj, "name"),
            type=_str(ipam, "type"),
            daemon_ip=_str(ipam, "daemonIP"),
            daemon_port=_int(ipam, "daemonPort"),
            host_block=_int(ipam, "hostBlock"),
            interface_block=_int(ipam, "interfaceBlock"),
            exclude_cidrs=_str_list(ipam, "excludeCIDRs"),
            routes=[_parse_route(item) for item in ipam.get("routes") or []],
            dns=_parse_dns(ipam.get("dns")),
        )
        cni_version = _str(obj, "cniVersion")
    except ValueError as err:
        raise PluginError(str(err)) from err
    return config, cni_version


def _previous_result(n: NetConf) -> Optional[_Result]:
    if n.raw_prev_result is None:
        return None
    try:
        return _parse_result(n.raw_prev_result)
    except ValueError as err:
        raise PluginError(f"could not parse prevResult: {err}") from err


def _append_responses(
    result: _Result, masters: Sequence[str], responses: Sequence[IPResponse]
) -> None:
    for index, master in enumerate(masters):
        response = next((r for r in responses if r.interface_name == master), None)
        if response is None:
            continue
        cidr = f"{response.ip_address}/{response.vlan_block_size}"
        try:
            address = ipaddress.ip_interface(cidr)
        except ValueError as err:
            raise PluginError(f"failed to parse IP: {response.ip_address}: {err}") from err
        result.ips.append(IPConfig(address=address, interface=index))


def cmd_add(stdin_data: ConfData, cni_args: str = "") -> dict[str, Any]:
    """Allocate one address per master interface and return the CNI result."""
    n = _load_net_conf(stdin_data)
    conf_version = n.cni_version

    result = _previous_result(n) or _Result()
    if result.ips:
        return _format_result(result, conf_version)

    ipam_conf: Optional[IPAMConfig] = None
    ipam_error: Optional[PluginError] = None
    try:
        ipam_conf, _ = load_ipam_config(stdin_data)
    except PluginError as err:
        ipam_error = err

    if not n.masters:
        return _format_result(result, conf_version)
    if ipam_conf is None:
        assert ipam_error is not None
        raise ipam_error

    host_name = socket.gethostname()
    pod_name, pod_namespace = get_pod_info(cni_args or "")
    logger.debug(
        "RequestIP of %s net to %s:%d for %s/%s with %s",
        ipam_conf.name,
        ipam_conf.daemon_ip,
        ipam_conf.daemon_port,
        pod_namespace,
        pod_name,
        n.masters,
    )
    try:
        responses = request_ip(
            ipam_conf.daemon_ip,
            ipam_conf.daemon_port,
            pod_name,
            pod_namespace,
            host_name,
            ipam_conf.name,
            n.masters,
        )
    except DaemonError as err:
        raise PluginError(f"failed to request ip {err}") from err

    _append_responses(result, n.masters, responses)
    result.dns = dict(ipam_conf.dns)
    result.routes = list(ipam_conf.routes)
    output = _format_result(result, conf_version)
    logger.debug("Result: %s", output)
    return output


def cmd_check(stdin_data: ConfData) -> None:
    """Check that the previous result holds addresses inside the configured subnet."""
    n = _load_net_conf(stdin_data)
    if n.raw_prev_result is None:
        raise PluginError("required prevResult missing")
    try:
        result = _parse_result(n.raw_prev_result)
    except ValueError as err:
        raise PluginError(str(err)) from err
    if not result.ips:
        raise PluginError("no ip allocated")
    if not n.subnet:
        return
    for cfg in result.ips:
        try:
            subnet = ipaddress.ip_network(n.subnet, strict=False)
        except ValueError as err:
            raise PluginError(f"cannot parse subnet {n.subnet}") from err
        if cfg.address.ip not in subnet:
            raise PluginError(
                f"allocated ip {cfg.address.ip} is not in designated subnet {n.subnet}"
            )


def cmd_del(stdin_data: ConfData, cni_args: str = "", netns: str = "") -> Optional[dict[str, Any]]:
    """Release the pod's addresses and return the addresses the daemon freed."""
    n = _load_net_conf(stdin_data)
    result = _previous_result(n) or _Result()
    if not netns:
        return None

    try:
        ipam_conf, _ = load_ipam_config(stdin_data)
    except PluginError as err:
        raise PluginError("fail to load ipam conf") from err

    host_name = socket.gethostname()
    pod_name, pod_namespace = get_pod_info(cni_args or "")
    logger.debug(
        "RequestDeallocateIP of %s/%s in %s net from %s:%d",
        pod_namespace,
        pod_name,
        ipam_conf.name,
        ipam_conf.daemon_ip,
        ipam_conf.daemon_port,
    )
    try:
        responses = deallocate(
            ipam_conf.daemon_port, pod_name, pod_namespace, host_name, ipam_conf.name
        )
    except DaemonError as err:
        logger.debug("ResponseDeallocateIP failed: %s", err)
        responses = []
    logger.debug("ResponseDeallocateIP: %s", responses)

    _append_responses(result, n.masters, responses)
    result.dns = dict(ipam_conf.dns)
    result.routes = list(ipam_conf.routes)
    output = _format_result(result, n.cni_version)
    logger.debug("Result: %s", output)
    return output


def _error_output(err: PluginError) -> dict[str, Any]:
    out: dict[str, Any] = {"code": err.code, "msg": err.msg}
    if err.details:
        out["details"] = err.details
    return out


def main(argv: Optional[list[str]] = None) -> int:
    """Run the plugin as the runtime invokes it: command in the environment, config on stdin."""
    try:
        initialize_logger(LOG_FILE_PATH)
    except OSError:
        pass

    command = os.environ.get("CNI_COMMAND", "")
    if not command:
        print(build_string(PLUGIN_NAME), file=sys.stderr)
        return 0
    if command == "VERSION":
        print(
            json.dumps(
                {
                    "cniVersion": IMPLEMENTED_SPEC_VERSION,
                    "supportedVersions": list(SUPPORTED_VERSIONS),
                }
            )
        )
        return 0

    stdin_data = sys.stdin.buffer.read()
    cni_args = os.environ.get("CNI_ARGS", "")
    netns = os.environ.get("CNI_NETNS", "")
    try:
        if command == "ADD":
            output = cmd_add(stdin_data, cni_args)
        elif command == "CHECK":
            cmd_check(stdin_data)
            output = None
        elif command == "DEL":
            output = cmd_del(stdin_data, cni_args, netns)
        else:
            raise PluginError(
                f"unknown CNI_COMMAND: {command}", ERR_INVALID_ENVIRONMENT_VARIABLES
            )
    except PluginError as err:
        print(json.dumps(_error_output(err)))
        return 1
    except (ValueError, OSError) as err:
        print(json.dumps(_error_output(PluginError(str(err)))))
        return 1
    if output is not None:
        print(json.dumps(output))
    return 0