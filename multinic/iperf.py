"""Connection check with iperf3: pod and job manifests, commands and result reports."""

from __future__ import annotations

import json
import sys
from typing import Any, Iterable, Mapping, Optional, Sequence, TextIO

DEFAULT_NAMESPACE = "default"
STREAMS_PER_IP = 5

DEFAULT_LABEL_NAME = "multi-nic-concheck"
DEFAULT_SERVER_LABEL_VALUE = "server"
DEFAULT_CLIENT_LABEL_VALUE = "client"
NETWORK_ANNOTATION = "k8s.v1.cni.cncf.io/networks"
NETWORK_STATUS_ANNOTATION = "k8s.v1.cni.cncf.io/network-status"

IPERF_IMAGE = "networkstatic/iperf3"
MAX_NAME_LENGTH = 60
START_MULTI_STREAM_PORT = 30000

BANDWIDTH_KEY = "bits/sec"
ERROR_KEY = "Bad file descriptor"

BANNER = "###########################################"
TABLE_HEADER = ("FROM", "TO", "", "CONNECTED/TOTAL", "IPs", "BANDWIDTHs")


def get_name(cidr_name: str, host_name: str, label_value: str) -> str:
    """Return the object name for a host's server or client, cut to the length limit."""
    name = f"{cidr_name}-{host_name}-{label_value}"
    length_over = len(name) - MAX_NAME_LENGTH
    if length_over > 0:
        name = name[length_over : len(name) - 1]
        if name.startswith("-"):
            name = name[1:]
    return name


def get_label_value(cidr_name: str, label_value: str) -> str:
    """Return the value of the check label for a network and role."""
    return f"{cidr_name}-{label_value}"


def get_meta_object(
    namespace: str, cidr_name: str, host_name: str, label_value: str
) -> dict[str, Any]:
    """Return object metadata attaching the object to the network under check."""
    return {
        "name": get_name(cidr_name, host_name, label_value),
        "namespace": namespace,
        "labels": {DEFAULT_LABEL_NAME: get_label_value(cidr_name, label_value)},
        "annotations": {NETWORK_ANNOTATION: cidr_name},
    }


def _streams() -> str:
    return "".join(f" {j}" for j in range(1, STREAMS_PER_IP + 1))


def _prefix_port(index: int) -> int:
    return (START_MULTI_STREAM_PORT + index * 10) // 10


def multi_stream_server_command(number_of_interface: int) -> str:
    """Return the shell command starting iperf3 servers for every interface and stream."""
    streams = _streams()
    cmd = "".join(
        f" (for i in {streams}; do iperf3 -s -p {_prefix_port(i)}$i & done) & "
        for i in range(number_of_interface)
    )
    return cmd + "(tail -f /dev/null)"


def primary_check_client_command(host_name: str, ip_map: Mapping[str, str]) -> str:
    """Return the command that waits until every other host's server is reachable."""
    prefix_port = START_MULTI_STREAM_PORT // 10
    return "".join(
        f" until iperf3 -c {ip} -p {prefix_port}{STREAMS_PER_IP} -n 1; do sleep 1; done;"
        for target_host, ip in ip_map.items()
        if target_host != host_name
    )


def multi_stream_client_command(host_name: str, ip_map: Mapping[str, Sequence[str]]) -> str:
    """Return the command measuring bandwidth to each address of every other host."""
    streams = _streams()
    parts = []
    for target_host, ips in ip_map.items():
        if target_host == host_name:
            continue
        for i, ip in enumerate(ips):
            parts.append(
                f" (for i in {streams}; do iperf3 -Z -t 10s -c {ip} -p {_prefix_port(i)}$i"
                f" --connect-timeout 10s & done | grep 'receiver' |"
                f" awk '{{s+=$7}} END{{print \"{ip},\"s$8}}') &"
            )
        parts.append("wait; sleep 1;echo '';")
    return "".join(parts)


def _container(name: str, command: list[str], args: str) -> dict[str, Any]:
    return {
        "name": name,
        "image": IPERF_IMAGE,
        "imagePullPolicy": "IfNotPresent",
        "command": command,
        "args": [args],
    }


def server_pod_manifest(
    namespace: str, cidr_name: str, host_name: str, number_of_streams: int
) -> dict[str, Any]:
    """Return the manifest of the iperf3 server pod pinned to ``host_name``."""
    container = _container(
        DEFAULT_SERVER_LABEL_VALUE,
        ["/bin/sh", "-c"],
        multi_stream_server_command(number_of_streams),
    )
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": get_meta_object(namespace, cidr_name, host_name, DEFAULT_SERVER_LABEL_VALUE),
        "spec": {
            "containers": [container],
            "nodeName": host_name,
            "terminationGracePeriodSeconds": 0,
        },
    }


def client_job_manifest(
    namespace: str,
    cidr_name: str,
    host_name: str,
    primary_ip_map: Mapping[str, str],
    ip_map: Mapping[str, Sequence[str]],
) -> dict[str, Any]:
    """Return the manifest of the iperf3 client job pinned to ``host_name``."""
    init_container = _container(
        "inti" + DEFAULT_CLIENT_LABEL_VALUE,
        ["timeout", "30s", "/bin/sh", "-c"],
        primary_check_client_command(host_name, primary_ip_map),
    )
    container = _container(
        DEFAULT_CLIENT_LABEL_VALUE,
        ["/bin/sh", "-c"],
        multi_stream_client_command(host_name, ip_map),
    )
    return {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": get_meta_object(namespace, cidr_name, host_name, DEFAULT_CLIENT_LABEL_VALUE),
        "spec": {
            "template": {
                "metadata": get_meta_object(
                    namespace, cidr_name, host_name, DEFAULT_CLIENT_LABEL_VALUE
                ),
                "spec": {
                    "initContainers": [init_container],
                    "containers": [container],
                    "nodeName": host_name,
                    "terminationGracePeriodSeconds": 0,
                    "restartPolicy": "Never",
                },
            }
        },
    }


def parse_network_status(
    annotation: str, namespace: str, cidr_name: str
) -> tuple[Optional[str], Optional[list[str]]]:
    """Return the primary (eth0) address and the network's addresses from a status annotation."""
    try:
        statuses = json.loads(annotation)
    except ValueError as err:
        raise ValueError(f"cannot unmarshal {annotation}: {err}") from err
    if statuses is None:
        statuses = []
    if not isinstance(statuses, list) or not all(isinstance(s, dict) for s in statuses):
        raise ValueError(f"cannot unmarshal {annotation}: not a list of objects")

    primary_ip: Optional[str] = None
    server_ips: Optional[list[str]] = None
    network_name = f"{namespace}/{cidr_name}"
    for status in statuses:
        ips = list(status.get("ips") or [])
        if status.get("name") == network_name:
            server_ips = ips
        elif status.get("interface") == "eth0":
            if not ips:
                raise ValueError(f"primary interface has no address in {annotation}")
            primary_ip = ips[0]
    return primary_ip, server_ips


def parse_result_lines(lines: Iterable[str]) -> dict[str, str]:
    """Map each target address in a client log to its bandwidth, or to the error marker."""
    result: dict[str, str] = {}
    for line in lines:
        values = line.split(",")
        result[values[0]] = values[1] if len(values) > 1 else ERROR_KEY
    return result


def _render_table(rows: Sequence[Sequence[str]]) -> str:
    columns = len(rows[0]) - 1
    widths = [
        max(1, max(len(row[col]) + 1 for row in rows)) for col in range(columns)
    ]
    lines = []
    for row in rows:
        cells = [row[col].ljust(widths[col]) for col in range(columns)]
        lines.append("".join(cells) + row[-1])
    return "\n".join(lines) + "\n"


def format_result(
    cidr_name: str,
    host_results: Mapping[str, Mapping[str, str]],
    ip_map: Mapping[str, Sequence[str]],
    out: Optional[TextIO] = None,
) -> str:
    """Write the connection table of a network to ``out`` and return the written text."""
    rows: list[tuple[str, ...]] = [TABLE_HEADER]
    for host_name, result in host_results.items():
        for target_host, ips in ip_map.items():
            if target_host == host_name:
                continue
            fail_count = 0
            bandwidths = []
            for ip in ips:
                if ip not in result:
                    continue
                value = result[ip]
                if ERROR_KEY in value or value == "":
                    fail_count += 1
                else:
                    bandwidths.append(value)
            bps = "[" + "".join(f" {value}" for value in bandwidths) + "]"
            total = len(ips)
            rows.append(
                (
                    host_name,
                    target_host,
                    "",
                    f"{total - fail_count}/{total}",
                    "[" + " ".join(ips) + "]",
                    bps,
                )
            )
    text = (
        f"{BANNER}\n## Connection Check: {cidr_name}\n{BANNER}\n"
        + _render_table(rows)
        + f"{BANNER}\n"
    )
    (out if out is not None else sys.stdout).write(text)
    return text