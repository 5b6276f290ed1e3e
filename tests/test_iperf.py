import io
import json

import pytest

from multinic import iperf


def test_get_name_short_kept():
    assert iperf.get_name("net", "host", "server") == "net-host-server"


def test_get_name_long_is_cut_below_limit():
    name = iperf.get_name("a" * 30, "b" * 30, "server")
    assert len(name) < iperf.MAX_NAME_LENGTH
    assert name.startswith("a")
    assert name.endswith("serve")


def test_get_name_strips_leading_hyphen():
    name = iperf.get_name("abc", "h" * 52, "server")
    assert not name.startswith("-")
    assert name == "h" * 52 + "-serve"


def test_label_value_and_meta():
    assert iperf.get_label_value("net", "client") == "net-client"
    meta = iperf.get_meta_object("default", "net", "host", "client")
    assert meta["labels"] == {iperf.DEFAULT_LABEL_NAME: "net-client"}
    assert meta["annotations"] == {iperf.NETWORK_ANNOTATION: "net"}
    assert meta["name"] == "net-host-client"
    assert meta["namespace"] == "default"


def test_server_command_single_interface():
    assert iperf.multi_stream_server_command(1) == (
        " (for i in  1 2 3 4 5; do iperf3 -s -p 3000$i & done) & (tail -f /dev/null)"
    )


def test_server_command_ports_per_interface():
    cmd = iperf.multi_stream_server_command(2)
    assert "-p 3000$i" in cmd
    assert "-p 3001$i" in cmd
    assert cmd.endswith("(tail -f /dev/null)")


def test_server_command_zero_interfaces():
    assert iperf.multi_stream_server_command(0) == "(tail -f /dev/null)"


def test_primary_check_skips_self():
    cmd = iperf.primary_check_client_command("h1", {"h1": "10.0.0.1", "h2": "10.0.0.2"})
    assert "10.0.0.1" not in cmd
    assert " until iperf3 -c 10.0.0.2 -p 30005 -n 1; do sleep 1; done;" == cmd


def test_client_command_contents():
    cmd = iperf.multi_stream_client_command(
        "h1", {"h1": ["1.1.1.1"], "h2": ["10.0.0.2", "10.0.1.2"]}
    )
    assert "1.1.1.1" not in cmd
    assert "-c 10.0.0.2 -p 3000$i" in cmd
    assert "-c 10.0.1.2 -p 3001$i" in cmd
    assert 'print "10.0.0.2,"s$8' in cmd
    assert cmd.endswith("wait; sleep 1;echo '';")
    assert cmd.count("wait;") == 1


def test_server_pod_manifest():
    pod = iperf.server_pod_manifest("default", "net", "h1", 2)
    spec = pod["spec"]
    assert spec["nodeName"] == "h1"
    assert spec["terminationGracePeriodSeconds"] == 0
    container = spec["containers"][0]
    assert container["image"] == iperf.IPERF_IMAGE
    assert container["name"] == iperf.DEFAULT_SERVER_LABEL_VALUE
    assert container["args"] == [iperf.multi_stream_server_command(2)]


def test_client_job_manifest():
    job = iperf.client_job_manifest(
        "default", "net", "h1", {"h2": "10.0.0.2"}, {"h2": ["192.168.0.2"]}
    )
    pod_spec = job["spec"]["template"]["spec"]
    assert pod_spec["restartPolicy"] == "Never"
    assert pod_spec["initContainers"][0]["command"][:2] == ["timeout", "30s"]
    assert pod_spec["initContainers"][0]["args"] == [
        iperf.primary_check_client_command("h1", {"h2": "10.0.0.2"})
    ]
    assert pod_spec["containers"][0]["args"] == [
        iperf.multi_stream_client_command("h1", {"h2": ["192.168.0.2"]})
    ]
    assert job["metadata"]["labels"][iperf.DEFAULT_LABEL_NAME] == "net-client"


def test_parse_network_status():
    annotation = json.dumps(
        [
            {"name": "openshift-sdn", "interface": "eth0", "ips": ["10.128.0.5"]},
            {"name": "default/net", "interface": "net1-0", "ips": ["192.168.0.1", "192.168.64.1"]},
        ]
    )
    primary, ips = iperf.parse_network_status(annotation, "default", "net")
    assert primary == "10.128.0.5"
    assert ips == ["192.168.0.1", "192.168.64.1"]


def test_parse_network_status_missing_network():
    primary, ips = iperf.parse_network_status("[]", "default", "net")
    assert primary is None and ips is None


def test_parse_network_status_bad_json():
    with pytest.raises(ValueError):
        iperf.parse_network_status("{not json", "default", "net")


def test_parse_result_lines():
    result = iperf.parse_result_lines(["10.0.0.2,9.5Gbits/sec", "10.0.0.3", ""])
    assert result["10.0.0.2"] == "9.5Gbits/sec"
    assert result["10.0.0.3"] == iperf.ERROR_KEY
    assert result[""] == iperf.ERROR_KEY


def test_format_result_counts_and_alignment():
    out = io.StringIO()
    host_results = {
        "h1": {"10.0.0.2": "9Gbits/sec", "10.0.1.2": ""},
        "h2": {"10.0.0.1": "8Gbits/sec"},
    }
    ip_map = {"h1": ["10.0.0.1"], "h2": ["10.0.0.2", "10.0.1.2"]}
    text = iperf.format_result("net", host_results, ip_map, out)
    assert out.getvalue() == text
    lines = text.splitlines()
    assert lines[0] == iperf.BANNER
    assert lines[1] == "## Connection Check: net"
    assert lines[-1] == iperf.BANNER
    table = lines[3:-1]
    assert len(table) == 3
    assert "1/2" in table[1]
    assert "[10.0.0.2 10.0.1.2]" in table[1]
    assert "[ 9Gbits/sec]" in table[1]
    assert "1/1" in table[2]
    column = table[0].index("CONNECTED/TOTAL")
    assert table[1][column:].startswith("1/2")
    assert table[2][column:].startswith("1/1")
    bandwidth_col = table[0].index("BANDWIDTHs")
    assert table[1][bandwidth_col:] == "[ 9Gbits/sec]"