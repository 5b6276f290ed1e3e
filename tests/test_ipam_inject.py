import ipaddress
import json

import pytest

from multinic.ipam_inject import (
    IPConfig,
    get_host_ip_config,
    get_pod_info,
    inject_master,
    inject_multi_nic_ipam,
    inject_single_nic_ipam,
    replace_empty_ipam,
    replace_multi_nic_ipam,
)


def _config(address):
    return IPConfig(address=ipaddress.ip_interface(address))


def test_get_pod_info_extracts_name_and_namespace():
    args = "IgnoreUnknown=1;K8S_POD_NAMESPACE=default;K8S_POD_NAME=pod0"
    assert get_pod_info(args) == ("pod0", "default")


def test_get_pod_info_missing_values_are_empty():
    assert get_pod_info("IgnoreUnknown=1") == ("", "")


def test_replace_multi_nic_ipam_with_address():
    conf = b'{"ipam":{},"name":"net1-0"}'
    result = replace_multi_nic_ipam(conf, _config("192.168.0.1/24"))
    assert result == (
        b'{"ipam":{"type":"static","addresses":[{"address":"192.168.0.1/24"}]},"name":"net1-0"}'
    )


def test_replace_multi_nic_ipam_without_address():
    result = replace_multi_nic_ipam(b'{"ipam":{}}', None)
    assert result == b'{"ipam":{"type":"static","addresses":[]}}'


def test_inject_multi_nic_ipam_picks_index():
    configs = [_config("192.168.0.65/24"), _config("192.168.1.66/24")]
    result = json.loads(inject_multi_nic_ipam(b'{"ipam":{}}', configs, 1))
    assert result["ipam"]["addresses"] == [{"address": "192.168.1.66/24"}]


def test_inject_multi_nic_ipam_out_of_range_is_empty():
    configs = [_config("192.168.0.65/24")]
    result = json.loads(inject_multi_nic_ipam(b'{"ipam":{}}', configs, 3))
    assert result["ipam"] == {"type": "static", "addresses": []}


def test_replace_empty_ipam():
    assert replace_empty_ipam('{"ipam":{}}') == b'{"ipam":{"type":"static","addresses":[]}}'


def test_replace_leaves_filled_ipam_alone():
    conf = b'{"ipam":{"type":"dhcp"}}'
    assert replace_empty_ipam(conf) == conf


def test_inject_single_nic_ipam_copies_section():
    ipam = {"type": "static", "addresses": [{"address": "192.168.1.1/24"}]}
    multi = json.dumps({"ipam": ipam, "name": "multi-nic-sample"}).encode()
    result = json.loads(inject_single_nic_ipam(b'{"ipam":{},"master":"eth0"}', multi))
    assert result["ipam"] == ipam
    assert result["master"] == "eth0"


def test_inject_single_nic_ipam_without_section_gives_null():
    result = inject_single_nic_ipam(b'{"ipam":{}}', b'{"name":"x"}')
    assert json.loads(result)["ipam"] is None


def test_inject_master_replaces_pool_and_keeps_other_keys():
    conf = json.dumps(
        {"name": "multi-nic-sample", "masterNets": ["10.244.0.0/24", "10.244.1.0/24", "10.244.2.0/24"]}
    )
    result = json.loads(
        inject_master(conf, ["10.244.0.0/24"], ["eth0"], ["0000:00:00.0"])
    )
    assert result["name"] == "multi-nic-sample"
    assert result["masterNets"] == ["10.244.0.0/24"]
    assert result["masters"] == ["eth0"]
    assert result["deviceIDs"] == ["0000:00:00.0"]


def test_inject_master_sorts_keys_and_marks_missing_as_null():
    result = inject_master(b'{"z":1,"a":2}', None, ["eth0"], None)
    text = result.decode()
    assert text.index('"a"') < text.index('"z"')
    assert json.loads(text)["deviceIDs"] is None


def test_inject_master_rejects_invalid_json():
    with pytest.raises(ValueError):
        inject_master(b"not json", [], [], [])


def test_ip_config_round_trip():
    data = {"interface": 0, "address": "192.168.0.1/24"}
    assert IPConfig.from_dict(data).to_dict() == data


def test_ip_config_rejects_missing_address():
    with pytest.raises(ValueError):
        IPConfig.from_dict({"interface": 0})


def test_get_host_ip_config_unknown_device():
    assert get_host_ip_config(0, "no-such-device-xyz") is None