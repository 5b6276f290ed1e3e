import pytest

from multinic.concheck_cidr import (
    CIDREntry,
    CIDRSpec,
    HostInterfaceInfo,
    get_name,
    get_pod_cidrs_map,
    parse_cidr_spec,
)


def _resource():
    return {
        "apiVersion": "multinic.fms.io/v1",
        "kind": "CIDR",
        "metadata": {"name": "multi-nic-sample"},
        "spec": {
            "cidr": [
                {
                    "netAddress": "10.244.0.0/24",
                    "interfaceIndex": 0,
                    "vlanCIDR": "192.168.0.0/18",
                    "hosts": [
                        {
                            "hostIndex": 0,
                            "hostName": "worker0",
                            "interfaceName": "eth0",
                            "hostIP": "10.244.0.1",
                            "podCIDR": "192.168.0.0/26",
                        },
                        {
                            "hostIndex": 1,
                            "hostName": "worker1",
                            "interfaceName": "eth0",
                            "hostIP": "10.244.0.2",
                            "podCIDR": "192.168.0.64/26",
                        },
                    ],
                },
                {
                    "netAddress": "10.244.1.0/24",
                    "interfaceIndex": 1,
                    "vlanCIDR": "192.168.64.0/18",
                    "hosts": [
                        {
                            "hostIndex": 0,
                            "hostName": "worker0",
                            "interfaceName": "eth1",
                            "hostIP": "10.244.1.1",
                            "podCIDR": "192.168.64.0/26",
                        }
                    ],
                },
            ]
        },
    }


def test_parse_cidr_spec_reads_entries():
    spec = parse_cidr_spec(_resource())
    assert len(spec.cidrs) == 2
    first = spec.cidrs[0]
    assert first.net_address == "10.244.0.0/24"
    assert first.vlan_cidr == "192.168.0.0/18"
    assert first.hosts[1] == HostInterfaceInfo(
        host_index=1,
        host_name="worker1",
        interface_name="eth0",
        host_ip="10.244.0.2",
        pod_cidr="192.168.0.64/26",
    )
    assert spec.cidrs[1].interface_index == 1


def test_parse_cidr_spec_missing_fields_default():
    spec = parse_cidr_spec({"spec": {"cidr": [{"netAddress": "10.0.0.0/24"}]}})
    assert spec == CIDRSpec(cidrs=[CIDREntry(net_address="10.0.0.0/24")])


def test_parse_cidr_spec_without_spec():
    with pytest.raises(ValueError):
        parse_cidr_spec({"metadata": {"name": "x"}})


def test_parse_cidr_spec_wrong_type():
    with pytest.raises(ValueError):
        parse_cidr_spec({"spec": {"cidr": [{"interfaceIndex": "zero"}]}})


def test_get_name():
    assert get_name(_resource()) == "multi-nic-sample"
    with pytest.raises(ValueError):
        get_name({"spec": {}})


def test_get_pod_cidrs_map_groups_by_host():
    pod_cidrs = get_pod_cidrs_map(parse_cidr_spec(_resource()))
    assert pod_cidrs == {
        "worker0": ["192.168.0.0/26", "192.168.64.0/26"],
        "worker1": ["192.168.0.64/26"],
    }


def test_get_pod_cidrs_map_empty():
    assert get_pod_cidrs_map(CIDRSpec()) == {}


def test_pod_cidrs_count_matches_hosts():
    spec = parse_cidr_spec(_resource())
    pod_cidrs = get_pod_cidrs_map(spec)
    assert sum(len(v) for v in pod_cidrs.values()) == sum(len(e.hosts) for e in spec.cidrs)