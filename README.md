# multinic

Building blocks for attaching several host network interfaces to a
Kubernetes pod: subnet and address arithmetic, a CNI IPAM plugin that asks a
node-local daemon for addresses, generation of per-interface configurations
for ipvlan, SR-IOV, host-device and AWS ipvlan plugins, and helpers for an
iperf3-based connection check across nodes.

## The IPAM plugin

The package installs one command:

    multi-nic-ipam

It is meant to be started by the container runtime as a CNI IPAM plugin.
The command is taken from `CNI_COMMAND` (`ADD`, `CHECK`, `DEL` or
`VERSION`), the network configuration is read as JSON on standard input,
and the pod name and namespace are taken from `CNI_ARGS`
(`K8S_POD_NAME=...;K8S_POD_NAMESPACE=...`).

- `ADD` asks the multi-NIC daemon (`localhost:11000` unless `daemonIP` /
  `daemonPort` are set in the `ipam` section) for one address per master
  interface listed in `masters`, and prints the CNI result. When a
  `prevResult` already holds addresses, it is returned unchanged.
- `CHECK` requires a `prevResult` with addresses and, when `subnet` is set,
  checks that every address lies inside it.
- `DEL` asks the daemon on `localhost` to release the pod's addresses; it
  does nothing when `CNI_NETNS` is empty.
- `VERSION` prints the supported CNI versions.

Run without `CNI_COMMAND`, it prints its version banner on standard error.
Failures are printed as a CNI error object (`code`, `msg`) and the command
exits with status 1. Debug output goes as JSON lines to
`/var/log/multi-nic-ipam.log` when that file can be opened.

The same steps are available as functions in `multinic.ipam_plugin`:
`cmd_add`, `cmd_check`, `cmd_del` and `load_ipam_config`, raising
`PluginError` on failure.

## Library use

### CIDR arithmetic

`multinic.cidr` splits a subnet into per-interface and per-host blocks and
locates addresses within them:

```python
from multinic.cidr import CIDRCompute, get_address_by_index, sort_address

compute = CIDRCompute()
compute.get_index_in_range("192.168.0.0/16", "192.168.1.1")   # (True, 257)
compute.get_index_in_range("192.168.0.0/26", "192.168.1.1")   # (False, -1)

get_address_by_index("192.168.0.0/26", 5)                      # "192.168.0.5"
[v.address for v in sort_address(["10.0.0.9/32", "10.0.0.1/32"])]
# ["10.0.0.1/32", "10.0.0.9/32"]
```

`CIDRCompute.compute_net` returns the start address of a block,
`find_available_index` finds the first free index in a sorted list of
allocated indexes, and `check_if_tabu_index` tells whether a block falls
inside one of the excluded CIDRs. `get_min_max_value`,
`get_previous_address` and `value_to_addr` work on numeric address values.

### iptables chain names

```python
from multinic.chains import format_chain_name, format_chain_name_with_prefix

format_chain_name("test", "1234")                         # "CNI-2bbe0c48b91a7d1b8a6753a8"
format_chain_name_with_prefix("test", "1234", "PREFIX-")  # "CNI-PREFIX-2bbe0c48b91a7d1b8"
```

Names are always 28 characters; a prefix that leaves no room raises
`ValueError`. `format_comment` builds a rule comment and `build_string` a
plugin version banner.

### Per-device plugin configurations

`multinic.netconf.parse_net_conf` reads a multi-NIC network configuration
into a `NetConf`; `load_conf` does the same and then asks the daemon which
NICs to use. `multinic.device_conf.load_device_confs` turns a configuration
into one JSON configuration per selected interface for the device type
named in the `plugin` section (`ipvlan`, `sriov`, `host-device` or
`aws-ipvlan`), filling in static IPAM addresses from
`multinic.ipam_inject.IPConfig` values or copying the single-NIC `ipam`
section.

### Daemon client

`multinic.daemon_client` has `select_nics`, `request_ip` and `deallocate`,
which post JSON to the daemon and raise `DaemonError` when it cannot be
reached or answers with nothing usable.

### Other helpers

- `multinic.sysctl.sysctl` reads or writes values under `/proc/sys` (or
  another `root`), accepting dotted or slashed names.
- `multinic.netif` finds interfaces by network address and reads a
  device's IPv4 address.
- `multinic.logger.initialize_logger` sets up the package's JSON-lines
  debug log with size-based rotation.
- `multinic.concheck_cidr` parses CIDR resource objects and groups pod
  CIDRs by host.
- `multinic.iperf` builds the server pod and client job manifests and the
  iperf3 shell commands of the connection check, parses network-status
  annotations and client logs, and prints the result table.

## What this package does not do

- There is no main multi-NIC plugin command: the package builds the
  per-interface configurations, but does not run the ipvlan, SR-IOV,
  host-device or AWS ipvlan plugins, nor create interfaces itself.
- It does not manage iptables chains or conntrack entries; `multinic.chains`
  only produces names and comments.
- The connection check is not run end to end: the package produces
  manifests, commands and reports, but does not talk to a Kubernetes API
  server to create pods or jobs or read their logs.
- There is no AWS integration for assigning addresses to network interfaces.

## Tests

The test suite uses pytest and lives in `tests/`:

    pip install -e ".[test]"
    pytest