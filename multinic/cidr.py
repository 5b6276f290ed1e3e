"""IPv4 address arithmetic used to carve subnets into interface, host and pod blocks."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Iterable, Sequence

SHIFT_BYTE_VAL = 256
MAX_VALUE_PER_BYTE = 255
BYTE_SIZE = 8

MASKCHECK = (0, 128, 192, 224, 240, 248, 252, 254, 255)

Address = tuple[int, int, int, int]


@dataclass(frozen=True)
class IPValue:
    """An address string together with its numeric IPv4 value."""

    address: str
    value: int


def mask_index(b: int) -> int:
    """Return the number of leading one bits of a mask byte, or -1 if it is not a mask byte."""
    try:
        return MASKCHECK.index(b & 0xFF)
    except ValueError:
        return -1


def _parse_int(text: str) -> int:
    try:
        return int(text, 10)
    except ValueError:
        return 0


def _addr_to_value(address: str) -> int:
    total = 0
    for part in address.split("."):
        total = total * SHIFT_BYTE_VAL + _parse_int(part)
    return total


def value_to_addr(value: int) -> Address:
    """Convert a numeric IPv4 value into its four address bytes."""
    octets = []
    for _ in range(4):
        octets.append(value % SHIFT_BYTE_VAL)
        value //= SHIFT_BYTE_VAL
    return tuple(reversed(octets))  # type: ignore[return-value]


def bytes_to_str(ip: Sequence[int]) -> str:
    """Format four address bytes in dotted-decimal notation."""
    return ".".join(str(octet & 0xFF) for octet in ip[:4])


def _value_to_addr_str(value: int) -> str:
    return bytes_to_str(value_to_addr(value))


def get_ip_value(address: str) -> IPValue:
    """Return the numeric value of an address, ignoring any prefix length."""
    ip = address.split("/")[0]
    return IPValue(address=address, value=_addr_to_value(ip))


def sort_address(addresses: Iterable[str]) -> list[IPValue]:
    """Sort addresses by numeric value, keeping the input order of equal values."""
    return sorted((get_ip_value(address) for address in addresses), key=lambda v: v.value)


def _parse_network(cidr: str) -> ipaddress.IPv4Network:
    return ipaddress.IPv4Network(cidr, strict=False)


def get_min_max_value(subnet: str) -> tuple[int, int]:
    """Return the lowest and highest numeric address values of a subnet."""
    network = _parse_network(subnet)
    base_ip = network.network_address.packed
    mask = network.netmask.packed
    min_value = 0
    max_value = 0
    for base, value in zip(base_ip, mask):
        if value == 255:
            max_value = max_value * SHIFT_BYTE_VAL + base
            min_value = min_value * SHIFT_BYTE_VAL + base
        elif value == 0:
            max_value = max_value * SHIFT_BYTE_VAL + MAX_VALUE_PER_BYTE
            min_value = min_value * SHIFT_BYTE_VAL
        else:
            fill_up = 255 - MASKCHECK[mask_index(value)]
            max_value = max_value * SHIFT_BYTE_VAL + base + fill_up
            min_value = min_value * SHIFT_BYTE_VAL + base
    return min_value, max_value


def get_previous_address(last_address: str) -> str:
    """Return the address one below the given one."""
    return _value_to_addr_str(get_ip_value(last_address).value - 1)


def get_address_by_index(cidr: str, index: int) -> str:
    """Return the address at offset ``index`` from the start address of ``cidr``."""
    start_ip = cidr.split("/")[0]
    return _value_to_addr_str(get_ip_value(start_ip).value + index)


class CIDRCompute:
    """Computes interface, host and pod blocks inside a base CIDR."""

    @staticmethod
    def _append_mask(base_mask: Sequence[int], block: int) -> Address:
        remain = block
        output = []
        for value in base_mask:
            if value & 0xFF == 255 or remain == 0:
                output.append(value)
                continue
            m_index = mask_index(value)
            addable = BYTE_SIZE - m_index
            if remain > addable:
                remain -= addable
                output.append(255)
            else:
                output.append(MASKCHECK[m_index + remain])
                remain = 0
        return tuple(output)  # type: ignore[return-value]

    @staticmethod
    def _add_address(
        base_address: Sequence[int], mask: Sequence[int], block: int, add_value: int
    ) -> Address:
        max_value = 2**block - 1
        if add_value > max_value:
            raise ValueError(f"InvalidRequest: {max_value} > {add_value}")

        value_in_binary = format(add_value, "b").rjust(block, "0")

        output = []
        for base, value in zip(base_address, mask):
            if value & 0xFF == 255 or not value_in_binary:
                output.append(base)
                continue
            m_index = mask_index(value)
            addable = BYTE_SIZE - m_index
            if block > addable:
                block -= addable
                target = value_in_binary[:addable]
                value_in_binary = value_in_binary[addable:]
            else:
                target = value_in_binary
                value_in_binary = ""
            target = ("0" * m_index + target).ljust(BYTE_SIZE, "0")
            output.append((base + int(target, 2)) & 0xFF)

        new_masked = [o & m for o, m in zip(output, mask)]
        base_masked = [b & m for b, m in zip(base_address, mask)]
        if new_masked != base_masked:
            raise ValueError("InvalidRequest: out of mask")
        return tuple(output)  # type: ignore[return-value]

    def check_if_tabu_index(
        self, base_cidr: str, index: int, blocksize: int, excludes: Iterable[str]
    ) -> bool:
        """Tell whether the block at ``index`` falls inside any excluded CIDR."""
        base_block = _parse_int(base_cidr.split("/")[1])
        for exclude in excludes:
            parts = exclude.split("/")
            if len(parts) < 2:
                continue
            exclude_block = _parse_int(parts[1])
            if exclude_block > base_block + blocksize:
                continue
            exclude_net = _parse_network(exclude)
            try:
                net_in_byte = self.compute_net(base_cidr, index, blocksize)
            except ValueError:
                net_in_byte = (0, 0, 0, 0)
            if ipaddress.IPv4Address(bytes_to_str(net_in_byte)) in exclude_net:
                return True
        return False

    def find_available_index(
        self, indexes: Sequence[int], left_index: int, start_index: int
    ) -> int:
        """Find the first unused index in a sorted list of allocated indexes, or -1."""
        if not indexes:
            return -1
        if indexes[-1] - left_index == len(indexes) - 1 + start_index:
            return -1
        if indexes[0] != left_index + start_index:
            return left_index + start_index
        mid = len(indexes) // 2
        left_result = self.find_available_index(indexes[:mid], left_index, start_index)
        if left_result != -1:
            return left_result
        return self.find_available_index(indexes[mid:], left_index + mid, start_index)

    def compute_net(self, base_cidr: str, index: int, blocksize: int) -> Address:
        """Return the start address of block ``index`` of size ``blocksize`` bits."""
        network = _parse_network(base_cidr)
        start_ip = ipaddress.IPv4Address(base_cidr.split("/")[0]).packed
        mask = network.netmask.packed
        interface_mask = self._append_mask(mask, blocksize)
        base_ip = tuple(a & m for a, m in zip(start_ip, interface_mask))
        return self._add_address(base_ip, mask, blocksize, index)

    def get_ipvlan_subnet(
        self, interface_node_cidr: Sequence[int], subnet: str, interface_block: int
    ) -> str:
        """Return the interface-level subnet that contains the given address."""
        base_block = _parse_int(subnet.split("/")[1])
        mask = _parse_network(subnet).netmask.packed
        interface_mask = self._append_mask(mask, interface_block)
        masked = [a & m for a, m in zip(interface_node_cidr, interface_mask)]
        return f"{bytes_to_str(masked)}/{base_block + interface_block}"

    def get_pod_subnet(
        self,
        interface_node_cidr: Sequence[int],
        subnet: str,
        interface_block: int,
        node_block: int,
    ) -> str:
        """Return the pod CIDR string for a host block address."""
        base_block = _parse_int(subnet.split("/")[1])
        block_size = base_block + interface_block + node_block
        return f"{bytes_to_str(interface_node_cidr)}/{block_size}"

    def get_cidr_from_byte(
        self, cidr_in_byte: Sequence[int], subnet: str, blocksize: int
    ) -> str:
        """Return a CIDR string for an address with the subnet prefix extended by ``blocksize``."""
        base_block = _parse_int(subnet.split("/")[1])
        return f"{bytes_to_str(cidr_in_byte)}/{base_block + blocksize}"

    def get_index_in_range(self, pod_cidr: str, pod_ip_address: str) -> tuple[bool, int]:
        """Return whether the address lies in the pod CIDR and its offset from the start."""
        pod_net = _parse_network(pod_cidr)
        start_ip = ipaddress.IPv4Address(pod_cidr.split("/")[0])
        try:
            pod_ip = ipaddress.IPv4Address(pod_ip_address)
        except ValueError:
            return False, -1
        if pod_ip not in pod_net:
            return False, -1
        cidr_values = str(start_ip).split(".")
        pod_values = pod_ip_address.split(".")
        pod_index = 0
        for position, (pod_value, cidr_value) in enumerate(zip(pod_values, cidr_values)):
            if pod_value == cidr_value:
                continue
            diff = _parse_int(pod_value) - _parse_int(cidr_value)
            pod_index += diff * SHIFT_BYTE_VAL ** (3 - position)
        return True, pod_index