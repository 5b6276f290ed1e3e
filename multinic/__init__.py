"""Multi-NIC CNI helpers: CIDR arithmetic, an IPAM plugin, device configs and connection-check tools."""

__version__ = "1.2.6"