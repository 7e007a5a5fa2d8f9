"""
Local subnet resolution from the host's network interfaces.
"""

import ipaddress
import logging
import socket
from dataclasses import dataclass
from typing import Any, Callable, Optional

import psutil

logger = logging.getLogger("device_hub.discovery.subnet")


@dataclass(frozen=True)
class SubnetInfo:
    """IPv4 address of the scanning host and the subnet it sits on."""

    address: str
    netmask: str
    subnet: str  # address AND netmask, dotted quad

    @property
    def prefix(self) -> str:
        """First three octets of the subnet, e.g. '192.168.1'."""
        return self.subnet.rsplit(".", 1)[0]


def compute_subnet(address: str, netmask: str) -> str:
    """Bitwise AND of an IPv4 address and netmask, as a dotted quad."""
    ip = int(ipaddress.IPv4Address(address))
    mask = int(ipaddress.IPv4Address(netmask))
    return str(ipaddress.IPv4Address(ip & mask))


class SubnetResolver:
    """Picks the first non-loopback IPv4 interface and derives its subnet."""

    def __init__(self, interfaces_provider: Optional[Callable[[], dict[str, list[Any]]]] = None):
        self._interfaces_provider = interfaces_provider or psutil.net_if_addrs

    def resolve(self) -> Optional[SubnetInfo]:
        """
        Resolve the local subnet.

        Returns:
            SubnetInfo, or None when no qualifying interface exists
        """
        try:
            interfaces = self._interfaces_provider()
        except Exception as e:
            logger.error("Could not enumerate network interfaces: %s", e)
            return None

        for name, addrs in interfaces.items():
            for addr in addrs:
                if addr.family != socket.AF_INET or not addr.netmask:
                    continue
                try:
                    if ipaddress.IPv4Address(addr.address).is_loopback:
                        continue
                    subnet = compute_subnet(addr.address, addr.netmask)
                except ValueError:
                    logger.debug("Skipping %s: unparseable address %s", name, addr.address)
                    continue

                logger.debug("Using interface %s (%s/%s)", name, addr.address, addr.netmask)
                return SubnetInfo(address=addr.address, netmask=addr.netmask, subnet=subnet)

        logger.warning("No non-loopback IPv4 interface found")
        return None
