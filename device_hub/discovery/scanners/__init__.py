"""
Network scanners for device discovery.

Each scanner implements a specific discovery protocol:
- TCP port probe: raw connect attempts against the ADB port
- Network: nmap, probe sweep or ARP-seeded probe for Android TVs
- mDNS: Zeroconf browse for Google Cast receivers
"""

from .base import BaseScanner, DeviceDescriptor, DeviceType
from .mdns import GOOGLECAST_SERVICE_TYPE, MulticastDeviceScanner
from .network import NetworkDeviceScanner
from .probe import PortProbeScanner

__all__ = [
    "BaseScanner",
    "DeviceDescriptor",
    "DeviceType",
    "GOOGLECAST_SERVICE_TYPE",
    "MulticastDeviceScanner",
    "NetworkDeviceScanner",
    "PortProbeScanner",
]
