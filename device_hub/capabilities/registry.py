"""
Registry of currently connected devices.

Owned by a single orchestrator; nothing else mutates it.
"""

import logging
from typing import Iterator, Optional

from ..discovery.scanners.base import DeviceType
from .protocols import ConnectedDevice

logger = logging.getLogger("device_hub.capabilities.registry")


class ConnectedDeviceRegistry:
    """
    In-memory table of connected devices keyed by id.

    Supports:
    - Insert or replace by id
    - Lookup by id or type
    - Removal of one or all entries
    """

    def __init__(self) -> None:
        self._devices: dict[str, ConnectedDevice] = {}

    def add(self, device: ConnectedDevice) -> None:
        """Register a device, replacing any entry with the same id."""
        if device.id in self._devices:
            logger.warning("Replacing connected device: %s", device.id)
        self._devices[device.id] = device
        logger.info("Registered device: %s (%s)", device.id, device.type.value)

    def get(self, device_id: str) -> Optional[ConnectedDevice]:
        return self._devices.get(device_id)

    def list_all(self) -> list[ConnectedDevice]:
        """Return all connected devices."""
        return list(self._devices.values())

    def list_by_type(self, device_type: DeviceType) -> list[ConnectedDevice]:
        """Return connected devices of a specific type."""
        return [d for d in self._devices.values() if d.type == device_type]

    def remove(self, device_id: str) -> bool:
        """Remove a device from the registry."""
        if device_id in self._devices:
            del self._devices[device_id]
            logger.info("Unregistered device: %s", device_id)
            return True
        return False

    def clear(self) -> int:
        """Remove all devices and return how many there were."""
        count = len(self._devices)
        self._devices.clear()
        logger.info("Cleared %d connected devices", count)
        return count

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices

    def __iter__(self) -> Iterator[ConnectedDevice]:
        return iter(list(self._devices.values()))
