"""
Base scanner protocol for device discovery.

All network scanners must implement this interface.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger("device_hub.discovery.scanners.base")


class DeviceType(str, Enum):
    """Classification of controllable devices."""
    BLUETOOTH = "bluetooth"
    ANDROID_TV = "android-tv"
    CHROMECAST = "chromecast"
    PROJECTOR = "projector"
    SMART_HOME = "smart-home"
    MOBILE = "mobile"


@dataclass(frozen=True)
class DeviceDescriptor:
    """Read-only snapshot of a discovered device."""

    # Required fields
    id: str  # Network address, hardware address, or synthesized key
    name: str
    type: DeviceType
    address: str  # IP or hardware address

    # Optional details
    port: Optional[int] = None
    connected: bool = False
    paired: bool = False
    signal: Optional[float] = None  # RSSI or link quality
    extra: dict[str, Any] = field(default_factory=dict)  # model, manufacturer, ...

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "address": self.address,
            "port": self.port,
            "connected": self.connected,
            "paired": self.paired,
            "signal": self.signal,
            **self.extra,
        }


class BaseScanner(ABC):
    """
    Abstract base class for network scanners.

    Scanners detect devices using one discovery protocol and never raise
    past their own boundary: failures yield an empty list.
    """

    @property
    @abstractmethod
    def protocol_name(self) -> str:
        """Name of the discovery protocol (e.g., 'adb-port', 'mdns')."""
        ...

    @abstractmethod
    async def scan(self, timeout: Optional[float] = None) -> list[DeviceDescriptor]:
        """
        Perform a scan and return discovered devices.

        Args:
            timeout: Protocol-specific time bound (seconds), None for default

        Returns:
            List of DeviceDescriptor objects for discovered devices
        """
        ...

    async def is_available(self) -> bool:
        """
        Check if this scanner can run on the current system.

        Override if the scanner has system requirements.
        """
        return True
