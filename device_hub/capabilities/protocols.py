"""
Shared result and registry types for device control.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from ..discovery.scanners.base import DeviceType

# Actions each device type accepts once it is in the registry
DEVICE_CAPABILITIES: dict[DeviceType, frozenset[str]] = {
    DeviceType.ANDROID_TV: frozenset({"launch-app", "volume-control", "power-control"}),
    DeviceType.CHROMECAST: frozenset({"cast-video", "cast-audio", "volume-control"}),
    DeviceType.PROJECTOR: frozenset({"power-control", "input-selection", "volume-control"}),
    DeviceType.BLUETOOTH: frozenset({"power-control", "audio-output"}),
}


@dataclass
class ActionResult:
    """Result of executing an action on a device."""
    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "data": self.data,
            "error": self.error,
        }


@dataclass
class ConnectedDevice:
    """Entry in the orchestrator's live registry."""
    id: str
    type: DeviceType
    address: str
    status: str = "connected"
    capabilities: frozenset[str] = frozenset()
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    name: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)  # e.g. remote shell id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "address": self.address,
            "status": self.status,
            "capabilities": sorted(self.capabilities),
            "connectedAt": self.connected_at.isoformat(),
            "metadata": self.metadata,
        }
