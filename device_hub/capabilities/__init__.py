"""
Connected-device types and registry.
"""

from .protocols import DEVICE_CAPABILITIES, ActionResult, ConnectedDevice
from .registry import ConnectedDeviceRegistry

__all__ = [
    "DEVICE_CAPABILITIES",
    "ActionResult",
    "ConnectedDevice",
    "ConnectedDeviceRegistry",
]
