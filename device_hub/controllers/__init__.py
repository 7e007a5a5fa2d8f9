"""
Device controllers.

- Bluetooth: OS peripheral control through platform tools
- Remote shell: Android TV control over ADB
- Outcomes: rules that read success out of tool output
"""

from .bluetooth import (
    BluetoothConnectResult,
    BluetoothPeripheralController,
    BluetoothScanResult,
)
from .outcomes import (
    ExactOutputClassifier,
    OutcomeClassifier,
    PatternClassifier,
)
from .remote_shell import (
    RemoteShellDeviceController,
    RemoteShellResult,
    RemoteShellSession,
)

__all__ = [
    # Bluetooth
    "BluetoothPeripheralController",
    "BluetoothScanResult",
    "BluetoothConnectResult",
    # Remote shell
    "RemoteShellDeviceController",
    "RemoteShellResult",
    "RemoteShellSession",
    # Outcomes
    "OutcomeClassifier",
    "PatternClassifier",
    "ExactOutputClassifier",
]
