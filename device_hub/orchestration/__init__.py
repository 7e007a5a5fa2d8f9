"""
Top-level device orchestration.
"""

from .orchestrator import DeviceOrchestrator, build_orchestrator

__all__ = [
    "DeviceOrchestrator",
    "build_orchestrator",
]
