"""Hardware detection subsystem for layerwise.

Probes CPU topology and total memory once per process. GPU snapshots are
supplied by the caller to the planner and are not probed here.
"""

from __future__ import annotations

from ._base import CPUDetector
from ._types import CPUInfo, Platform, SystemInfo
from ._unified import UnifiedDetector, detect_system, reset_system_cache

__all__ = [
    "CPUDetector",
    "CPUInfo",
    "Platform",
    "SystemInfo",
    "UnifiedDetector",
    "detect_system",
    "reset_system_cache",
]
