"""Shared dataclasses for hardware detection."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum


class Platform(str, Enum):
    LINUX = "linux"
    DARWIN = "darwin"
    WINDOWS = "windows"
    UNKNOWN = "unknown"

    @classmethod
    def current(cls) -> Platform:
        """Map ``sys.platform`` onto the closed platform set."""
        if sys.platform.startswith("linux"):
            return cls.LINUX
        if sys.platform == "darwin":
            return cls.DARWIN
        if sys.platform in ("win32", "cygwin"):
            return cls.WINDOWS
        return cls.UNKNOWN


@dataclass(frozen=True)
class CPUInfo:
    id: str
    vendor_id: str
    model_name: str
    core_count: int
    efficiency_core_count: int = 0
    thread_count: int = 0
    clock_speed_hz: int = 0
    architecture: str = ""  # "x86_64", "arm64"

    def __post_init__(self) -> None:
        # Keep efficiency_core_count within [0, core_count]
        cores = max(self.core_count, 0)
        efficiency = min(max(self.efficiency_core_count, 0), cores)
        object.__setattr__(self, "core_count", cores)
        object.__setattr__(self, "efficiency_core_count", efficiency)
        object.__setattr__(self, "thread_count", max(self.thread_count, 0))

    @property
    def performance_core_count(self) -> int:
        return self.core_count - self.efficiency_core_count


@dataclass(frozen=True)
class SystemInfo:
    platform: Platform
    cpus: tuple[CPUInfo, ...]
    total_memory: int  # bytes
    environment: str = "native"
    diagnostics: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_cores(self) -> int:
        return sum(c.core_count for c in self.cpus)

    @property
    def total_threads(self) -> int:
        return sum(c.thread_count for c in self.cpus)

    @property
    def total_efficiency_cores(self) -> int:
        return sum(c.efficiency_core_count for c in self.cpus)

    @property
    def performance_cores(self) -> int:
        return self.total_cores - self.total_efficiency_cores
