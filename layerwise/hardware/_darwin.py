"""macOS CPU detection via sysctl."""

from __future__ import annotations

import logging
import platform
import sys

from ._base import CPUDetector, run_probe, vendor_from_brand
from ._types import CPUInfo

logger = logging.getLogger(__name__)


class DarwinDetector(CPUDetector):
    @property
    def name(self) -> str:
        return "darwin"

    def check_availability(self) -> bool:
        return sys.platform == "darwin"

    def detect(self) -> list[CPUInfo]:
        perf_cores = _sysctl_int("hw.perflevel0.physicalcpu")
        efficiency_cores = _sysctl_int("hw.perflevel1.physicalcpu")
        logical = _sysctl_int("machdep.cpu.thread_count") or _sysctl_int(
            "hw.logicalcpu"
        )
        brand = _sysctl("machdep.cpu.brand_string") or ""
        freq = _sysctl_int("hw.cpufrequency_max") or _sysctl_int("hw.cpufrequency")
        arch = platform.machine()

        if perf_cores is None or efficiency_cores is None:
            # Pre-perflevel macOS or Intel Mac: no hybrid topology exposed
            core_count = _sysctl_int("hw.physicalcpu") or perf_cores or 0
            efficiency_cores = 0
        else:
            core_count = perf_cores + efficiency_cores

        if not core_count and not logical:
            raise RuntimeError("sysctl returned no core counts")

        threads = logical or core_count
        if not core_count:
            core_count = threads

        if "Intel" in brand or "AMD" in brand:
            vendor = vendor_from_brand(brand)
        else:
            vendor = "Apple"

        return [
            CPUInfo(
                id="0",
                vendor_id=vendor,
                model_name=brand or f"{vendor} {arch.upper()}",
                core_count=core_count,
                efficiency_core_count=efficiency_cores,
                thread_count=threads,
                clock_speed_hz=freq or 0,
                architecture=arch,
            )
        ]


def _sysctl(key: str) -> str | None:
    return run_probe(["sysctl", "-n", key])


def _sysctl_int(key: str) -> int | None:
    value = _sysctl(key)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
