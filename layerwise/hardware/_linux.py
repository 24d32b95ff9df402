"""Linux CPU detection from /proc/cpuinfo and sysfs cpufreq."""

from __future__ import annotations

import logging
import os
import platform
import sys

from ._base import CPUDetector
from ._types import CPUInfo

logger = logging.getLogger(__name__)

_CPUINFO_PATH = "/proc/cpuinfo"
_SYSFS_CPU_DIR = "/sys/devices/system/cpu"


class LinuxDetector(CPUDetector):
    """Groups logical processors by ``physical id`` into packages.

    Efficiency cores are a clock-speed heuristic: within one package, cores
    whose max frequency sits below ``efficiency_core_mhz`` while at least one
    sibling sits at or above it are counted as efficiency cores. Packages
    with uniform clocks, or with any core lacking sysfs cpufreq data, report
    zero; ``cpu MHz`` is then used only for the reported clock speed.
    """

    def __init__(self, efficiency_core_mhz: float | None = None) -> None:
        self._threshold_mhz = efficiency_core_mhz

    @property
    def name(self) -> str:
        return "linux"

    @property
    def threshold_mhz(self) -> float:
        if self._threshold_mhz is None:
            from ..config import load_settings

            self._threshold_mhz = load_settings().efficiency_core_mhz
        return self._threshold_mhz

    def check_availability(self) -> bool:
        return sys.platform.startswith("linux") and os.path.isfile(_CPUINFO_PATH)

    def detect(self) -> list[CPUInfo]:
        with open(_CPUINFO_PATH) as f:
            entries = parse_cpuinfo(f.read())
        if not entries:
            raise RuntimeError(f"no processor entries in {_CPUINFO_PATH}")
        return build_packages(entries, self.threshold_mhz, platform.machine())


def parse_cpuinfo(content: str) -> list[dict[str, str]]:
    """Split /proc/cpuinfo into one ``key -> value`` dict per logical CPU."""
    entries: list[dict[str, str]] = []
    current: dict[str, str] = {}
    for line in content.splitlines():
        if not line.strip():
            if current:
                entries.append(current)
                current = {}
            continue
        key, sep, value = line.partition(":")
        if not sep:
            continue
        current[key.strip()] = value.strip()
    if current:
        entries.append(current)
    # Trailing blocks without "processor" are ARM summary sections
    return [e for e in entries if "processor" in e]


def build_packages(
    entries: list[dict[str, str]],
    threshold_mhz: float,
    architecture: str,
) -> list[CPUInfo]:
    """Fold logical CPU entries into per-package ``CPUInfo`` records."""
    packages: dict[str, list[dict[str, str]]] = {}
    for entry in entries:
        packages.setdefault(entry.get("physical id", "0"), []).append(entry)

    cpus: list[CPUInfo] = []
    for physical_id, logical in packages.items():
        first = logical[0]
        core_freqs: dict[str, float] = {}
        have_max_freq = True
        for entry in logical:
            core_id = entry.get("core id", entry["processor"])
            mhz = _sysfs_max_freq_mhz(entry["processor"])
            if mhz is None:
                have_max_freq = False
                mhz = _current_mhz(entry)
            core_freqs[core_id] = max(core_freqs.get(core_id, 0.0), mhz)

        if any("core id" in e for e in logical):
            core_count = len(core_freqs)
        else:
            core_count = _to_int(first.get("cpu cores")) or len(logical)

        # Only sysfs max frequencies are comparable across cores
        efficiency = (
            count_efficiency_cores(list(core_freqs.values()), threshold_mhz)
            if have_max_freq
            else 0
        )
        max_mhz = max(core_freqs.values(), default=0.0)

        cpus.append(
            CPUInfo(
                id=physical_id,
                vendor_id=first.get("vendor_id") or first.get("CPU implementer") or "Unknown",
                model_name=first.get("model name")
                or first.get("Processor")
                or first.get("Hardware")
                or "Unknown CPU",
                core_count=core_count,
                efficiency_core_count=efficiency,
                thread_count=len(logical),
                clock_speed_hz=int(max_mhz * 1_000_000),
                architecture=architecture,
            )
        )
    return cpus


def count_efficiency_cores(core_mhz: list[float], threshold_mhz: float) -> int:
    """Cores clocked under the threshold while a sibling clocks above it."""
    known = [mhz for mhz in core_mhz if mhz > 0]
    slow = [mhz for mhz in known if mhz < threshold_mhz]
    if not slow or len(slow) == len(known):
        return 0
    return len(slow)


def _sysfs_max_freq_mhz(processor: str) -> float | None:
    """Per-core max frequency from sysfs cpufreq, or None when not exposed."""
    path = os.path.join(
        _SYSFS_CPU_DIR, f"cpu{processor}", "cpufreq", "cpuinfo_max_freq"
    )
    try:
        with open(path) as f:
            return int(f.read().strip()) / 1000.0  # kHz
    except (OSError, ValueError):
        return None


def _current_mhz(entry: dict[str, str]) -> float:
    try:
        return float(entry.get("cpu MHz", 0.0))
    except ValueError:
        return 0.0


def _to_int(value: str | None) -> int:
    try:
        return int(value) if value is not None else 0
    except ValueError:
        return 0
