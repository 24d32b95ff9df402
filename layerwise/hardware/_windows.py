"""Windows CPU detection via wmic CSV output."""

from __future__ import annotations

import csv
import io
import logging
import platform
import sys

from ._base import CPUDetector, run_probe
from ._types import CPUInfo

logger = logging.getLogger(__name__)

_WMIC_QUERY = [
    "wmic",
    "cpu",
    "get",
    "Manufacturer,MaxClockSpeed,Name,NumberOfCores,NumberOfLogicalProcessors",
    "/format:csv",
]


class WindowsDetector(CPUDetector):
    @property
    def name(self) -> str:
        return "windows"

    def check_availability(self) -> bool:
        return sys.platform == "win32"

    def detect(self) -> list[CPUInfo]:
        output = run_probe(_WMIC_QUERY, timeout=10)
        if output is None:
            raise RuntimeError("wmic returned no output")
        cpus = parse_wmic_csv(output, platform.machine())
        if not cpus:
            raise RuntimeError("wmic output contained no CPU rows")
        return cpus


def parse_wmic_csv(output: str, architecture: str) -> list[CPUInfo]:
    """Parse ``wmic cpu get ... /format:csv`` into one record per socket.

    Hybrid (P/E) topology is not exposed here, so efficiency cores are 0.
    """
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    if not lines:
        return []

    reader = csv.DictReader(io.StringIO("\n".join(lines)))
    cpus: list[CPUInfo] = []
    for idx, row in enumerate(reader):
        cores = _to_int(row.get("NumberOfCores"))
        threads = _to_int(row.get("NumberOfLogicalProcessors"))
        if not cores and not threads:
            continue
        mhz = _to_int(row.get("MaxClockSpeed"))
        cpus.append(
            CPUInfo(
                id=str(idx),
                vendor_id=(row.get("Manufacturer") or "").strip() or "Unknown",
                model_name=(row.get("Name") or "").strip() or "Unknown CPU",
                core_count=cores or threads,
                efficiency_core_count=0,
                thread_count=threads or cores,
                clock_speed_hz=mhz * 1_000_000,
                architecture=architecture,
            )
        )
    return cpus


def _to_int(value: str | None) -> int:
    try:
        return int((value or "").strip())
    except ValueError:
        return 0
