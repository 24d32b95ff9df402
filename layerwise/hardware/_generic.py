"""Generic CPU detection using psutil and platform."""

from __future__ import annotations

import logging
import os
import platform

from ._base import CPUDetector
from ._types import CPUInfo

logger = logging.getLogger(__name__)


class GenericDetector(CPUDetector):
    """Logical-CPU count only; SMT siblings cannot be told apart here."""

    @property
    def name(self) -> str:
        return "generic"

    def check_availability(self) -> bool:
        return True

    def detect(self) -> list[CPUInfo]:
        import psutil

        threads = psutil.cpu_count(logical=True) or os.cpu_count() or 1
        freq_hz = 0
        try:
            freq = psutil.cpu_freq()
            if freq:
                freq_hz = int((freq.max or freq.current) * 1_000_000)
        except Exception as exc:
            logger.debug("generic: cpu_freq unavailable: %s", exc)

        return [
            CPUInfo(
                id="0",
                vendor_id="Unknown",
                model_name=platform.processor() or platform.machine() or "Unknown CPU",
                core_count=threads,
                efficiency_core_count=0,
                thread_count=threads,
                clock_speed_hz=freq_hz,
                architecture=platform.machine(),
            )
        ]
