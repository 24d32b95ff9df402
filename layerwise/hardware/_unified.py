"""Unified hardware detector with a process-wide cache."""

from __future__ import annotations

import logging
import os
import threading

from ._base import get_detector_registry
from ._types import CPUInfo, Platform, SystemInfo

logger = logging.getLogger(__name__)


class UnifiedDetector:
    """Select the platform strategy once and cache the resulting snapshot.

    CPU topology does not change while the process runs, so the first
    successful detection is kept until ``force=True``.
    """

    def __init__(self, platform: Platform | None = None) -> None:
        self._platform = platform or Platform.current()
        self._cache: SystemInfo | None = None
        self._lock = threading.Lock()

    def detect(self, force: bool = False) -> SystemInfo:
        """Detect CPU topology and total memory. Never raises."""
        cached = self._cache
        if cached is not None and not force:
            return cached

        with self._lock:
            if self._cache is not None and not force:
                return self._cache
            self._cache = self._probe()
            return self._cache

    def _probe(self) -> SystemInfo:
        diagnostics: list[str] = []
        registry = get_detector_registry()
        strategy = registry.select(self._platform)
        fallback = registry.select(Platform.UNKNOWN)

        cpus = _run_strategy(strategy, diagnostics)
        if not cpus and strategy is not fallback:
            diagnostics.append(f"{strategy.name}: falling back to {fallback.name}")
            cpus = _run_strategy(fallback, diagnostics)
        if not cpus:
            threads = os.cpu_count() or 1
            diagnostics.append("all strategies failed: using os.cpu_count()")
            cpus = [
                CPUInfo(
                    id="0",
                    vendor_id="Unknown",
                    model_name="Unknown CPU",
                    core_count=threads,
                    thread_count=threads,
                )
            ]

        if diagnostics:
            logger.debug("cpu detection diagnostics: %s", diagnostics)

        return SystemInfo(
            platform=self._platform,
            cpus=tuple(cpus),
            total_memory=_total_memory(diagnostics),
            environment="native",
            diagnostics=tuple(diagnostics),
        )


def _run_strategy(strategy, diagnostics: list[str]) -> list[CPUInfo]:
    try:
        if not strategy.check_availability():
            diagnostics.append(f"{strategy.name}: not available")
            return []
        cpus = strategy.detect()
    except Exception as exc:
        diagnostics.append(f"{strategy.name}: detection failed: {exc}")
        return []
    if not cpus:
        diagnostics.append(f"{strategy.name}: no CPUs reported")
    return list(cpus)


def _total_memory(diagnostics: list[str]) -> int:
    try:
        import psutil

        return int(psutil.virtual_memory().total)
    except Exception as exc:
        diagnostics.append(f"memory: psutil failed: {exc}")
        return 0


_detector: UnifiedDetector | None = None
_detector_lock = threading.Lock()


def detect_system(force: bool = False) -> SystemInfo:
    """One-liner API: detect CPU topology and memory, cached per process."""
    global _detector
    if _detector is None:
        with _detector_lock:
            if _detector is None:
                _detector = UnifiedDetector()
    return _detector.detect(force=force)


def reset_system_cache() -> None:
    global _detector
    with _detector_lock:
        _detector = None
