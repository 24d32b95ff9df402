"""Abstract CPU detection strategy and per-platform registry."""

from __future__ import annotations

import abc
import logging
import subprocess

from ._types import CPUInfo, Platform

logger = logging.getLogger(__name__)

_PROBE_TIMEOUT = 5


class CPUDetector(abc.ABC):
    """Base class for platform CPU detection strategies."""

    @property
    @abc.abstractmethod
    def name(self) -> str: ...

    @abc.abstractmethod
    def check_availability(self) -> bool: ...

    @abc.abstractmethod
    def detect(self) -> list[CPUInfo]:
        """Return one ``CPUInfo`` per physical package.

        May raise; the unified detector routes failures to the generic
        strategy.
        """


class DetectorRegistry:
    """Maps a platform tag to the strategy that knows how to probe it."""

    def __init__(self) -> None:
        self._detectors: dict[Platform, CPUDetector] = {}

    def register(self, platform: Platform, detector: CPUDetector) -> None:
        if platform in self._detectors:
            return
        self._detectors[platform] = detector

    @property
    def detectors(self) -> dict[Platform, CPUDetector]:
        return dict(self._detectors)

    def select(self, platform: Platform) -> CPUDetector:
        """Strategy for ``platform``; unknown platforms get the fallback."""
        detector = self._detectors.get(platform)
        if detector is None:
            detector = self._detectors[Platform.UNKNOWN]
        return detector


_registry: DetectorRegistry | None = None


def get_detector_registry() -> DetectorRegistry:
    global _registry
    if _registry is None:
        _registry = DetectorRegistry()
        _auto_register(_registry)
    return _registry


def reset_detector_registry() -> None:
    global _registry
    _registry = None


def _auto_register(registry: DetectorRegistry) -> None:
    from ._darwin import DarwinDetector
    from ._generic import GenericDetector
    from ._linux import LinuxDetector
    from ._windows import WindowsDetector

    registry.register(Platform.LINUX, LinuxDetector())
    registry.register(Platform.DARWIN, DarwinDetector())
    registry.register(Platform.WINDOWS, WindowsDetector())
    registry.register(Platform.UNKNOWN, GenericDetector())


def run_probe(args: list[str], timeout: float = _PROBE_TIMEOUT) -> str | None:
    """Run a read-only probe command, returning stripped stdout or None."""
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (FileNotFoundError, PermissionError, subprocess.TimeoutExpired) as exc:
        logger.debug("probe %s failed: %s", args[0], exc)
        return None
    if result.returncode != 0:
        return None
    out = result.stdout.strip()
    return out or None


def vendor_from_brand(brand: str, default: str = "Unknown") -> str:
    """Guess the CPU vendor from a brand/model string."""
    if "Intel" in brand:
        return "Intel"
    if "AMD" in brand:
        return "AMD"
    if "Apple" in brand:
        return "Apple"
    if "ARM" in brand:
        return "ARM"
    return default
