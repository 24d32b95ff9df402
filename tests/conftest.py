from __future__ import annotations

import pytest

from layerwise.config import PlannerSettings
from layerwise.hardware import reset_system_cache
from layerwise.hardware._base import reset_detector_registry


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Keep tests away from the real ~/.layerwise and LAYERWISE_* variables."""
    for name in PlannerSettings.__dataclass_fields__:
        monkeypatch.delenv("LAYERWISE_" + name.upper(), raising=False)
    monkeypatch.setenv("LAYERWISE_CONFIG_DIR", str(tmp_path / ".layerwise"))
    reset_detector_registry()
    reset_system_cache()
    yield
    reset_detector_registry()
    reset_system_cache()
