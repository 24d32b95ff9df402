"""Tests for layerwise.threads — thread-count planning."""

from __future__ import annotations

import logging

import pytest

from layerwise.hardware import CPUInfo, Platform, SystemInfo
from layerwise.threads import (
    ThreadRecommendation,
    WorkloadProfile,
    analyze_system,
    optimal_thread_count,
    thread_recommendation,
    validate_thread_count,
)


def _cpu(cores: int, efficiency: int = 0, threads: int | None = None, id: str = "0"):
    return CPUInfo(
        id=id,
        vendor_id="GenuineIntel",
        model_name="Test CPU",
        core_count=cores,
        efficiency_core_count=efficiency,
        thread_count=cores * 2 if threads is None else threads,
    )


def _system(*cpus: CPUInfo) -> SystemInfo:
    return SystemInfo(platform=Platform.LINUX, cpus=tuple(cpus), total_memory=0)


_SYSTEMS = [
    _system(),
    _system(_cpu(1, threads=1)),
    _system(_cpu(10, efficiency=4, threads=16)),
    _system(_cpu(12, efficiency=12, threads=12)),
    _system(_cpu(16, id="0"), _cpu(16, id="1")),
    _system(_cpu(8, efficiency=4, threads=8), _cpu(4, threads=4, id="1")),
]


# ---------------------------------------------------------------------------
# optimal_thread_count
# ---------------------------------------------------------------------------


class TestOptimalThreadCount:
    def test_hybrid_cpu(self) -> None:
        assert optimal_thread_count([_cpu(10, efficiency=4)]) == 6

    def test_empty(self) -> None:
        assert optimal_thread_count([]) == 0

    def test_sums_packages(self) -> None:
        cpus = [_cpu(16, id="0"), _cpu(16, efficiency=2, id="1")]
        assert optimal_thread_count(cpus) == 30

    def test_ignores_smt(self) -> None:
        assert optimal_thread_count([_cpu(8, threads=16)]) == 8

    @pytest.mark.parametrize("system", _SYSTEMS)
    def test_bounded_by_cores(self, system) -> None:
        assert 0 <= optimal_thread_count(system.cpus) <= system.total_cores


# ---------------------------------------------------------------------------
# thread_recommendation
# ---------------------------------------------------------------------------


class TestThreadRecommendation:
    def test_inference_uses_performance_cores(self) -> None:
        rec = thread_recommendation(_system(_cpu(10, efficiency=4, threads=16)))
        assert isinstance(rec, ThreadRecommendation)
        assert rec.recommended == 6
        assert rec.minimum == 1
        assert rec.maximum == 6
        assert "6 performance cores" in rec.reasoning

    def test_training_uses_logical_threads(self) -> None:
        system = _system(_cpu(10, efficiency=4, threads=16))
        rec = thread_recommendation(system, WorkloadProfile.TRAINING)
        assert rec.recommended == 16

    def test_serving_leaves_headroom(self) -> None:
        system = _system(_cpu(10, efficiency=4, threads=16))
        rec = thread_recommendation(system, WorkloadProfile.SERVING)
        assert rec.recommended == 3
        assert rec.maximum == 6

    def test_accepts_string_workload(self) -> None:
        rec = thread_recommendation(_system(_cpu(4)), "serving")
        assert rec.recommended == 2

    def test_rejects_unknown_workload(self) -> None:
        with pytest.raises(ValueError):
            thread_recommendation(_system(_cpu(4)), "gaming")

    def test_empty_system_still_recommends_one(self) -> None:
        for workload in WorkloadProfile:
            assert thread_recommendation(_system(), workload).recommended == 1

    @pytest.mark.parametrize("system", _SYSTEMS)
    def test_workload_ordering(self, system) -> None:
        training = thread_recommendation(system, WorkloadProfile.TRAINING)
        inference = thread_recommendation(system, WorkloadProfile.INFERENCE)
        serving = thread_recommendation(system, WorkloadProfile.SERVING)
        assert training.recommended >= inference.recommended
        assert inference.recommended >= serving.recommended
        assert serving.recommended > 0

    @pytest.mark.parametrize("system", _SYSTEMS)
    @pytest.mark.parametrize("workload", list(WorkloadProfile))
    def test_recommended_within_bounds(self, system, workload) -> None:
        rec = thread_recommendation(system, workload)
        assert rec.minimum <= rec.recommended <= rec.maximum


# ---------------------------------------------------------------------------
# validate_thread_count
# ---------------------------------------------------------------------------


class TestValidateThreadCount:
    def test_within_budget_unchanged(self) -> None:
        system = _system(_cpu(10, efficiency=4, threads=16))
        assert validate_thread_count(4, system) == 4

    def test_oversubscription_capped(self, caplog) -> None:
        system = _system(_cpu(10, efficiency=4, threads=16))
        with caplog.at_level(logging.WARNING, logger="layerwise.threads"):
            assert validate_thread_count(64, system) == 6
        assert "capping to 6" in caplog.text

    def test_non_positive_raised_to_one(self) -> None:
        system = _system(_cpu(8))
        assert validate_thread_count(0, system) == 1
        assert validate_thread_count(-3, system) == 1

    def test_core_based_cap(self) -> None:
        system = _system(_cpu(8))
        assert validate_thread_count(100, system, max_threads_per_core=0) == 1

    def test_empty_system(self) -> None:
        assert validate_thread_count(8, _system()) == 1

    @pytest.mark.parametrize("system", _SYSTEMS)
    @pytest.mark.parametrize("requested", [-1, 0, 1, 3, 6, 17, 1000])
    def test_idempotent_and_bounded(self, system, requested) -> None:
        once = validate_thread_count(requested, system)
        assert validate_thread_count(once, system) == once
        assert once >= 1
        assert once <= max(1, optimal_thread_count(system.cpus))


# ---------------------------------------------------------------------------
# analyze_system
# ---------------------------------------------------------------------------


class TestAnalyzeSystem:
    def test_summary(self) -> None:
        summary = analyze_system(_system(_cpu(10, efficiency=4, threads=16)))
        assert summary["platform"] == "linux"
        assert summary["packages"] == 1
        assert summary["total_cores"] == 10
        assert summary["performance_cores"] == 6
        assert summary["efficiency_cores"] == 4
        assert summary["logical_threads"] == 16
        assert summary["optimal_thread_count"] == 6
        assert set(summary["recommendations"]) == {"inference", "training", "serving"}
