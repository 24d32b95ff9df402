"""Thread-count planning for LLM workloads.

Inference latency is best when threads are pinned to performance cores, so
the baseline budget is ``core_count - efficiency_core_count`` summed over
packages. Training may also use efficiency cores and SMT siblings; serving
keeps headroom for concurrent requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from layerwise.hardware import CPUInfo, SystemInfo

logger = logging.getLogger(__name__)


class WorkloadProfile(str, Enum):
    INFERENCE = "inference"
    TRAINING = "training"
    SERVING = "serving"


@dataclass(frozen=True)
class ThreadRecommendation:
    recommended: int
    minimum: int
    maximum: int
    reasoning: str


def optimal_thread_count(cpus: Iterable[CPUInfo]) -> int:
    """Performance-core count across all packages; 0 when no CPUs are known.

    Zero means "let the inference runtime choose its own default".
    """
    return sum(cpu.core_count - cpu.efficiency_core_count for cpu in cpus)


def thread_recommendation(
    system: SystemInfo,
    workload: WorkloadProfile | str = WorkloadProfile.INFERENCE,
) -> ThreadRecommendation:
    """Recommend a thread count for ``workload``.

    Ordering holds for every system:
    ``training >= inference >= serving >= 1``.
    """
    workload = WorkloadProfile(workload)
    optimal = optimal_thread_count(system.cpus)
    inference = max(1, optimal)

    if workload is WorkloadProfile.TRAINING:
        recommended = max(inference, system.total_threads)
        return ThreadRecommendation(
            recommended=recommended,
            minimum=1,
            maximum=recommended,
            reasoning=f"Using {recommended} logical threads for training throughput",
        )

    if workload is WorkloadProfile.SERVING:
        recommended = max(1, optimal // 2)
        return ThreadRecommendation(
            recommended=recommended,
            minimum=1,
            maximum=inference,
            reasoning=(
                f"Using {recommended} threads to leave room for "
                "concurrent request processing"
            ),
        )

    return ThreadRecommendation(
        recommended=inference,
        minimum=1,
        maximum=inference,
        reasoning=f"Using {inference} performance cores for optimal inference latency",
    )


def validate_thread_count(
    requested: int,
    system: SystemInfo,
    max_threads_per_core: int = 2,
) -> int:
    """Clamp ``requested`` into ``[1, performance-core budget]``.

    Oversubscription is never honoured; the cap is also bounded by
    ``total_cores * max_threads_per_core``.
    """
    optimal = optimal_thread_count(system.cpus)
    by_core = system.total_cores * max_threads_per_core
    cap = max(1, min(optimal, by_core))

    if requested > cap:
        logger.warning(
            "Requested %d threads exceeds maximum %d "
            "(optimal: %d, core-based: %d), capping to %d",
            requested,
            cap,
            optimal,
            by_core,
            cap,
        )
        return cap
    if requested < 1:
        return 1
    return requested


def analyze_system(system: SystemInfo) -> dict[str, object]:
    """Summarize CPU totals alongside every workload recommendation."""
    return {
        "platform": system.platform.value,
        "packages": len(system.cpus),
        "total_cores": system.total_cores,
        "performance_cores": system.performance_cores,
        "efficiency_cores": system.total_efficiency_cores,
        "logical_threads": system.total_threads,
        "optimal_thread_count": optimal_thread_count(system.cpus),
        "recommendations": {
            w.value: thread_recommendation(system, w) for w in WorkloadProfile
        },
    }
