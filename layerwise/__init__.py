"""
layerwise — hardware-aware capacity planning for local LLM inference.

Decides thread counts, GPU layer placement, tensor split and a safe
context length before a model is loaded.
"""

from __future__ import annotations

__version__ = "0.3.0"

from .config import PlannerSettings, load_settings
from .hardware import CPUInfo, Platform, SystemInfo, detect_system
from .planner import (
    ContextSizeCalculator,
    GPUInfo,
    GPULibrary,
    MemoryEstimate,
    ModelArchitectureInfo,
    PlanningOptions,
    PlanResult,
    calculate_optimal_config,
    estimate_gpu_layers,
    flash_attention_supported,
    search_context_size,
    validate_context_size,
)
from .threads import (
    ThreadRecommendation,
    WorkloadProfile,
    optimal_thread_count,
    thread_recommendation,
    validate_thread_count,
)

__all__ = [
    "CPUInfo",
    "ContextSizeCalculator",
    "GPUInfo",
    "GPULibrary",
    "MemoryEstimate",
    "ModelArchitectureInfo",
    "Platform",
    "PlanResult",
    "PlannerSettings",
    "PlanningOptions",
    "SystemInfo",
    "ThreadRecommendation",
    "WorkloadProfile",
    "calculate_optimal_config",
    "detect_system",
    "estimate_gpu_layers",
    "flash_attention_supported",
    "load_settings",
    "optimal_thread_count",
    "search_context_size",
    "thread_recommendation",
    "validate_context_size",
    "validate_thread_count",
]
