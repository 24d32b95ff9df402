"""Memory and layer planning for local LLM loads.

Pure computation over caller-supplied GPU snapshots and model shape.
"""

from __future__ import annotations

from ._context import (
    DEFAULT_CONTEXT_ARCHITECTURE,
    ContextSizeCalculator,
    search_context_size,
)
from ._layout import (
    calculate_optimal_config,
    estimate_gpu_layers,
    flash_attention_supported,
    validate_context_size,
)
from ._memory import (
    context_memory,
    cpu_batch_size,
    fallback_batch_size,
    graph_sizes,
    kv_cache_size,
    layer_size,
)
from ._types import (
    GPUInfo,
    GPULibrary,
    MemoryEstimate,
    ModelArchitectureInfo,
    PlanningOptions,
    PlanResult,
)

__all__ = [
    "DEFAULT_CONTEXT_ARCHITECTURE",
    "ContextSizeCalculator",
    "GPUInfo",
    "GPULibrary",
    "MemoryEstimate",
    "ModelArchitectureInfo",
    "PlanResult",
    "PlanningOptions",
    "calculate_optimal_config",
    "context_memory",
    "cpu_batch_size",
    "estimate_gpu_layers",
    "fallback_batch_size",
    "flash_attention_supported",
    "graph_sizes",
    "kv_cache_size",
    "layer_size",
    "search_context_size",
    "validate_context_size",
]
