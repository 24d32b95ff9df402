"""GPU layer placement and load-configuration resolution."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Mapping, Sequence

from layerwise.config import load_settings
from layerwise.hardware import CPUInfo
from layerwise.threads import optimal_thread_count

from ._memory import (
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

logger = logging.getLogger(__name__)

# CUDA driver major version from which flash attention is enabled
_FLASH_ATTENTION_MIN_CUDA_MAJOR = 7

# Batch used whenever at least one layer is offloaded
_GPU_BATCH = 512


def flash_attention_supported(gpus: Sequence[GPUInfo]) -> bool:
    """True only when every GPU supports flash attention.

    A mixed set reports False so no device runs a partially accelerated path.
    """
    for gpu in gpus:
        supported = (
            gpu.library is GPULibrary.METAL
            or gpu.library is GPULibrary.ROCM
            or (
                gpu.library is GPULibrary.CUDA
                and gpu.driver_major >= _FLASH_ATTENTION_MIN_CUDA_MAJOR
            )
        )
        if not supported:
            return False
    return True


def validate_context_size(
    requested: int,
    train_ctx: int,
    num_parallel: int = 1,
) -> int:
    """Cap ``requested`` at the model's trained context per parallel slot."""
    num_parallel = max(num_parallel, 1)
    if train_ctx > 0 and requested / num_parallel > train_ctx:
        logger.warning(
            "Requested context size %d too large for model (train_ctx: %d)",
            requested,
            train_ctx,
        )
        return train_ctx * num_parallel
    return requested


def estimate_gpu_layers(
    gpus: Sequence[GPUInfo],
    model: ModelArchitectureInfo,
    options: PlanningOptions,
    num_parallel: int = 1,
    overhead: int | None = None,
) -> MemoryEstimate:
    """Greedily place transformer layers on the given GPUs.

    Layers are placed last-to-first, each onto the GPU with the most
    remaining headroom, so multi-GPU setups fill evenly rather than
    front-loading device 0. Returns a zero-layer estimate when no GPU can
    hold even one layer; that signals CPU-only execution, not an error.
    """
    settings = load_settings()
    if overhead is None:
        overhead = settings.gpu_overhead
    num_ctx = max(options.num_ctx, settings.min_context)

    layer = layer_size(model)
    total_size = layer * max(model.block_count, 0)

    if model.block_count <= 0:
        logger.info("Model reports no transformer blocks, planning CPU-only")
        return MemoryEstimate(
            layers=0, graph=0, vram_size=0, total_size=0, tensor_split=""
        )

    kv_cache = kv_cache_size(model, num_ctx, num_parallel)
    graph_partial, graph_full = graph_sizes(model, num_ctx)
    projected_graph = max(graph_partial, graph_full)

    viable: list[GPUInfo] = []
    for gpu in gpus:
        if gpu.library is GPULibrary.CPU:
            continue
        required = (
            overhead + gpu.minimum_memory + 2 * layer + kv_cache + projected_graph
        )
        if gpu.free_memory >= required:
            viable.append(gpu)
        else:
            logger.debug(
                "GPU %s not viable: %d bytes free, %d required",
                gpu.id,
                gpu.free_memory,
                required,
            )

    if not viable:
        return MemoryEstimate(
            layers=0,
            graph=0,
            vram_size=0,
            total_size=total_size,
            tensor_split="",
            kv_cache=kv_cache,
        )

    # Each GPU starts with its runtime reservation plus one layer for the
    # output head
    allocations = [gpu.minimum_memory + layer for gpu in viable]
    layer_counts = [0] * len(viable)
    placed = 0

    for _ in range(model.block_count - 1, -1, -1):
        if options.num_gpu >= 0 and placed >= options.num_gpu:
            break

        best = -1
        best_available = 0
        for j, gpu in enumerate(viable):
            # KV cache lands on every GPU that ends up holding a layer
            available = (
                gpu.free_memory
                - overhead
                - allocations[j]
                - projected_graph
                - kv_cache
            )
            if available >= layer and available > best_available:
                best = j
                best_available = available

        if best < 0:
            break
        allocations[best] += layer
        layer_counts[best] += 1
        placed += 1

    fully_loaded = placed == model.block_count
    graph = graph_full if fully_loaded else graph_partial

    gpu_sizes = tuple(
        allocations[j] + graph + kv_cache if layer_counts[j] > 0 else 0
        for j in range(len(viable))
    )
    used_gpus = sum(1 for count in layer_counts if count > 0)
    tensor_split = ",".join(str(c) for c in layer_counts) if used_gpus > 1 else ""

    estimate = MemoryEstimate(
        layers=placed,
        graph=graph,
        vram_size=sum(gpu_sizes),
        total_size=total_size,
        tensor_split=tensor_split,
        gpu_sizes=gpu_sizes,
        fully_loaded=fully_loaded,
        kv_cache=kv_cache,
    )
    logger.info(
        "Placed %d/%d layers on %d GPU(s), vram=%d bytes, split=%r",
        placed,
        model.block_count,
        used_gpus,
        estimate.vram_size,
        tensor_split,
    )
    return estimate


def calculate_optimal_config(
    cpus: Sequence[CPUInfo],
    gpus: Sequence[GPUInfo],
    model: ModelArchitectureInfo,
    user_options: Mapping[str, Any] | PlanningOptions | None = None,
    num_parallel: int = 1,
    free_ram: int | None = None,
) -> PlanResult:
    """Resolve thread count, context size, GPU layers and batch for one load.

    ``num_thread=0``, ``num_gpu=-1`` and ``num_batch=0`` are replaced by
    planned values; any other user value is kept as given. A CPU-only plan
    sizes its batch from ``free_ram`` (bytes) when known and from model-size
    tiers otherwise. The loader re-validates at load time.
    """
    settings = load_settings()
    if isinstance(user_options, PlanningOptions):
        options = dataclasses.replace(user_options)
    else:
        options = dataclasses.replace(
            PlanningOptions.defaults(), **dict(user_options or {})
        )

    if options.num_thread == 0:
        options.num_thread = max(1, optimal_thread_count(cpus)) if cpus else 0

    if options.num_ctx < settings.min_context:
        logger.warning(
            "Context size %d below minimum, using %d",
            options.num_ctx,
            settings.min_context,
        )
        options.num_ctx = settings.min_context
    options.num_ctx = validate_context_size(
        options.num_ctx, model.train_ctx, num_parallel
    )

    estimate = estimate_gpu_layers(
        gpus,
        model,
        options,
        num_parallel=num_parallel,
        overhead=settings.gpu_overhead,
    )

    if options.num_gpu < 0:
        options.num_gpu = estimate.layers

    if options.num_batch <= 0:
        options.num_batch = _resolve_batch(
            estimate.layers, estimate.total_size, options.num_ctx, gpus, free_ram
        )

    return PlanResult(options=options, estimate=estimate)


def _resolve_batch(
    layers: int,
    model_size: int,
    num_ctx: int,
    gpus: Sequence[GPUInfo],
    free_ram: int | None,
) -> int:
    if layers > 0:
        return _GPU_BATCH
    if free_ram is None:
        batch = fallback_batch_size(model_size, num_ctx)
        logger.info("CPU-only load, free RAM unknown: batch %d by model size", batch)
        return batch
    free_vram = sum(g.free_memory for g in gpus if g.library is not GPULibrary.CPU)
    batch = cpu_batch_size(model_size, num_ctx, free_ram, free_vram)
    logger.info("CPU-only load: batch %d from %d bytes free RAM", batch, free_ram)
    return batch
