"""Closed-form memory estimates derived from transformer shape.

All sizes are bytes. Pure functions, no I/O.
"""

from __future__ import annotations

import math

from ._types import ModelArchitectureInfo

_MIB = 1024 * 1024
_GIB = 1024 * _MIB

# Fallback per-layer weight size when the model file size is unknown
_DEFAULT_LAYER_BYTES = 300 * _MIB

# Bytes per element for each KV-cache numeric type, most precise first
_KV_CACHE_BYTES: dict[str, float] = {
    "f16": 2.0,
    "q8_0": 1.0,
    "q4_0": 0.5,
}

_INPUT_BATCH = 512


def kv_cache_bytes_per_element(model: ModelArchitectureInfo) -> float:
    for cache_type, size in _KV_CACHE_BYTES.items():
        if model.supports_kv_cache_type(cache_type):
            return size
    return _KV_CACHE_BYTES["f16"]


def _kv_heads(model: ModelArchitectureInfo) -> int:
    return model.head_count_kv_min or model.head_count_max or 1


def hidden_size(model: ModelArchitectureInfo) -> int:
    return model.embedding_length or model.head_dim * (model.head_count_max or 1)


def layer_size(model: ModelArchitectureInfo) -> int:
    """Uniform per-layer weight size (embedding/output layers not separated)."""
    if model.block_count <= 0:
        return 0
    total = model.model_size or model.block_count * _DEFAULT_LAYER_BYTES
    return total // model.block_count


def kv_cache_size(
    model: ModelArchitectureInfo,
    context: int,
    num_parallel: int = 1,
) -> int:
    """Key and value tensors for every layer, shared across GQA head groups."""
    per_token_width = _kv_heads(model) * model.head_dim
    elements = 2 * context * model.block_count * per_token_width * max(num_parallel, 1)
    return int(elements * kv_cache_bytes_per_element(model))


def graph_sizes(model: ModelArchitectureInfo, context: int) -> tuple[int, int]:
    """Return ``(partial_offload, full_offload)`` compute-graph sizes.

    Partial offload needs a CPU<->GPU copy buffer scaled by the GQA ratio;
    full offload has no copy buffer but a larger resident graph.
    """
    base = context * 1024
    partial = math.floor(base * model.gqa_ratio / 6)
    full = base * 2
    return partial, full


def input_buffer_size(context: int, hidden: int, batch: int = _INPUT_BATCH) -> int:
    inp_tokens = batch
    inp_embd = hidden * batch
    inp_pos = batch
    inp_kq_mask = context * batch
    inp_k_shift = context
    inp_sum = batch
    return inp_tokens + inp_embd + inp_pos + inp_kq_mask + inp_k_shift + inp_sum


def compute_buffer_size(context: int, head_count: int) -> int:
    return int(((context / 1024) * 2 + 0.75) * head_count * _MIB)


def context_memory(context: int, model: ModelArchitectureInfo) -> int:
    """Total context footprint: f16 KV cache + input buffer + compute buffer."""
    hidden = hidden_size(model)
    gqa = model.gqa_ratio or 1.0
    kv_cache = int(2 * (hidden / gqa) * model.block_count * context * 2)
    return (
        kv_cache
        + input_buffer_size(context, hidden)
        + compute_buffer_size(context, model.head_count_max)
    )


# Batch ceiling for CPU-only execution
_CPU_MAX_BATCH = 512
# RAM kept back for the OS when sizing a CPU batch
_CPU_BATCH_RESERVE_GIB = 1.0
# Share of free VRAM usable for batch buffers when nothing is offloaded
_CPU_BATCH_VRAM_SHARE = 0.3

# (model size above MiB, batch for contexts <= 8192, batch for longer contexts)
_FALLBACK_BATCH_TIERS = (
    (15000, 2048, 1024),
    (8000, 4096, 2048),
    (4000, 8192, 4096),
)
_SMALL_MODEL_BATCH = (16384, 8192)
_LONG_CONTEXT = 8192


def cpu_batch_size(
    model_size: int,
    context: int,
    free_ram: int,
    free_vram: int = 0,
) -> int:
    """Batch size for a CPU-only load, sized from the RAM left after weights.

    Parameters are estimated as half the file size in GiB at 2 bytes each.
    The result is capped at 512 and never drops below 1.
    """
    model_gib = model_size / _GIB
    params = model_gib * 0.5
    context_gib = context * params * 2 / _GIB

    available_gib = free_ram / _GIB - model_gib - context_gib
    available_gib += free_vram / _GIB * _CPU_BATCH_VRAM_SHARE
    available_gib = max(0.0, available_gib - _CPU_BATCH_RESERVE_GIB)

    per_token_mib = params * 2 / _MIB
    if per_token_mib <= 0:
        return _CPU_MAX_BATCH
    max_batch = math.floor(available_gib * 1024 / per_token_mib)
    return max(1, min(max_batch, _CPU_MAX_BATCH))


def fallback_batch_size(model_size: int, context: int) -> int:
    """Tiered batch size by model file size, halved for long contexts."""
    size_mib = model_size / _MIB
    for floor_mib, short_batch, long_batch in _FALLBACK_BATCH_TIERS:
        if size_mib > floor_mib:
            return long_batch if context > _LONG_CONTEXT else short_batch
    short_batch, long_batch = _SMALL_MODEL_BATCH
    return long_batch if context > _LONG_CONTEXT else short_batch
