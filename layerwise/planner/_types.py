"""Planner input and output dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class GPULibrary(str, Enum):
    CUDA = "cuda"
    ROCM = "rocm"
    METAL = "metal"
    CPU = "cpu"


@dataclass(frozen=True)
class GPUInfo:
    """Point-in-time snapshot of one device, supplied by the caller."""

    id: str
    library: GPULibrary
    total_memory: int  # bytes
    free_memory: int  # bytes
    minimum_memory: int = 0  # vendor/runtime reservation, bytes
    driver_major: int = 0
    driver_minor: int = 0
    compute: str = ""
    name: str = ""
    variant: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "library", GPULibrary(self.library))


@dataclass(frozen=True)
class ModelArchitectureInfo:
    block_count: int
    train_ctx: int
    head_count_max: int
    head_count_kv_min: int
    supports_flash_attention: bool = False
    kv_cache_types: tuple[str, ...] = ("f16",)
    model_size: int | None = None  # bytes
    embedding_length: int | None = None

    def supports_kv_cache_type(self, cache_type: str) -> bool:
        return cache_type in self.kv_cache_types

    @property
    def gqa_ratio(self) -> float:
        """Query heads per KV head (1.0 for plain multi-head attention)."""
        kv = self.head_count_kv_min or 1
        return self.head_count_max / kv if self.head_count_max else 1.0

    @property
    def head_dim(self) -> int:
        if self.embedding_length and self.head_count_max:
            return self.embedding_length // self.head_count_max
        return 128


@dataclass
class PlanningOptions:
    num_ctx: int = 4096
    num_batch: int = 0  # 0 = planner decides
    num_gpu: int = -1  # -1 = planner decides, 0 = CPU only
    num_thread: int = 0  # 0 = planner decides
    # Sampling pass-through; not used by the planner's math
    temperature: float = 0.8
    top_k: int = 40
    top_p: float = 0.9
    repeat_penalty: float = 1.1

    @classmethod
    def defaults(cls) -> PlanningOptions:
        from layerwise.config import load_settings

        return cls(num_ctx=load_settings().default_context)


@dataclass(frozen=True)
class MemoryEstimate:
    layers: int
    graph: int
    vram_size: int
    total_size: int
    tensor_split: str
    gpu_sizes: tuple[int, ...] = field(default_factory=tuple)
    fully_loaded: bool = False
    kv_cache: int = 0


@dataclass(frozen=True)
class PlanResult:
    options: PlanningOptions
    estimate: MemoryEstimate
