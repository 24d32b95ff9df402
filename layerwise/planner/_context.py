"""Largest context length that fits in free VRAM."""

from __future__ import annotations

import logging
import threading
import time

from layerwise.config import load_settings

from ._memory import context_memory
from ._types import ModelArchitectureInfo

logger = logging.getLogger(__name__)

# Shape assumed when the caller has no metadata for the model (typical ~9B)
DEFAULT_CONTEXT_ARCHITECTURE = ModelArchitectureInfo(
    block_count=48,
    train_ctx=0,
    head_count_max=32,
    head_count_kv_min=8,
    embedding_length=4096,
)


def search_context_size(
    requested: int,
    available_vram: int,
    model: ModelArchitectureInfo = DEFAULT_CONTEXT_ARCHITECTURE,
    floor: int = 512,
    budget_fraction: float = 0.8,
) -> int:
    """Return ``requested`` if it fits the VRAM budget, else the largest fit.

    The budget is ``budget_fraction`` of ``available_vram``. Below ``floor``
    nothing is searched and ``floor`` is returned. The result never
    decreases as ``available_vram`` grows.
    """
    requested = max(requested, floor)
    budget = max(available_vram, 0) * budget_fraction

    if context_memory(requested, model) <= budget:
        return requested

    low, high = floor, requested
    best = floor
    while low <= high:
        mid = (low + high) // 2
        if context_memory(mid, model) <= budget:
            best = mid
            low = mid + 1
        else:
            high = mid - 1
    return best


class ContextSizeCalculator:
    """Cached front end for :func:`search_context_size`.

    Results are keyed by ``(model_file, model_size, requested_context)`` and
    expire after ``ttl`` seconds. Concurrent writers to one key store the
    same value, so the last write wins.
    """

    def __init__(
        self,
        model: ModelArchitectureInfo | None = None,
        ttl: float | None = None,
        budget_fraction: float | None = None,
        floor: int | None = None,
    ) -> None:
        settings = load_settings()
        self._model = model or DEFAULT_CONTEXT_ARCHITECTURE
        self._ttl = settings.context_cache_ttl if ttl is None else ttl
        self._budget_fraction = (
            settings.vram_budget_fraction if budget_fraction is None else budget_fraction
        )
        self._floor = settings.min_context if floor is None else floor
        self._cache: dict[tuple[str, int, int], tuple[int, float]] = {}
        self._lock = threading.Lock()

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def calculate_safe_context_size(
        self,
        model_size_bytes: int,
        requested_context: int,
        available_vram_bytes: int,
        model_file: str = "",
    ) -> int:
        key = (model_file, model_size_bytes, requested_context)
        now = time.monotonic()

        with self._lock:
            cached = self._cache.get(key)
        if cached is not None and (now - cached[1]) < self._ttl:
            return cached[0]

        context = search_context_size(
            requested_context,
            available_vram_bytes,
            self._model,
            floor=self._floor,
            budget_fraction=self._budget_fraction,
        )
        if context < requested_context:
            logger.info(
                "Reduced context for %s from %d to %d tokens (%d bytes free)",
                model_file or "model",
                requested_context,
                context,
                available_vram_bytes,
            )

        with self._lock:
            self._cache[key] = (context, now)
        return context
