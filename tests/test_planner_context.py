"""Tests for layerwise.planner._context — safe context-size search."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from layerwise.planner import (
    DEFAULT_CONTEXT_ARCHITECTURE,
    ContextSizeCalculator,
    ModelArchitectureInfo,
    context_memory,
    search_context_size,
)

MiB = 1024**2
GiB = 1024**3
MODEL_SIZE = 8 * GiB


# ---------------------------------------------------------------------------
# context_memory
# ---------------------------------------------------------------------------


class TestContextMemory:
    def test_grows_with_context(self) -> None:
        sizes = [
            context_memory(ctx, DEFAULT_CONTEXT_ARCHITECTURE)
            for ctx in (512, 2048, 8192, 32768)
        ]
        assert sizes == sorted(sizes)
        assert len(set(sizes)) == len(sizes)

    def test_floor_footprint(self) -> None:
        # f16 KV: 2 * (4096 / 4) * 48 layers * 512 tokens * 2 bytes
        kv = 2 * 1024 * 48 * 512 * 2
        compute = int(1.75 * 32 * MiB)
        assert context_memory(512, DEFAULT_CONTEXT_ARCHITECTURE) > kv + compute

    def test_uses_model_shape(self) -> None:
        small = ModelArchitectureInfo(
            block_count=16,
            train_ctx=0,
            head_count_max=16,
            head_count_kv_min=4,
            embedding_length=2048,
        )
        assert context_memory(4096, small) < context_memory(
            4096, DEFAULT_CONTEXT_ARCHITECTURE
        )


# ---------------------------------------------------------------------------
# search_context_size
# ---------------------------------------------------------------------------


class TestSearchContextSize:
    def test_fits_unchanged(self) -> None:
        assert search_context_size(32768, 80 * GiB) == 32768

    def test_reduced_to_largest_fit(self) -> None:
        available = 4 * GiB
        budget = available * 0.8
        result = search_context_size(32768, available)

        assert 4096 < result < 32768
        assert context_memory(result, DEFAULT_CONTEXT_ARCHITECTURE) <= budget
        assert context_memory(result + 1, DEFAULT_CONTEXT_ARCHITECTURE) > budget

    def test_nothing_fits_returns_floor(self) -> None:
        assert search_context_size(32768, 100 * MiB) == 512

    def test_no_vram(self) -> None:
        assert search_context_size(8192, 0) == 512
        assert search_context_size(8192, -1) == 512

    def test_small_request_raised_to_floor(self) -> None:
        assert search_context_size(100, 80 * GiB) == 512

    def test_custom_floor(self) -> None:
        assert search_context_size(32768, 0, floor=1024) == 1024

    def test_budget_fraction(self) -> None:
        generous = search_context_size(131072, 8 * GiB, budget_fraction=0.9)
        strict = search_context_size(131072, 8 * GiB, budget_fraction=0.5)
        assert strict < generous

    def test_never_exceeds_request(self) -> None:
        for requested in (512, 1000, 4096, 65536):
            assert search_context_size(requested, 80 * GiB) == requested

    def test_monotonic_in_vram(self) -> None:
        results = [
            search_context_size(131072, step * 512 * MiB) for step in range(0, 49)
        ]
        assert results == sorted(results)


# ---------------------------------------------------------------------------
# ContextSizeCalculator
# ---------------------------------------------------------------------------


class TestContextSizeCalculator:
    def test_matches_search(self) -> None:
        calc = ContextSizeCalculator()
        assert calc.calculate_safe_context_size(
            MODEL_SIZE, 32768, 4 * GiB
        ) == search_context_size(32768, 4 * GiB)

    def test_cache_hit_ignores_new_vram(self) -> None:
        calc = ContextSizeCalculator()
        first = calc.calculate_safe_context_size(
            MODEL_SIZE, 32768, 80 * GiB, model_file="llama.gguf"
        )
        second = calc.calculate_safe_context_size(
            MODEL_SIZE, 32768, 100 * MiB, model_file="llama.gguf"
        )
        assert first == second == 32768

    def test_cache_key_includes_model(self) -> None:
        calc = ContextSizeCalculator()
        calc.calculate_safe_context_size(MODEL_SIZE, 32768, 80 * GiB, "a.gguf")
        assert (
            calc.calculate_safe_context_size(MODEL_SIZE, 32768, 100 * MiB, "b.gguf")
            == 512
        )
        assert (
            calc.calculate_safe_context_size(2 * GiB, 32768, 100 * MiB, "a.gguf")
            == 512
        )

    def test_search_runs_once_per_key(self) -> None:
        calc = ContextSizeCalculator()
        with patch(
            "layerwise.planner._context.search_context_size",
            wraps=search_context_size,
        ) as search:
            for _ in range(5):
                calc.calculate_safe_context_size(MODEL_SIZE, 8192, 8 * GiB)
        assert search.call_count == 1

    def test_clear_cache(self) -> None:
        calc = ContextSizeCalculator()
        calc.calculate_safe_context_size(MODEL_SIZE, 32768, 80 * GiB)
        calc.clear_cache()
        assert calc.calculate_safe_context_size(MODEL_SIZE, 32768, 100 * MiB) == 512

    def test_entries_expire(self) -> None:
        calc = ContextSizeCalculator(ttl=300)
        with patch("layerwise.planner._context.time") as mock_time:
            mock_time.monotonic.return_value = 1000.0
            calc.calculate_safe_context_size(MODEL_SIZE, 32768, 80 * GiB)

            mock_time.monotonic.return_value = 1299.0
            assert (
                calc.calculate_safe_context_size(MODEL_SIZE, 32768, 100 * MiB)
                == 32768
            )

            mock_time.monotonic.return_value = 1300.0
            assert (
                calc.calculate_safe_context_size(MODEL_SIZE, 32768, 100 * MiB)
                == 512
            )

    def test_ttl_from_settings(self, monkeypatch) -> None:
        monkeypatch.setenv("LAYERWISE_CONTEXT_CACHE_TTL", "0")
        calc = ContextSizeCalculator()
        calc.calculate_safe_context_size(MODEL_SIZE, 32768, 80 * GiB)
        assert calc.calculate_safe_context_size(MODEL_SIZE, 32768, 100 * MiB) == 512

    def test_floor_from_settings(self, monkeypatch) -> None:
        monkeypatch.setenv("LAYERWISE_MIN_CONTEXT", "1024")
        calc = ContextSizeCalculator()
        assert calc.calculate_safe_context_size(MODEL_SIZE, 32768, 0) == 1024

    def test_budget_from_settings(self, monkeypatch) -> None:
        monkeypatch.setenv("LAYERWISE_VRAM_BUDGET_FRACTION", "0.5")
        calc = ContextSizeCalculator()
        assert calc.calculate_safe_context_size(
            MODEL_SIZE, 131072, 8 * GiB
        ) == search_context_size(131072, 8 * GiB, budget_fraction=0.5)

    @pytest.mark.parametrize("workers", [4, 16])
    def test_concurrent_callers_agree(self, workers) -> None:
        calc = ContextSizeCalculator()
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(
                pool.map(
                    lambda _: calc.calculate_safe_context_size(
                        MODEL_SIZE, 32768, 4 * GiB, "shared.gguf"
                    ),
                    range(64),
                )
            )
        assert len(set(results)) == 1
        assert results[0] == search_context_size(32768, 4 * GiB)
