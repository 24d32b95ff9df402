"""
layerwise command-line interface.

Usage::

    layerwise detect
    layerwise threads --workload serving
    layerwise plan --gpu cuda:20:24:12 --blocks 32 --model-size 4.1
    layerwise plan --gpu cuda:10 --gpu cuda:6 --blocks 80 --model-size 40 --json
    layerwise context --model-size 8 --requested 32768 --free-vram 12
    layerwise config set gpu_overhead 268435456
    layerwise config show --json
"""

from __future__ import annotations

import dataclasses
import json as json_mod
import logging

import click

from layerwise import __version__

logger = logging.getLogger(__name__)

_GIB = 1024**3


def _gib(value: float) -> int:
    return int(value * _GIB)


def _serialize(obj: object) -> object:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if hasattr(obj, "value"):
        return obj.value
    return str(obj)


def _echo_json(payload: object) -> None:
    click.echo(json_mod.dumps(payload, indent=2, default=_serialize))


def _available_ram() -> int | None:
    try:
        import psutil

        return int(psutil.virtual_memory().available)
    except Exception as exc:
        logger.debug("free RAM unavailable: %s", exc)
        return None


def parse_gpu_spec(index: int, spec: str):
    """Parse ``LIBRARY:FREE_GB[:TOTAL_GB[:DRIVER_MAJOR]]`` into a GPUInfo."""
    from layerwise.planner import GPUInfo, GPULibrary

    parts = spec.split(":")
    if len(parts) < 2 or len(parts) > 4:
        raise click.BadParameter(
            f"expected LIBRARY:FREE_GB[:TOTAL_GB[:DRIVER_MAJOR]], got {spec!r}",
            param_hint="--gpu",
        )
    try:
        library = GPULibrary(parts[0].lower())
        free_gb = float(parts[1])
        total_gb = float(parts[2]) if len(parts) > 2 else free_gb
        driver_major = int(parts[3]) if len(parts) > 3 else 0
    except ValueError as exc:
        raise click.BadParameter(f"{spec!r}: {exc}", param_hint="--gpu") from exc

    return GPUInfo(
        id=str(index),
        library=library,
        total_memory=_gib(total_gb),
        free_memory=_gib(free_gb),
        driver_major=driver_major,
        name=f"{library.value.upper()} GPU {index}",
    )


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="layerwise")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """layerwise — plan threads, GPU layers and context before loading an LLM."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def detect(as_json: bool) -> None:
    """Detect CPU topology and system memory."""
    from layerwise.hardware import detect_system

    system = detect_system(force=True)

    if as_json:
        _echo_json(dataclasses.asdict(system))
        return

    click.secho("\n  System\n", bold=True)
    click.echo(f"    Platform: {system.platform.value}")
    click.echo(f"    Memory: {system.total_memory / _GIB:.1f} GB")
    click.echo(f"    CPU packages: {len(system.cpus)}")

    for cpu in system.cpus:
        click.echo()
        click.secho(f"  CPU {cpu.id}", bold=True)
        click.echo(f"    {cpu.model_name} ({cpu.vendor_id})")
        click.echo(f"    Arch: {cpu.architecture}")
        click.echo(
            f"    Cores: {cpu.core_count} "
            f"({cpu.performance_core_count} performance, "
            f"{cpu.efficiency_core_count} efficiency)"
        )
        click.echo(f"    Threads: {cpu.thread_count}")
        if cpu.clock_speed_hz:
            click.echo(f"    Clock: {cpu.clock_speed_hz / 1_000_000:.0f} MHz")
        else:
            click.echo("    Clock: unknown")

    if system.diagnostics:
        click.echo()
        click.secho("  Diagnostics", bold=True, fg="yellow")
        for d in system.diagnostics:
            click.echo(f"    • {d}")
    click.echo()


@main.command()
@click.option(
    "--workload",
    "-w",
    type=click.Choice(["inference", "training", "serving"]),
    default=None,
    help="Show only this workload (default: all).",
)
@click.option(
    "--requested",
    type=int,
    default=None,
    help="Validate a requested thread count against this machine.",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def threads(workload: str | None, requested: int | None, as_json: bool) -> None:
    """Recommend CPU thread counts for inference, training and serving."""
    from layerwise.hardware import detect_system
    from layerwise.threads import analyze_system, validate_thread_count

    system = detect_system()
    summary = analyze_system(system)
    recs = summary["recommendations"]
    if workload:
        recs = {workload: recs[workload]}
    validated = (
        validate_thread_count(requested, system) if requested is not None else None
    )

    if as_json:
        payload = dict(summary, recommendations=recs)
        if validated is not None:
            payload["validated"] = {"requested": requested, "threads": validated}
        _echo_json(payload)
        return

    click.secho("\n  Threads\n", bold=True)
    click.echo(
        f"    Cores: {summary['total_cores']} "
        f"({summary['performance_cores']} performance, "
        f"{summary['efficiency_cores']} efficiency)"
    )
    click.echo(f"    Logical threads: {summary['logical_threads']}")
    click.echo(f"    Optimal: {summary['optimal_thread_count']}")
    click.echo()
    for name, rec in recs.items():
        click.echo(
            f"    {name}: {rec.recommended} (min {rec.minimum}, max {rec.maximum})"
        )
        click.echo(f"      {rec.reasoning}")
    if validated is not None:
        click.echo()
        color = "green" if validated == requested else "yellow"
        click.secho(f"    Requested {requested} -> {validated}", fg=color)
    click.echo()


@main.command()
@click.option(
    "--gpu",
    "gpu_specs",
    multiple=True,
    help="GPU snapshot LIBRARY:FREE_GB[:TOTAL_GB[:DRIVER_MAJOR]]; repeatable.",
)
@click.option("--blocks", type=int, required=True, help="Transformer block count.")
@click.option("--model-size", type=float, default=None, help="Model file size in GB.")
@click.option("--heads", type=int, default=32, show_default=True, help="Attention heads.")
@click.option("--kv-heads", type=int, default=8, show_default=True, help="KV heads.")
@click.option("--embedding", type=int, default=None, help="Hidden size.")
@click.option("--train-ctx", type=int, default=0, help="Trained context length.")
@click.option("--ctx", type=int, default=None, help="Requested context length.")
@click.option("--batch", type=int, default=None, help="Batch size.")
@click.option("--num-gpu", type=int, default=-1, show_default=True, help="GPU layers (-1 auto).")
@click.option("--threads", "num_thread", type=int, default=0, help="Threads (0 auto).")
@click.option("--parallel", type=int, default=1, show_default=True, help="Parallel sequences.")
@click.option(
    "--free-ram",
    type=float,
    default=None,
    help="Free system RAM in GB for CPU-only batch sizing (default: detected).",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def plan(
    gpu_specs: tuple[str, ...],
    blocks: int,
    model_size: float | None,
    heads: int,
    kv_heads: int,
    embedding: int | None,
    train_ctx: int,
    ctx: int | None,
    batch: int | None,
    num_gpu: int,
    num_thread: int,
    parallel: int,
    free_ram: float | None,
    as_json: bool,
) -> None:
    """Plan GPU layer placement and a full load configuration."""
    from layerwise.hardware import detect_system
    from layerwise.planner import (
        ModelArchitectureInfo,
        calculate_optimal_config,
        flash_attention_supported,
    )

    gpus = [parse_gpu_spec(i, spec) for i, spec in enumerate(gpu_specs)]
    model = ModelArchitectureInfo(
        block_count=blocks,
        train_ctx=train_ctx,
        head_count_max=heads,
        head_count_kv_min=kv_heads,
        model_size=_gib(model_size) if model_size is not None else None,
        embedding_length=embedding,
    )
    overrides: dict[str, int] = {"num_gpu": num_gpu, "num_thread": num_thread}
    if ctx is not None:
        overrides["num_ctx"] = ctx
    if batch is not None:
        overrides["num_batch"] = batch

    system = detect_system()
    result = calculate_optimal_config(
        system.cpus,
        gpus,
        model,
        overrides,
        num_parallel=parallel,
        free_ram=_gib(free_ram) if free_ram is not None else _available_ram(),
    )
    flash = flash_attention_supported(gpus) if gpus else False

    if as_json:
        _echo_json(
            {
                "options": result.options,
                "estimate": result.estimate,
                "flash_attention": flash,
            }
        )
        return

    est = result.estimate
    opts = result.options
    click.secho("\n  Load plan\n", bold=True)
    click.echo(f"    Context: {opts.num_ctx}")
    click.echo(f"    Batch: {opts.num_batch}")
    click.echo(f"    Threads: {opts.num_thread}")
    click.echo(f"    GPU layers: {opts.num_gpu} / {blocks}")
    click.echo(f"    Est. VRAM: {est.vram_size / _GIB:.2f} GB")
    if est.tensor_split:
        click.echo(f"    Tensor split: {est.tensor_split}")
    click.echo(f"    Flash attention: {'yes' if flash else 'no'}")
    if est.fully_loaded:
        click.secho("    Fully offloaded to GPU", fg="green")
    elif est.layers:
        click.secho("    Partial offload", fg="yellow")
    else:
        click.secho("    CPU only", fg="red")
    click.echo()


@main.command()
@click.option("--model-size", type=float, required=True, help="Model file size in GB.")
@click.option("--requested", type=int, required=True, help="Requested context length.")
@click.option("--free-vram", type=float, required=True, help="Free VRAM in GB.")
@click.option("--model-file", default="", help="Model file name (cache key).")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def context(
    model_size: float,
    requested: int,
    free_vram: float,
    model_file: str,
    as_json: bool,
) -> None:
    """Find the largest context length that fits in free VRAM."""
    from layerwise.planner import ContextSizeCalculator

    calculator = ContextSizeCalculator()
    safe = calculator.calculate_safe_context_size(
        _gib(model_size), requested, _gib(free_vram), model_file=model_file
    )

    if as_json:
        _echo_json({"requested": requested, "context_size": safe})
        return

    color = "green" if safe >= requested else "yellow"
    click.secho(f"  Safe context: {safe} tokens (requested {requested})", fg=color)


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@main.group()
def config() -> None:
    """Show or change planner settings in ~/.layerwise/config.json."""


@config.command("show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def config_show(as_json: bool) -> None:
    """Show resolved settings (env > config file > default)."""
    from layerwise.config import load_settings

    settings = load_settings()
    if as_json:
        _echo_json(dataclasses.asdict(settings))
        return
    for name, value in dataclasses.asdict(settings).items():
        click.echo(f"  {name}: {value}")


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Persist one setting to the config file."""
    from layerwise.config import PlannerSettings, load_config, save_config

    defaults = dataclasses.asdict(PlannerSettings())
    if key not in defaults:
        raise click.BadParameter(
            f"unknown setting {key!r}; expected one of {', '.join(defaults)}",
            param_hint="KEY",
        )
    cast = type(defaults[key])
    try:
        parsed = cast(value)
    except ValueError as exc:
        raise click.BadParameter(f"{value!r}: {exc}", param_hint="VALUE") from exc
    if parsed < 0:
        raise click.BadParameter(f"{key} must not be negative", param_hint="VALUE")

    stored = load_config()
    stored[key] = parsed
    save_config(stored)
    click.secho(f"  {key} = {parsed}", fg="green")
