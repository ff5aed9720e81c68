"""
jolt entry point.

Usage:
    jolt --config jolt.yaml run                 Live table, one cycle per interval
    jolt --config jolt.yaml run --output jsonl  One JSON line per record
    jolt --config jolt.yaml once                Single cycle, then exit
    jolt sample-config > jolt.yaml              Starter configuration
"""

from __future__ import annotations

import logging

import click

from jolt import __version__
from jolt.accumulator import MemoryAccumulator
from jolt.collector.jolokia_collector import JolokiaCollector
from jolt.config import SAMPLE_CONFIG, load_config
from jolt.dashboard.terminal import (
    build_errors_panel,
    build_records_table,
    run_dashboard,
    run_jsonl,
)
from jolt.errors import ConfigError


log = logging.getLogger("jolt")


def _load(ctx) -> JolokiaCollector:
    path = ctx.obj["config"]
    if not path:
        raise click.UsageError("Please specify a configuration file with --config")
    try:
        config = load_config(path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    ctx.obj["interval"] = config.interval
    return JolokiaCollector.from_config(config)


@click.group()
@click.version_option(version=__version__, prog_name="jolt")
@click.option("--config", "config_path", default=None, type=click.Path(dir_okay=False),
              help="YAML configuration file")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path: str, verbose: bool):
    """jolt - read JMX metrics through Jolokia."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = config_path


@cli.command()
@click.option("--interval", default=None, type=float,
              help="Seconds between cycles (overrides the config file)")
@click.option("--output", type=click.Choice(["tui", "jsonl"]), default="tui",
              help="Output mode: tui (Rich table) or jsonl (one JSON line per record)")
@click.pass_context
def run(ctx, interval: float, output: str):
    """Collect on a fixed interval until interrupted."""
    collector = _load(ctx)
    refresh = interval if interval is not None else ctx.obj["interval"]
    runner = run_jsonl if output == "jsonl" else run_dashboard

    try:
        runner(collector, refresh_interval=refresh)
    finally:
        collector.close()


@cli.command()
@click.pass_context
def once(ctx):
    """Run a single collection cycle and print what came back."""
    from rich.console import Console

    collector = _load(ctx)
    acc = MemoryAccumulator()
    try:
        collector.gather(acc)
    finally:
        collector.close()

    records, errors = acc.drain()
    console = Console()
    if records:
        console.print(build_records_table(records))
    else:
        console.print("[yellow]No records collected.[/yellow]")
    if errors:
        console.print(build_errors_panel(errors))
        raise SystemExit(1)


@cli.command("sample-config")
def sample_config():
    """Print a starter configuration file."""
    click.echo(SAMPLE_CONFIG, nl=False)


if __name__ == "__main__":
    cli()
