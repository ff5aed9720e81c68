"""Terminal output using Rich, plus a JSONL mode for pipelines."""

from __future__ import annotations

import json
import logging
import sys
import time
from typing import List, Sequence

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from jolt import __version__
from jolt.accumulator import MemoryAccumulator
from jolt.collector.base import MetricsCollector
from jolt.metrics import FlattenedRecord

log = logging.getLogger(__name__)

# Errors shown under the records table
MAX_ERRORS_SHOWN = 8


def _format_value(value) -> str:
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e15:
            return f"{int(value):,}"
        return f"{value:,.3f}"
    return str(value)


def build_records_table(records: Sequence[FlattenedRecord]) -> Table:
    table = Table(show_header=True, header_style="bold", expand=True)
    table.add_column("Server", style="cyan")
    table.add_column("Measurement", style="bold")
    table.add_column("Field")
    table.add_column("Value", justify="right")

    for record in records:
        server = f"{record.tags.get('HostName', '')}:{record.tags.get('AppName', '')}"
        for i, (field_name, value) in enumerate(sorted(record.fields.items())):
            table.add_row(
                server if i == 0 else "",
                record.measurement if i == 0 else "",
                field_name or "[dim](value)[/dim]",
                _format_value(value),
            )
        if not record.fields:
            table.add_row(server, record.measurement, "[dim]-[/dim]", "")
    return table


def build_errors_panel(errors: Sequence[Exception]) -> Panel:
    lines = Text()
    for err in list(errors)[:MAX_ERRORS_SHOWN]:
        lines.append(f"{type(err).__name__}: ", style="bold red")
        lines.append(f"{err}\n")
    hidden = len(errors) - MAX_ERRORS_SHOWN
    if hidden > 0:
        lines.append(f"... and {hidden} more", style="dim")
    return Panel(lines, title=f"Errors ({len(errors)})", border_style="red")


def build_display(source_name: str, records: Sequence[FlattenedRecord],
                  errors: Sequence[Exception], cycle: int) -> Group:
    header = Text.assemble(
        (f"jolt {__version__}", "bold"),
        f"  {source_name}  ",
        (f"cycle {cycle}", "dim"),
        "  ",
        (f"{len(records)} records", "green" if records else "yellow"),
    )
    parts: List = [header, build_records_table(records)]
    if errors:
        parts.append(build_errors_panel(errors))
    return Group(*parts)


def run_dashboard(collector: MetricsCollector, refresh_interval: float = 10.0):
    """Gather every refresh_interval seconds and show the latest cycle."""
    console = Console()
    source_name = collector.name()
    acc = MemoryAccumulator()
    cycle = 0

    log.info("Starting dashboard: source=%s, refresh=%.1fs", source_name, refresh_interval)

    with Live(console=console, refresh_per_second=2, screen=False) as live:
        try:
            while True:
                cycle += 1
                collector.gather(acc)
                records, errors = acc.drain()
                live.update(build_display(source_name, records, errors, cycle))
                time.sleep(refresh_interval)
        except KeyboardInterrupt:
            pass

    console.print(f"\n[dim]Stopped after {cycle} cycles.[/dim]")


def run_jsonl(collector: MetricsCollector, refresh_interval: float = 10.0, stream=None):
    """Non-interactive output mode: prints one JSON object per record per line.

    Errors go to the log, not to the stream.
    """
    stream = stream or sys.stdout
    source_name = collector.name()
    acc = MemoryAccumulator()

    log.info("Starting JSONL output: source=%s, refresh=%.1fs", source_name, refresh_interval)

    try:
        while True:
            collector.gather(acc)
            records, _ = acc.drain()
            write_jsonl(records, stream)
            time.sleep(refresh_interval)
    except KeyboardInterrupt:
        pass


def write_jsonl(records: Sequence[FlattenedRecord], stream) -> None:
    for record in records:
        stream.write(json.dumps(record.summary()) + "\n")
    stream.flush()
