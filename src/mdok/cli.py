"""CLI for mdok.

Provides a rich command-line interface using Typer for:
- Managing monitoring configurations
- Running the collection loop in the foreground
- Viewing current and historical sessions
- Exporting reports
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mdok.analysis.advisor import recommend_both_architectures
from mdok.analysis.sessions import filter_to_current_session, filter_to_session, list_sessions
from mdok.analysis.summarize import ensure_summary
from mdok.core.config import Workspace
from mdok.core.schemas import ContainerSeries, CpuBaseline, MetricKind, MonitorConfig
from mdok.monitoring.base import RuntimeClientError
from mdok.monitoring.docker_client import DockerRuntimeClient
from mdok.monitoring.monitor import Monitor
from mdok.monitoring.network import is_proxy_container
from mdok.results.export import ExportFormat, render, select_series
from mdok.results.storage import SeriesStorage
from mdok.utils.logging import setup_logging
from mdok.utils.units import format_bytes, parse_duration

app = typer.Typer(
    name="mdok",
    help="Docker container metrics monitor",
    add_completion=False,
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    home: Path | None = typer.Option(
        None, "--home", envvar="MDOK_HOME", help="Workspace directory (default: ~/.mdok)"
    ),
) -> None:
    """Monitor Docker containers and report resource usage, traffic and sizing."""
    ctx.obj = Workspace(home.expanduser()) if home is not None else Workspace.default()


def _storage(ctx: typer.Context) -> SeriesStorage:
    return SeriesStorage(ctx.obj)


def _load_config_or_exit(storage: SeriesStorage, name: str) -> MonitorConfig:
    try:
        return storage.load_config(name)
    except FileNotFoundError as e:
        console.print(f"[bold red]Configuration '{name}' not found[/]")
        raise typer.Exit(1) from e
    except (ValueError, ValidationError, yaml.YAMLError) as e:
        console.print(f"[bold red]Error loading config: {e}[/]")
        raise typer.Exit(1) from e


def _open_client() -> DockerRuntimeClient:
    try:
        client = DockerRuntimeClient()
        client.ping()
    except RuntimeClientError as e:
        console.print(f"[bold red]Cannot reach Docker: {e}[/]")
        raise typer.Exit(1) from e
    return client


@app.command()
def create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Configuration name"),
    containers: list[str] = typer.Option(
        ..., "--container", "-c", help="Container name or id (repeatable)"
    ),
    interval: int = typer.Option(5, "--interval", "-i", help="Sampling interval in seconds"),
    region: str = typer.Option("us-east-1", "--region", help="Pricing region for egress cost"),
    proxy_patterns: list[str] | None = typer.Option(
        None, "--proxy-pattern", help="Extra image/name substring treated as a proxy (repeatable)"
    ),
    cpu_baseline: CpuBaseline = typer.Option(
        CpuBaseline.RUNTIME, "--cpu-baseline", help="CPU delta baseline: runtime or local"
    ),
    classify_network: bool = typer.Option(
        True, "--classify-network/--no-classify-network", help="Classify traffic by destination"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing configuration"),
) -> None:
    """Create a monitoring configuration."""
    storage = _storage(ctx)
    if storage.config_exists(name) and not force:
        console.print(f"[bold red]Configuration '{name}' already exists (use --force)[/]")
        raise typer.Exit(1)

    try:
        config = MonitorConfig(
            name=name,
            containers=containers,
            interval=interval,
            region=region,
            proxy_patterns=proxy_patterns or [],
            cpu_baseline=cpu_baseline,
            classify_network=classify_network,
        )
    except ValidationError as e:
        console.print(f"[bold red]Invalid configuration: {e}[/]")
        raise typer.Exit(1) from e

    path = storage.save_config(config)
    console.print(f"[bold green]Configuration '{name}' written to {path}[/]")
    _show_config_summary(config)


@app.command()
def configs(ctx: typer.Context) -> None:
    """List monitoring configurations."""
    items = _storage(ctx).list_configs()
    if not items:
        console.print("[yellow]No configurations found[/]")
        return

    table = Table(title="Configurations")
    table.add_column("Name", style="cyan")
    table.add_column("Containers", style="white")
    table.add_column("Interval", justify="right")
    table.add_column("Region")
    table.add_column("Created", style="dim")
    for config in items:
        table.add_row(
            config.name,
            ", ".join(config.containers),
            f"{config.interval}s",
            config.region,
            config.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def delete(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Configuration name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a configuration together with its data and log."""
    storage = _storage(ctx)
    if not storage.config_exists(name):
        console.print(f"[bold red]Configuration '{name}' not found[/]")
        raise typer.Exit(1)
    if not yes:
        typer.confirm(f"Delete '{name}' and all of its data?", abort=True)

    storage.delete_config(name)
    console.print(f"[bold green]Deleted '{name}'[/]")


@app.command()
def containers() -> None:
    """List running containers."""
    client = _open_client()
    try:
        items = client.list_containers()
    except RuntimeClientError as e:
        console.print(f"[bold red]{e}[/]")
        raise typer.Exit(1) from e
    finally:
        client.close()

    table = Table(title="Running Containers")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Image")
    table.add_column("Status", style="green")
    table.add_column("Networks")
    table.add_column("Proxy", justify="center")
    for c in sorted(items, key=lambda c: c.name):
        table.add_row(
            c.short_id,
            c.name,
            c.image,
            c.status,
            ", ".join(c.networks) or "-",
            "yes" if is_proxy_container(c) else "",
        )
    console.print(table)


@app.command()
def start(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Configuration name"),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Logging level"),
    json_logs: bool = typer.Option(
        False, "--json-logs", help="Output logs in JSON format (for programmatic parsing)"
    ),
) -> None:
    """Run the collection loop in the foreground until interrupted."""
    workspace: Workspace = ctx.obj
    storage = SeriesStorage(workspace)
    config = _load_config_or_exit(storage, name)

    setup_logging(
        level=log_level,
        log_file=workspace.log_file(name),
        json_format=json_logs,
        rich_console=not json_logs,
    )

    client = _open_client()
    monitor = Monitor(config, client, storage)
    try:
        monitor.initialize()
    except RuntimeClientError as e:
        client.close()
        console.print(f"[bold red]Failed to start monitoring: {e}[/]")
        raise typer.Exit(1) from e

    console.print(
        f"[bold blue]Monitoring {', '.join(monitor.active_containers)} every "
        f"{config.interval}s (Ctrl+C to stop)[/]"
    )
    monitor.run()
    console.print(f"[bold green]Data saved to {workspace.data_dir(name)}[/]")


@app.command()
def view(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Configuration name"),
    session: str | None = typer.Option(None, "--session", "-s", help="Session id to show"),
) -> None:
    """Show statistics for the latest (or a given) session."""
    storage = _storage(ctx)
    config = _load_config_or_exit(storage, name)
    series_list = storage.load_all(name)
    if not series_list:
        console.print(f"[yellow]No monitoring data found for '{name}'[/]")
        raise typer.Exit(1)

    shown = 0
    for series in series_list:
        if session is not None:
            series = filter_to_session(series, session, config.region)
        else:
            series = filter_to_current_session(series, config.region)
        if not series.samples:
            continue
        _show_series(ensure_summary(series, config.region))
        shown += 1

    if shown == 0:
        if session is None:
            console.print(f"[yellow]No samples recorded yet for '{name}'[/]")
        else:
            console.print(f"[yellow]Session '{session}' not found for '{name}'[/]")
        raise typer.Exit(1)


@app.command()
def logs(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Configuration name"),
    lines: int = typer.Option(50, "--lines", "-n", min=1, help="Number of lines to show"),
) -> None:
    """Show the last lines of a configuration's collection log."""
    storage = _storage(ctx)
    if not storage.config_exists(name):
        console.print(f"[bold red]Configuration '{name}' not found[/]")
        raise typer.Exit(1)

    tail = storage.tail_log(name, lines)
    if tail is None:
        console.print("[yellow]No logs found.[/]")
        return
    for line in tail:
        console.print(line, markup=False, highlight=False, soft_wrap=True)


@app.command()
def sessions(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Configuration name"),
) -> None:
    """List recorded sessions, newest first."""
    storage = _storage(ctx)
    _load_config_or_exit(storage, name)
    infos = list_sessions(storage.load_all(name), name)
    if not infos:
        console.print(f"[yellow]No sessions recorded for '{name}'[/]")
        return

    table = Table(title=f"Sessions: {name}")
    table.add_column("Session", style="cyan")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Samples", justify="right")
    table.add_column("Containers")
    for info in infos:
        table.add_row(
            info.session_id,
            info.start_time.strftime("%Y-%m-%d %H:%M:%S"),
            info.end_time.strftime("%Y-%m-%d %H:%M:%S"),
            str(info.sample_count),
            ", ".join(info.containers),
        )
    console.print(table)


@app.command()
def export(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Configuration name"),
    output_format: ExportFormat = typer.Option(
        ExportFormat.JSON, "--format", "-f", help="Output format: json, csv, markdown"
    ),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
    session: str | None = typer.Option(None, "--session", "-s", help="Only this session"),
    last: str | None = typer.Option(None, "--last", help="Only the last duration, e.g. 1h, 30m, 2d"),
    from_time: datetime | None = typer.Option(None, "--from", help="Start time (ISO-8601)"),
    to_time: datetime | None = typer.Option(None, "--to", help="End time (ISO-8601)"),
) -> None:
    """Export monitoring data as JSON, CSV or Markdown."""
    storage = _storage(ctx)
    config = _load_config_or_exit(storage, name)

    if last is not None:
        try:
            window = parse_duration(last)
        except ValueError as e:
            console.print(f"[bold red]Invalid --last value: {e}[/]")
            raise typer.Exit(1) from e
        to_time = datetime.now()
        from_time = to_time - window

    series_list = select_series(
        storage.load_all(name),
        session_id=session,
        start=from_time,
        end=to_time,
        region=config.region,
    )
    if not series_list:
        console.print(f"[bold red]No monitoring data found for '{name}'[/]")
        raise typer.Exit(1)

    document = render(output_format, name, series_list)
    if output is None:
        typer.echo(document, nl=False)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(document, encoding="utf-8")
    console.print(f"[bold green]Exported to {output}[/]")


def _show_config_summary(config: MonitorConfig) -> None:
    """Display a summary of a monitoring configuration."""
    table = Table(title="Monitoring Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Name", config.name)
    table.add_row("Containers", ", ".join(config.containers))
    table.add_row("Interval", f"{config.interval}s")
    table.add_row("Region", config.region)
    table.add_row("CPU Baseline", config.cpu_baseline.value)
    table.add_row("Classify Network", "yes" if config.classify_network else "no")
    if config.proxy_patterns:
        table.add_row("Proxy Patterns", ", ".join(config.proxy_patterns))

    console.print(table)


_METRIC_ROWS = (
    (MetricKind.CPU_PERCENT, "CPU %", lambda v: f"{v:.1f}"),
    (MetricKind.MEMORY_USAGE, "Memory", format_bytes),
    (MetricKind.MEMORY_PERCENT, "Memory %", lambda v: f"{v:.1f}"),
    (MetricKind.NET_RX_RATE, "Net Rx/s", format_bytes),
    (MetricKind.NET_TX_RATE, "Net Tx/s", format_bytes),
    (MetricKind.BLOCK_READ_RATE, "Block Read/s", format_bytes),
    (MetricKind.BLOCK_WRITE_RATE, "Block Write/s", format_bytes),
    (MetricKind.PIDS_COUNT, "PIDs", lambda v: f"{v:.0f}"),
)


def _show_series(series: ContainerSeries) -> None:
    """Display one container's statistics, warnings and advice."""
    s = series.summary
    if s is None:
        return

    info = Table(show_header=False, box=None, padding=(0, 2))
    info.add_column("Field", style="dim")
    info.add_column("Value", style="bold")
    info.add_row("Container ID", series.short_id)
    info.add_row("Image", series.image_name)
    info.add_row("Session", series.session_id or "-")
    info.add_row("Samples", str(s.sample_count))
    info.add_row("Duration", s.duration)
    info.add_row(
        "Totals",
        f"rx {format_bytes(s.net_rx_total)} | tx {format_bytes(s.net_tx_total)} | "
        f"read {format_bytes(s.block_read_total)} | write {format_bytes(s.block_write_total)}",
    )
    if s.network_breakdown is not None:
        nb = s.network_breakdown
        info.add_row(
            f"Traffic ({nb.source})",
            f"inter-container {nb.inter_container_pct:.1f}% | internal {nb.internal_pct:.1f}% | "
            f"internet {nb.internet_pct:.1f}%",
        )
    if series.network_cost is not None:
        cost = series.network_cost
        info.add_row(
            "Egress Cost",
            f"${cost.estimated_cost_usd:.2f} ({cost.egress_gb:.2f} GB, {cost.region})",
        )

    dual = recommend_both_architectures(s)
    for rec in (dual.x86, dual.arm):
        if rec is not None:
            info.add_row(
                f"Instance ({rec.architecture.value})",
                f"{rec.instance_type} ({rec.vcpu} vCPU, {rec.memory_gb:.1f} GB) "
                f"${rec.hourly_price:.4f}/h - {rec.reason}",
            )
    if dual.arm_savings_pct is not None:
        info.add_row("ARM Savings", f"{dual.arm_savings_pct:.0f}%")

    metrics = Table(title="Statistics")
    metrics.add_column("Metric", style="cyan")
    for col in ("Min", "Avg", "Max", "P95", "P99"):
        metrics.add_column(col, justify="right")
    for kind, label, fmt in _METRIC_ROWS:
        m = s.metric(kind)
        metrics.add_row(label, *(fmt(v) for v in (m.min, m.avg, m.max, m.p95, m.p99)))

    console.print(
        Panel(info, title=f"[bold]{series.container_name}[/]", border_style="blue")
    )
    console.print(metrics)
    for warning in s.warnings:
        console.print(f"[bold yellow]! {warning}[/]")
    console.print()


if __name__ == "__main__":
    app()
