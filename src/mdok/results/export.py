"""Report export: JSON, CSV and Markdown renderings of stored series.

All exporters take already-filtered series (see ``select_series``) and return
the rendered document as a string.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from enum import Enum

import pandas as pd

from mdok.analysis.sessions import filter_by_time, filter_to_session
from mdok.analysis.summarize import ensure_summary
from mdok.core.schemas import ContainerSeries
from mdok.utils.units import format_bytes

logger = logging.getLogger(__name__)


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    MARKDOWN = "markdown"


CSV_COLUMNS = [
    "Container",
    "Samples",
    "Duration",
    "CPU Min%",
    "CPU Avg%",
    "CPU Max%",
    "CPU P95%",
    "Mem Min",
    "Mem Avg",
    "Mem Max",
    "Mem P95",
    "Net Rx Total",
    "Net Tx Total",
    "Block Read Total",
    "Block Write Total",
]


def select_series(
    series_list: Iterable[ContainerSeries],
    session_id: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    region: str | None = None,
) -> list[ContainerSeries]:
    """Apply session and time-window filters, with derived fields filled in.

    Filtered views always recompute their summaries; unfiltered series only
    compute what is missing. Series left without samples are dropped.

    Args:
        series_list: Stored series of one configuration
        session_id: Keep only this session
        start: Drop samples before this time
        end: Drop samples after this time
        region: Pricing region for cost estimates

    Returns:
        Series ready for export
    """
    selected = []
    for series in series_list:
        if session_id is not None:
            series = filter_to_session(series, session_id, region)
        if start is not None or end is not None:
            series = filter_by_time(series, start, end, region)
        if not series.samples:
            logger.debug(f"No samples left for {series.container_name} after filtering")
            continue
        selected.append(ensure_summary(series, region))
    return selected


def export_json(series_list: Sequence[ContainerSeries]) -> str:
    """Full series documents as an indented JSON array."""
    return json.dumps([s.model_dump(mode="json") for s in series_list], indent=2)


def summary_dataframe(series_list: Sequence[ContainerSeries]) -> pd.DataFrame:
    """One row per summarised container, formatted for reports."""
    rows = []
    for series in series_list:
        s = series.summary
        if s is None:
            continue
        rows.append(
            {
                "Container": series.container_name,
                "Samples": s.sample_count,
                "Duration": s.duration,
                "CPU Min%": f"{s.cpu_percent.min:.2f}",
                "CPU Avg%": f"{s.cpu_percent.avg:.2f}",
                "CPU Max%": f"{s.cpu_percent.max:.2f}",
                "CPU P95%": f"{s.cpu_percent.p95:.2f}",
                "Mem Min": format_bytes(s.memory_usage.min),
                "Mem Avg": format_bytes(s.memory_usage.avg),
                "Mem Max": format_bytes(s.memory_usage.max),
                "Mem P95": format_bytes(s.memory_usage.p95),
                "Net Rx Total": format_bytes(s.net_rx_total),
                "Net Tx Total": format_bytes(s.net_tx_total),
                "Block Read Total": format_bytes(s.block_read_total),
                "Block Write Total": format_bytes(s.block_write_total),
            }
        )
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def export_csv(series_list: Sequence[ContainerSeries]) -> str:
    """Summary table as CSV (header plus one row per summarised container)."""
    return summary_dataframe(series_list).to_csv(index=False)


def _fmt_time(value: datetime | None) -> str:
    return value.isoformat(timespec="seconds") if value else "-"


def export_markdown(
    config_name: str,
    series_list: Sequence[ContainerSeries],
    generated_at: datetime | None = None,
) -> str:
    """Human-readable report with statistics, totals, warnings and advice."""
    generated_at = generated_at or datetime.now()
    lines = [f"# Monitoring Report: {config_name}", "", f"Generated: {_fmt_time(generated_at)}", ""]

    for series in series_list:
        lines += [
            f"## {series.container_name}",
            "",
            f"- **Container ID:** {series.short_id}",
            f"- **Image:** {series.image_name}",
            f"- **Host:** {series.host.hostname or '-'}",
            f"- **Start:** {_fmt_time(series.start_time)}",
            f"- **End:** {_fmt_time(series.end_time)}",
            "",
        ]

        s = series.summary
        if s is not None:
            cpu, mem, mem_pct = s.cpu_percent, s.memory_usage, s.memory_percent
            lines += [
                "### Summary Statistics",
                "",
                f"- **Samples:** {s.sample_count}",
                f"- **Duration:** {s.duration}",
                "",
                "| Metric | Min | Avg | Max | P95 | P99 |",
                "|--------|-----|-----|-----|-----|-----|",
                f"| CPU % | {cpu.min:.1f} | {cpu.avg:.1f} | {cpu.max:.1f} | {cpu.p95:.1f} "
                f"| {cpu.p99:.1f} |",
                "| Memory | "
                + " | ".join(format_bytes(v) for v in (mem.min, mem.avg, mem.max, mem.p95, mem.p99))
                + " |",
                f"| Memory % | {mem_pct.min:.1f} | {mem_pct.avg:.1f} | {mem_pct.max:.1f} "
                f"| {mem_pct.p95:.1f} | {mem_pct.p99:.1f} |",
                "",
                "### Network & I/O Totals",
                "",
                f"- **Network Rx:** {format_bytes(s.net_rx_total)}",
                f"- **Network Tx:** {format_bytes(s.net_tx_total)}",
                f"- **Block Read:** {format_bytes(s.block_read_total)}",
                f"- **Block Write:** {format_bytes(s.block_write_total)}",
                "",
            ]

            if s.network_breakdown is not None:
                nb = s.network_breakdown
                lines += [
                    f"### Traffic Breakdown (by {nb.source})",
                    "",
                    f"- **Inter-container:** {nb.inter_container_pct:.1f}%",
                    f"- **Internal:** {nb.internal_pct:.1f}%",
                    f"- **Internet:** {nb.internet_pct:.1f}%",
                    "",
                ]

            if s.warnings:
                lines += ["### Warnings", ""]
                lines += [f"- {w}" for w in s.warnings]
                lines.append("")

        if series.network_cost is not None:
            cost = series.network_cost
            lines += [
                "### Network Cost Estimate",
                "",
                f"- **Region:** {cost.region}",
                f"- **Egress:** {cost.egress_gb:.2f} GB",
                f"- **Estimated Cost:** ${cost.estimated_cost_usd:.2f}",
                "",
            ]

        if series.recommendation is not None:
            rec = series.recommendation
            lines += [
                "### Instance Recommendation",
                "",
                f"- **Type:** {rec.instance_type} ({rec.vcpu} vCPU, {rec.memory_gb:.1f} GB RAM)",
                f"- **Hourly Cost:** ${rec.hourly_price:.4f}",
                f"- **Reason:** {rec.reason}",
                "",
            ]

        lines += ["---", ""]

    return "\n".join(lines)


def render(
    fmt: ExportFormat | str,
    config_name: str,
    series_list: Sequence[ContainerSeries],
) -> str:
    """Render series in the requested format.

    Raises:
        ValueError: If the format is not supported
    """
    fmt = ExportFormat("markdown" if fmt == "md" else fmt)
    if fmt is ExportFormat.JSON:
        return export_json(series_list)
    if fmt is ExportFormat.CSV:
        return export_csv(series_list)
    return export_markdown(config_name, series_list)
