"""Tests for report export."""

import io
import json
from datetime import datetime, timedelta

import pandas as pd
import pytest

from mdok.analysis.summarize import summarize_series
from mdok.core.schemas import ContainerLimits, ContainerSeries, HostInfo, Sample
from mdok.results.export import (
    CSV_COLUMNS,
    ExportFormat,
    export_csv,
    export_json,
    export_markdown,
    render,
    select_series,
)

T0 = datetime(2024, 1, 1, 12, 0, 0)
MIB = 1024 * 1024


def make_series(name: str = "web") -> ContainerSeries:
    samples = [
        Sample(
            timestamp=T0 + timedelta(seconds=5 * i),
            cpu_percent=10.0 * (i + 1),
            memory_usage=(100 + 10 * i) * MIB,
            net_tx_bytes=1000 * i,
            session_id="a" if i < 3 else "b",
        )
        for i in range(5)
    ]
    return ContainerSeries(
        container_id="abcdef1234567890",
        container_name=name,
        image_name="nginx:1.25",
        host=HostInfo(hostname="host1"),
        limits=ContainerLimits(memory_limit=120 * MIB),
        start_time=T0,
        samples=samples,
    )


class TestSelectSeries:
    """Tests for select_series."""

    def test_unfiltered_fills_summary(self):
        selected = select_series([make_series()])

        assert len(selected) == 1
        assert selected[0].summary is not None
        assert selected[0].summary.sample_count == 5

    def test_session_filter(self):
        selected = select_series([make_series()], session_id="a")

        assert selected[0].summary is not None
        assert selected[0].summary.sample_count == 3

    def test_time_filter(self):
        selected = select_series(
            [make_series()], start=T0 + timedelta(seconds=10), end=T0 + timedelta(seconds=15)
        )
        assert selected[0].summary is not None
        assert selected[0].summary.sample_count == 2

    def test_empty_results_dropped(self):
        assert select_series([make_series()], session_id="missing") == []
        assert select_series([make_series()], start=T0 + timedelta(days=1)) == []


class TestExporters:
    """Tests for the JSON, CSV and Markdown exporters."""

    def test_json(self):
        data = json.loads(export_json([summarize_series(make_series())]))

        assert data[0]["container_name"] == "web"
        assert data[0]["summary"]["sample_count"] == 5
        assert len(data[0]["samples"]) == 5

    def test_csv(self):
        text = export_csv([summarize_series(make_series()), make_series("no-summary")])
        df = pd.read_csv(io.StringIO(text))

        assert list(df.columns) == CSV_COLUMNS
        assert len(df) == 1
        assert df.loc[0, "Container"] == "web"
        assert df.loc[0, "Samples"] == 5
        assert df.loc[0, "CPU Max%"] == pytest.approx(50.0)
        assert df.loc[0, "Mem Max"] == "140.0 MB"
        assert df.loc[0, "Net Tx Total"] == "3.9 KB"

    def test_csv_header_only(self):
        text = export_csv([])
        assert text.strip() == ",".join(CSV_COLUMNS)

    def test_markdown(self):
        series = summarize_series(make_series())
        report = export_markdown("stack", [series], generated_at=T0)

        assert report.startswith("# Monitoring Report: stack")
        assert "Generated: 2024-01-01T12:00:00" in report
        assert "## web" in report
        assert "- **Container ID:** abcdef123456" in report
        assert "| CPU % | 10.0 | 30.0 | 50.0 |" in report
        assert "### Warnings" in report
        assert "- Memory usage reached 95%+ of limit - OOM risk" in report
        assert "### Instance Recommendation" in report

    def test_render_dispatch(self):
        series = [summarize_series(make_series())]

        assert render(ExportFormat.JSON, "stack", series).startswith("[")
        assert render("csv", "stack", series).startswith("Container,")
        assert render("md", "stack", series).startswith("# Monitoring Report")
        with pytest.raises(ValueError):
            render("html", "stack", series)
