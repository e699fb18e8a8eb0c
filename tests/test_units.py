"""Tests for unit formatting helpers."""

from datetime import timedelta

import pytest

from mdok.utils.units import bytes_to_gib, format_bytes, format_duration, parse_duration


class TestFormatBytes:
    def test_small_values(self):
        assert format_bytes(0) == "0 B"
        assert format_bytes(512) == "512 B"

    def test_binary_units(self):
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(1024 * 1024) == "1.0 MB"
        assert format_bytes(3 * 1024**3) == "3.0 GB"

    def test_negative(self):
        assert format_bytes(-2048) == "-2.0 KB"

    def test_bytes_to_gib(self):
        assert bytes_to_gib(2 * 1024**3) == pytest.approx(2.0)


class TestFormatDuration:
    def test_formats(self):
        assert format_duration(0) == "0s"
        assert format_duration(45) == "45s"
        assert format_duration(125) == "2m5s"
        assert format_duration(3723) == "1h2m3s"

    def test_rounds_to_seconds(self):
        assert format_duration(9.6) == "10s"


class TestParseDuration:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("45s", timedelta(seconds=45)),
            ("30m", timedelta(minutes=30)),
            ("1h", timedelta(hours=1)),
            ("2d", timedelta(days=2)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("1.5h", timedelta(minutes=90)),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "10", "5x", "h1"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)
