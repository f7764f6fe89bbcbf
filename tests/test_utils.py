"""Tests for the shared parsing and rounding helpers."""

import json
from datetime import date, datetime, timezone

import pytest

from scripts.lib.utils import atomic_write_json, days_between, parse_ts, round_half_up, safe_float


class TestSafeFloat:
    @pytest.mark.parametrize("value, expected", [
        ("7.5", 7.5), (" 3 ", 3.0), (4, 4.0), (0, 0.0), ("-2", -2.0),
    ])
    def test_parses_numbers(self, value, expected):
        assert safe_float(value) == expected

    @pytest.mark.parametrize("value", [
        None, "", "bad", "NaN", "Infinity", float("inf"), True, [], {},
    ])
    def test_rejects_non_numbers(self, value):
        assert safe_float(value) is None

    def test_default(self):
        assert safe_float("x", default=0.0) == 0.0


class TestParseTs:
    def test_iso_with_z(self):
        assert parse_ts("2024-03-05T14:30:00Z") == datetime(2024, 3, 5, 14, 30, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        assert parse_ts("2024-03-05").tzinfo == timezone.utc

    def test_date_object(self):
        assert parse_ts(date(2024, 1, 2)) == datetime(2024, 1, 2, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "nope", True, float("nan"), {}])
    def test_unparseable(self, value):
        assert parse_ts(value) is None


class TestDaysBetween:
    def test_absolute(self):
        a = parse_ts("2024-01-10")
        b = parse_ts("2024-01-01")
        assert days_between(a, b) == 9.0
        assert days_between(b, a) == 9.0

    def test_missing(self):
        assert days_between(None, parse_ts("2024-01-01")) is None


class TestRoundHalfUp:
    @pytest.mark.parametrize("value, digits, expected", [
        (2.5, 0, 3.0), (66.666, 0, 67.0), (0.25, 1, 0.3), (1.005, 2, 1.01), (12.5, 0, 13.0),
    ])
    def test_rounds_halves_up(self, value, digits, expected):
        assert round_half_up(value, digits) == expected

    @pytest.mark.parametrize("value, digits", [(1e30, 0), (1e308, 2), (-1e300, 1)])
    def test_large_values_keep_their_magnitude(self, value, digits):
        assert round_half_up(value, digits) == value

    def test_non_finite_passes_through(self):
        assert round_half_up(float("inf"), 2) == float("inf")


class TestAtomicWriteJson:
    def test_writes_file(self, tmp_path):
        target = tmp_path / "nested" / "out.json"
        assert atomic_write_json({"a": 1}, target) is True
        assert json.loads(target.read_text(encoding="utf-8")) == {"a": 1}
        assert not target.with_suffix(".json.tmp").exists()
