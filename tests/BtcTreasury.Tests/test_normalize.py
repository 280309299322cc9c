"""Tests for value normalisation of upstream numbers and dates."""
from datetime import datetime, timezone

import pytest

from btc_treasury.sync.normalize import normalize_date, normalize_epoch_ms, normalize_number


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1.5M", 1_500_000.0),
        ("2K", 2_000.0),
        ("1.5B", 1_500_000_000.0),
        ("$1,234.5M", 1_234_500_000.0),
        ("2.3x", 2.3),
        ("-12.5%", -12.5),
        ("1,000", 1000.0),
        (42, 42.0),
        (3.5, 3.5),
    ],
)
def test_normalize_number_applies_markers(raw, expected):
    assert normalize_number(raw) == pytest.approx(expected)


def test_normalize_number_lowercase_marker():
    assert normalize_number("1.2k") == pytest.approx(1200.0)


@pytest.mark.parametrize("raw", ["", "   ", "abc", "n/a", None, "--", float("nan")])
def test_normalize_number_returns_zero_for_garbage(raw):
    assert normalize_number(raw) == 0.0


@pytest.mark.parametrize("raw", ["1e3", "2.5E-4", "1e3M"])
def test_normalize_number_rejects_exponent_strings(raw):
    assert normalize_number(raw) == 0.0
    assert normalize_number(raw, default=None) is None


def test_normalize_number_custom_default():
    assert normalize_number("abc", default=None) is None
    assert normalize_number("7", default=None) == 7.0


def test_normalize_date_parses_iso_with_z():
    assert normalize_date("2024-01-15T00:00:00Z") == datetime(2024, 1, 15, tzinfo=timezone.utc)


def test_normalize_date_plain_date_is_utc_midnight():
    assert normalize_date("2024-01-15") == datetime(2024, 1, 15, tzinfo=timezone.utc)


def test_normalize_date_epoch_millis():
    expected = datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)
    assert normalize_date(1_700_000_000_000) == expected
    assert normalize_date("1700000000000") == expected


def test_normalize_date_digit_string_matches_number():
    assert normalize_date("86400000") == normalize_date(86_400_000) == datetime(1970, 1, 2, tzinfo=timezone.utc)


def test_normalize_date_textual_format():
    assert normalize_date("Jan 15, 2024") == datetime(2024, 1, 15, tzinfo=timezone.utc)


@pytest.mark.parametrize("raw", [None, "", "not a date", "2024-13-45", True])
def test_normalize_date_signals_invalid(raw):
    assert normalize_date(raw) is None


def test_normalize_date_converts_offsets_to_utc():
    assert normalize_date("2024-01-15T02:00:00+02:00") == datetime(2024, 1, 15, tzinfo=timezone.utc)


def test_normalize_epoch_ms():
    assert normalize_epoch_ms(1000) == 1000
    assert normalize_epoch_ms("2000") == 2000
    assert normalize_epoch_ms("1970-01-01T00:00:01Z") == 1000
    assert normalize_epoch_ms("bad") is None
