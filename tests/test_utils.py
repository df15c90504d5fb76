"""
Tests for parsing and formatting helpers.
"""

import math

import pytest

from mechanic_booking import utils
from mechanic_booking.config import Settings


@pytest.mark.parametrize(
    "value, expected",
    [("12.5", 12.5), (3, 3.0), (None, 0.0), ("", 0.0), ("abc", 0.0), (True, 0.0), (math.inf, 0.0), ("nan", 0.0)],
)
def test_to_float(value, expected):
    assert utils.to_float(value) == expected


def test_to_int_truncates():
    assert utils.to_int("90.9") == 90
    assert utils.to_int("x", default=5) == 5


def test_to_text():
    assert utils.to_text(12) == "12"
    assert utils.to_text(None) == ""
    assert utils.to_text({"a": 1}) == ""


def test_split_dates():
    assert utils.split_dates(" 2024-01-01, ,2024-01-02,") == ["2024-01-01", "2024-01-02"]
    assert utils.split_dates("") == []


@pytest.mark.parametrize("code", ["B1 1AA", "SW1A 1AA", "m11ae", "GIR 0AA", "EC1A 1BB"])
def test_valid_postcodes(code):
    assert utils.is_valid_postcode(code)


@pytest.mark.parametrize("code", ["", "12345", "B1", "ZZZ ZZZ", "B1 1AA extra"])
def test_invalid_postcodes(code):
    assert not utils.is_valid_postcode(code)


@pytest.mark.parametrize(
    "value, expected",
    [("2024-04-20T10:15:00Z", "20-04-2024"), ("2023-12-01", "01-12-2023"), ("not a date", ""), ("", "")],
)
def test_format_date(value, expected):
    assert utils.format_date(value) == expected


@pytest.mark.parametrize("minutes, expected", [(45, "45 min"), (60, "1 hr"), (90, "1 hr 30 min"), (-3, "0 min")])
def test_format_duration(minutes, expected):
    assert utils.format_duration(minutes) == expected


def test_first_non_empty():
    assert utils.first_non_empty([None, "  ", " Sam "]) == "Sam"
    assert utils.first_non_empty([]) is None


def test_temporary_ids_are_unique():
    assert utils.new_temporary_id("temp-") != utils.new_temporary_id("temp-")


class TestSettings:
    def test_defaults(self):
        settings = Settings()

        assert settings.vat_rate == 0.20
        assert settings.vat_multiplier == pytest.approx(1.2)
        assert settings.temp_id_prefix == "temp-"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("MECHANIC_BOOKING_VAT_RATE", "0.05")

        assert Settings().vat_rate == 0.05

    @pytest.mark.parametrize("rate", [-0.1, 1.0, 20])
    def test_vat_rate_is_a_fraction(self, rate):
        with pytest.raises(ValueError):
            Settings(vat_rate=rate)
