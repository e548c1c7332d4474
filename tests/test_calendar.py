# tests/test_calendar.py
from __future__ import annotations

from datetime import datetime, timezone

import pytest
from hypothesis import given, strategies as st

from ephemkit.core.calendar import (
    GAP_FIRST_DAY_NUMBER, GAP_LAST_DAY_NUMBER, AstroDate,
    date_from_day_number, day_number, days_in_month, is_leap_year,
)
from ephemkit.core.errors import InvalidDateError


def test_j2000_julian_day() -> None:
    assert AstroDate(2000, 1, 1, 12).jd() == 2451545.0


def test_julian_day_zero() -> None:
    # −4712 Jan 1.5 (astronomical), civil year −4713
    assert AstroDate(-4713, 1, 1, 12).jd() == 0.0


def test_reform_boundaries() -> None:
    assert AstroDate(1582, 10, 4).jd() == 2299159.5
    assert AstroDate(1582, 10, 15).jd() == 2299160.5


@pytest.mark.parametrize("day", range(5, 15))
def test_gap_days_rejected(day: int) -> None:
    with pytest.raises(InvalidDateError):
        AstroDate(1582, 10, day)
    with pytest.raises(InvalidDateError):
        day_number(day, 10, 1582)


def test_gap_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        AstroDate(1582, 10, 10)


@pytest.mark.parametrize("n", [GAP_FIRST_DAY_NUMBER, GAP_LAST_DAY_NUMBER])
def test_gap_day_numbers_rejected(n: int) -> None:
    with pytest.raises(InvalidDateError):
        date_from_day_number(n)


def test_day_number_anchor() -> None:
    assert day_number(1, 1, 2000) == 2451545
    assert date_from_day_number(2451545) == (1, 1, 2000)


def test_invalid_fields() -> None:
    with pytest.raises(InvalidDateError):
        AstroDate(0, 1, 1)
    with pytest.raises(InvalidDateError):
        AstroDate(2023, 2, 29)
    with pytest.raises(InvalidDateError):
        AstroDate(2023, 13, 1)
    with pytest.raises(InvalidDateError):
        AstroDate(2023, 1, 1, 25)


def test_leap_rules() -> None:
    assert is_leap_year(2000)
    assert not is_leap_year(1900)
    assert is_leap_year(1900, julian=True)
    assert days_in_month(2024, 2) == 29
    AstroDate(1500, 2, 29)   # Julian leap year


def test_immutable() -> None:
    d = AstroDate(2020, 5, 17)
    with pytest.raises(AttributeError):
        d.day = 3


def test_civil_year_and_accessors() -> None:
    d = AstroDate(-1, 3, 1, 6, 30, 15.5)
    assert d.year == 0
    assert d.civil_year == -1
    assert (d.hour, d.minute) == (6, 30)
    assert d.seconds == pytest.approx(15.5)
    assert d.is_julian


def test_datetime_round_trip() -> None:
    d = AstroDate(2000, 1, 1, 12)
    dt = d.to_datetime()
    assert dt == datetime(2000, 1, 1, 12, tzinfo=timezone.utc)
    assert AstroDate.from_datetime(dt) == d


def test_from_julian_day_before_reform() -> None:
    d = AstroDate.from_julian_day(2299159.5)
    assert (d.civil_year, d.month, d.day) == (1582, 10, 4)


@pytest.mark.parametrize("jd, ymd", [
    (2299150.5, (1582, 9, 25)),
    (2299155.5, (1582, 9, 30)),
    (2299158.5, (1582, 10, 3)),
])
def test_from_julian_day_last_julian_days_are_valid(jd: float, ymd) -> None:
    d = AstroDate.from_julian_day(jd)
    assert (d.civil_year, d.month, d.day) == ymd
    assert d.jd() == jd


@given(
    n=st.integers(min_value=day_number(1, 1, 1600), max_value=day_number(31, 12, 2400)),
)
def test_day_number_round_trip(n: int) -> None:
    d, m, y = date_from_day_number(n)
    assert day_number(d, m, y) == n


@given(
    y=st.integers(min_value=1600, max_value=2400),
    m=st.integers(min_value=1, max_value=12),
    d=st.integers(min_value=1, max_value=28),
    hh=st.integers(min_value=0, max_value=23),
)
def test_julian_day_round_trip(y: int, m: int, d: int, hh: int) -> None:
    src = AstroDate(y, m, d, hh)
    back = AstroDate.from_julian_day(src.jd())
    assert (back.civil_year, back.month, back.day) == (y, m, d)
    assert back.second == pytest.approx(src.second, abs=1e-3)
