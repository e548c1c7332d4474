# ephemkit/core/calendar.py
# -----------------------------------------------------------------------------
# AstroDate and calendar arithmetic.
#
# • AstroDate(year, month, day, hour, minute, second): civil year numbering
#   (no year 0; -1 is 1 BC), Julian calendar before 1582-10-05, Gregorian after.
# • jd() / from_julian_day(): Meeus, Astronomical Algorithms ch. 7.
# • day_number() / date_from_day_number(): proleptic Gregorian day numbers
#   (integer JD at noon), astronomical year numbering.
# • The ten labels 1582-10-05 … 1582-10-14 never existed and raise
#   InvalidDateError from every entry point.
# -----------------------------------------------------------------------------
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
import math

from ephemkit.core.constants import SECONDS_PER_DAY
from ephemkit.core.errors import InvalidDateError

__all__ = [
    "AstroDate",
    "is_leap_year", "days_in_month",
    "day_number", "date_from_day_number",
    "GAP_FIRST_DAY_NUMBER", "GAP_LAST_DAY_NUMBER",
]

# Gregorian day numbers of the non-existent labels 1582-10-05 … 1582-10-14
GAP_FIRST_DAY_NUMBER = 2299151
GAP_LAST_DAY_NUMBER = 2299160

_GREGORIAN_START = (1582, 10, 15)
_MONTH_DAYS = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

# ───────────────────────────── Helpers ─────────────────────────────

def _in_gap(year: int, month: int, day: int) -> bool:
    return year == 1582 and month == 10 and 5 <= day <= 14

def _is_julian_label(year: int, month: int, day: int) -> bool:
    return (year, month, day) < (1582, 10, 5)

def is_leap_year(year: int, julian: Optional[bool] = None) -> bool:
    """
    Leap-year rule for an astronomical year. `julian` None picks the calendar
    in force (Julian up to 1582, Gregorian after).
    """
    if julian is None:
        julian = year < _GREGORIAN_START[0]
    if julian:
        return year % 4 == 0
    return (year % 4 == 0 and year % 100 != 0) or year % 400 == 0

def days_in_month(year: int, month: int, julian: Optional[bool] = None) -> int:
    if not 1 <= month <= 12:
        raise InvalidDateError("calendar", f"month out of range: {month}", month=month)
    if month == 2 and is_leap_year(year, julian):
        return 29
    return _MONTH_DAYS[month - 1]

# ───────────────────────────── Day numbers ─────────────────────────────

def day_number(day: int, month: int, year: int) -> int:
    """Proleptic Gregorian day number; day_number(1, 1, 2000) == 2451545."""
    if _in_gap(year, month, day):
        raise InvalidDateError("calendar", f"{year}-{month:02d}-{day:02d} falls in the 1582 reform gap",
                               year=year, month=month, day=day)
    a = (14 - month) // 12
    y = year + 4800 - a
    m = month + 12 * a - 3
    return day + (153 * m + 2) // 5 + 365 * y + y // 4 - y // 100 + y // 400 - 32045

def date_from_day_number(n: int) -> Tuple[int, int, int]:
    """Inverse of day_number → (day, month, year)."""
    n = int(n)
    if GAP_FIRST_DAY_NUMBER <= n <= GAP_LAST_DAY_NUMBER:
        raise InvalidDateError("calendar", f"day number {n} falls in the 1582 reform gap", day_number=n)
    a = n + 32044
    b = (4 * a + 3) // 146097
    c = a - 146097 * b // 4
    d = (4 * c + 3) // 1461
    e = c - 1461 * d // 4
    m = (5 * e + 2) // 153
    day = e - (153 * m + 2) // 5 + 1
    month = m + 3 - 12 * (m // 10)
    year = 100 * b + d - 4800 + m // 10
    return day, month, year

# ───────────────────────────── AstroDate ─────────────────────────────

class AstroDate:
    """Calendar instant with civil year numbering; immutable by convention."""

    __slots__ = ("year", "month", "day", "second")

    def __init__(self, year: int, month: int, day: int,
                 hour: int = 0, minute: int = 0, second: float = 0.0):
        if year == 0:
            raise InvalidDateError("calendar", "year 0 does not exist in civil numbering", year=year)
        if not 1 <= month <= 12:
            raise InvalidDateError("calendar", f"month out of range: {month}", month=month)
        astro_year = year + 1 if year < 0 else year
        if _in_gap(astro_year, month, day):
            raise InvalidDateError("calendar", f"{year}-{month:02d}-{day:02d} falls in the 1582 reform gap",
                                   year=year, month=month, day=day)
        julian = _is_julian_label(astro_year, month, day)
        if not 1 <= day <= days_in_month(astro_year, month, julian):
            raise InvalidDateError("calendar", f"day out of range: {year}-{month:02d}-{day:02d}",
                                   year=year, month=month, day=day)
        seconds = hour * 3600.0 + minute * 60.0 + float(second)
        if not 0.0 <= seconds <= SECONDS_PER_DAY:
            raise InvalidDateError("calendar", f"time of day out of range: {seconds} s", seconds=seconds)
        object.__setattr__(self, "year", astro_year)
        object.__setattr__(self, "month", month)
        object.__setattr__(self, "day", day)
        object.__setattr__(self, "second", seconds)

    def __setattr__(self, key, value):
        raise AttributeError("AstroDate is immutable")

    # ── accessors ──
    @property
    def civil_year(self) -> int:
        return self.year - 1 if self.year <= 0 else self.year

    @property
    def hour(self) -> int:
        return int(self.second // 3600)

    @property
    def minute(self) -> int:
        return int((self.second % 3600) // 60)

    @property
    def seconds(self) -> float:
        return self.second % 60.0

    @property
    def is_julian(self) -> bool:
        return _is_julian_label(self.year, self.month, self.day)

    def __repr__(self) -> str:
        return (f"AstroDate({self.civil_year}, {self.month}, {self.day}, "
                f"{self.hour}, {self.minute}, {self.seconds!r})")

    def __eq__(self, other) -> bool:
        if not isinstance(other, AstroDate):
            return NotImplemented
        return (self.year, self.month, self.day, self.second) == (other.year, other.month, other.day, other.second)

    def __hash__(self) -> int:
        return hash((self.year, self.month, self.day, self.second))

    # ── Julian day ──
    def jd(self, julian: Optional[bool] = None) -> float:
        """Julian day (Meeus). `julian` None picks the calendar for this label."""
        if julian is None:
            julian = self.is_julian
        y, m = self.year, self.month
        if m < 3:
            y -= 1
            m += 12
        if julian:
            b = 0
        else:
            a = y // 100
            b = 2 - a + a // 4
        return (self.second / SECONDS_PER_DAY
                + math.floor(365.25 * (y + 4716)) + math.floor(30.6001 * (m + 1))
                + self.day + b - 1524.5)

    @classmethod
    def from_julian_day(cls, jd: float) -> "AstroDate":
        """
        Calendar date for a Julian day; Julian calendar before JD 2299160.5.

        Never raises for the ten days before the reform: JD 2299150.5 to
        2299159.5 are ordinary Julian-calendar dates (1582-09-25 .. 10-04).
        The gap only exists on the Gregorian side, where the constructor
        rejects 1582-10-05 .. 10-14.
        """
        if not math.isfinite(jd):
            raise InvalidDateError("calendar", "Julian day must be finite", jd=jd)
        z = math.floor(jd + 0.5)
        f = (jd + 0.5) - z
        if z >= 2299161:
            alpha = int((z - 1867216.25) / 36524.25)
            a = z + 1 + alpha - alpha // 4
        else:
            a = z
        b = a + 1524
        c = math.floor((b - 122.1) / 365.25)
        d = math.floor(365.25 * c)
        e = int((b - d) / 30.6001)
        exact_day = f + b - d - int(30.6001 * e)
        day = int(exact_day)
        month = e - 1 if e < 14 else e - 13
        year = c - 4716 if month > 2 else c - 4715
        second = (exact_day - day) * SECONDS_PER_DAY
        civil = year - 1 if year <= 0 else year
        return cls(civil, month, day, 0, 0, second)

    # ── stdlib interop ──
    def to_datetime(self) -> datetime:
        """UTC-aware datetime (proleptic Gregorian, years 1..9999)."""
        jdn = math.floor(self.jd() + 0.5)
        frac = self.jd() + 0.5 - jdn
        base = datetime.fromordinal(jdn - 1721425).replace(tzinfo=timezone.utc)
        return base + timedelta(seconds=round(frac * SECONDS_PER_DAY, 6))

    @classmethod
    def from_datetime(cls, dt: datetime) -> "AstroDate":
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc)
        sec = dt.hour * 3600 + dt.minute * 60 + dt.second + dt.microsecond / 1e6
        return cls.from_julian_day(dt.toordinal() + 1721424.5 + sec / SECONDS_PER_DAY)
