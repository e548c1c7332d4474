# ephemkit/core/timescales.py
# -----------------------------------------------------------------------------
# Time-scale converter (ERFA aligned)
#
# Public API:
#   TimeConverter(settings).to_julian_day(instant, observer, scale) -> float
#   TimeConverter(settings).convert(instant, observer, scale)       -> TimeInstant
#   delta_t_seconds(jd)                                              -> TT − UT1 [s]
#
# Chains:
#   LOCAL ↔ UTC          zoneinfo (DST-aware, fold=0 preferred) or fixed tz_hours
#   UTC ≥ 1960 → TT      erfa.utctai → erfa.taitt     (UT1 = UTC + DUT1, erfa.utcut1)
#   UTC < 1960 → TT      UT1 = UTC, TT = UT1 + ΔT (Espenak & Meeus polynomials)
#   TT ↔ TDB             erfa.dtdb at the observer's geocentric position
# Two-part JD arithmetic is kept inside every ERFA call.
# -----------------------------------------------------------------------------
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging
import math

import erfa  # pyERFA

from ephemkit.core.constants import SECONDS_PER_DAY
from ephemkit.core.errors import InvalidDateError
from ephemkit.core.models import ObserverLocation, TimeInstant, TimeScale
from ephemkit.utils.config import Settings, load_settings

log = logging.getLogger(__name__)

__all__ = ["TimeConverter", "delta_t_seconds", "JD_UTC_1960"]

JD_UTC_1960: float = 2436934.5   # 1960-01-01 00:00 UTC; ERFA leap-second table start
_JD_UNIX_EPOCH: float = 2440587.5

# ───────────────────────────── Helpers ─────────────────────────────

def _split_jd(jd: float) -> Tuple[float, float]:
    d1 = math.floor(jd)
    return float(d1), float(jd - d1)

def _jd_to_naive(jd: float) -> datetime:
    """JD → naive datetime (proleptic Gregorian, µs resolution)."""
    return datetime(1970, 1, 1) + timedelta(days=jd - _JD_UNIX_EPOCH)

def _fold_offsets(z: ZoneInfo, naive_local: datetime) -> Tuple[int, List[str]]:
    """
    Compute tz offset seconds for a naive local datetime.
    Detect DST ambiguity; prefer fold=0 but warn if fold=1 differs.
    """
    warnings: List[str] = []
    off0 = naive_local.replace(tzinfo=z, fold=0).utcoffset()
    if off0 is None:
        raise ValueError("Timezone returned None utcoffset()")
    off1 = naive_local.replace(tzinfo=z, fold=1).utcoffset()
    if off1 is not None and off1 != off0:
        warnings.append("dst_ambiguous")
    return int(off0.total_seconds()), warnings

def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as e:
        raise ValueError(f"Unknown IANA time zone '{name}'") from e

# ───────────────────────────── ΔT ─────────────────────────────

def _poly(t: float, coeffs: Tuple[float, ...]) -> float:
    acc = 0.0
    for c in reversed(coeffs):
        acc = acc * t + c
    return acc

def delta_t_seconds(jd: float) -> float:
    """TT − UT1 in seconds, Espenak & Meeus (NASA eclipse site) fits."""
    y = 2000.0 + (jd - 2451544.5) / 365.2425
    if y < -500.0 or y >= 2150.0:
        u = (y - 1820.0) / 100.0
        return -20.0 + 32.0 * u * u
    if y < 500.0:
        return _poly(y / 100.0, (10583.6, -1014.41, 33.78311, -5.952053,
                                 -0.1798452, 0.022174192, 0.0090316521))
    if y < 1600.0:
        return _poly((y - 1000.0) / 100.0, (1574.2, -556.01, 71.23472, 0.319781,
                                            -0.8503463, -0.005050998, 0.0083572073))
    if y < 1700.0:
        return _poly(y - 1600.0, (120.0, -0.9808, -0.01532, 1.0 / 7129.0))
    if y < 1800.0:
        return _poly(y - 1700.0, (8.83, 0.1603, -0.0059285, 0.00013336, -1.0 / 1174000.0))
    if y < 1860.0:
        return _poly(y - 1800.0, (13.72, -0.332447, 0.0068612, 0.0041116, -0.00037436,
                                  0.0000121272, -0.0000001699, 0.000000000875))
    if y < 1900.0:
        return _poly(y - 1860.0, (7.62, 0.5737, -0.251754, 0.01680668, -0.0004473624,
                                  1.0 / 233174.0))
    if y < 1920.0:
        return _poly(y - 1900.0, (-2.79, 1.494119, -0.0598939, 0.0061966, -0.000197))
    if y < 1941.0:
        return _poly(y - 1920.0, (21.20, 0.84493, -0.076100, 0.0020936))
    if y < 1961.0:
        return _poly(y - 1950.0, (29.07, 0.407, -1.0 / 233.0, 1.0 / 2547.0))
    if y < 1986.0:
        return _poly(y - 1975.0, (45.45, 1.067, -1.0 / 260.0, -1.0 / 718.0))
    if y < 2005.0:
        return _poly(y - 2000.0, (63.86, 0.3345, -0.060374, 0.0017275, 0.000651814, 0.00002373599))
    if y < 2050.0:
        return _poly(y - 2000.0, (62.92, 0.32217, 0.005589))
    u = (y - 1820.0) / 100.0
    return -20.0 + 32.0 * u * u - 0.5628 * (2150.0 - y)

# ───────────────────────────── Converter ─────────────────────────────

class TimeConverter:
    """Julian days in any supported scale for an instant seen by an observer."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or load_settings()

    # ── LOCAL ↔ UTC ──
    def _local_to_utc(self, jd_local: float, observer: Optional[ObserverLocation]) -> float:
        if observer is None:
            return jd_local
        if observer.zone:
            z = _zone(observer.zone)
            off, warns = _fold_offsets(z, _jd_to_naive(jd_local))
            if warns:
                log.debug("Local instant %.6f in %s: %s", jd_local, observer.zone, ",".join(warns))
            return jd_local - off / SECONDS_PER_DAY
        return jd_local - observer.tz_hours / 24.0

    def _utc_to_local(self, jd_utc: float, observer: Optional[ObserverLocation]) -> float:
        if observer is None:
            return jd_utc
        if observer.zone:
            z = _zone(observer.zone)
            aware = _jd_to_naive(jd_utc).replace(tzinfo=timezone.utc).astimezone(z)
            off = aware.utcoffset()
            return jd_utc + (off.total_seconds() if off else 0.0) / SECONDS_PER_DAY
        return jd_utc + observer.tz_hours / 24.0

    # ── UTC ↔ TT / UT1 ──
    def _utc_to_tt(self, jd_utc: float) -> float:
        if jd_utc >= JD_UTC_1960:
            tai1, tai2 = erfa.utctai(*_split_jd(jd_utc))
            tt1, tt2 = erfa.taitt(tai1, tai2)
            return math.fsum((tt1, tt2))
        return jd_utc + delta_t_seconds(jd_utc) / SECONDS_PER_DAY

    def _utc_to_ut1(self, jd_utc: float) -> float:
        if jd_utc >= JD_UTC_1960:
            u1, u2 = erfa.utcut1(*_split_jd(jd_utc), float(self.settings.dut1_seconds))
            return math.fsum((u1, u2))
        return jd_utc

    def _ut1_to_utc(self, jd_ut1: float) -> float:
        if jd_ut1 >= JD_UTC_1960:
            u1, u2 = erfa.ut1utc(*_split_jd(jd_ut1), float(self.settings.dut1_seconds))
            return math.fsum((u1, u2))
        return jd_ut1

    def _tt_to_utc(self, jd_tt: float) -> float:
        # ΔT near 1960 is ~33 s; the ERFA branch starts once TT clears that
        if jd_tt >= JD_UTC_1960 + 40.0 / SECONDS_PER_DAY:
            tai1, tai2 = erfa.tttai(*_split_jd(jd_tt))
            u1, u2 = erfa.taiutc(tai1, tai2)
            return math.fsum((u1, u2))
        ut1 = jd_tt - delta_t_seconds(jd_tt) / SECONDS_PER_DAY
        return jd_tt - delta_t_seconds(ut1) / SECONDS_PER_DAY

    # ── TT ↔ TDB ──
    @staticmethod
    def _observer_uv(observer: Optional[ObserverLocation]) -> Tuple[float, float, float]:
        if observer is None:
            return 0.0, 0.0, 0.0
        xyz = erfa.gd2gc(1, observer.longitude, observer.latitude, observer.height)
        u = math.hypot(float(xyz[0]), float(xyz[1])) / 1000.0
        return observer.longitude, u, float(xyz[2]) / 1000.0

    def _tdb_minus_tt(self, jd: float, jd_ut1: float, observer: Optional[ObserverLocation]) -> float:
        elong, u, v = self._observer_uv(observer)
        ut = jd_ut1 + 0.5 - math.floor(jd_ut1 + 0.5)
        d1, d2 = _split_jd(jd)
        return float(erfa.dtdb(d1, d2, ut, elong, u, v)) / SECONDS_PER_DAY

    def _tt_to_tdb(self, jd_tt: float, observer: Optional[ObserverLocation]) -> float:
        ut1 = self._utc_to_ut1(self._tt_to_utc(jd_tt))
        return jd_tt + self._tdb_minus_tt(jd_tt, ut1, observer)

    def _tdb_to_tt(self, jd_tdb: float, observer: Optional[ObserverLocation]) -> float:
        ut1 = self._utc_to_ut1(self._tt_to_utc(jd_tdb))
        tt = jd_tdb - self._tdb_minus_tt(jd_tdb, ut1, observer)
        return jd_tdb - self._tdb_minus_tt(tt, ut1, observer)

    # ── Public ──
    def _to_utc(self, instant: TimeInstant, observer: Optional[ObserverLocation]) -> float:
        scale, jd = instant.scale, instant.jd
        if scale is TimeScale.UTC:
            return jd
        if scale is TimeScale.LOCAL:
            return self._local_to_utc(jd, observer)
        if scale is TimeScale.UT1:
            return self._ut1_to_utc(jd)
        if scale is TimeScale.TT:
            return self._tt_to_utc(jd)
        return self._tt_to_utc(self._tdb_to_tt(jd, observer))

    def _to_tt(self, instant: TimeInstant, observer: Optional[ObserverLocation]) -> float:
        if instant.scale is TimeScale.TT:
            return instant.jd
        if instant.scale is TimeScale.TDB:
            return self._tdb_to_tt(instant.jd, observer)
        return self._utc_to_tt(self._to_utc(instant, observer))

    def to_julian_day(self, instant: TimeInstant, observer: Optional[ObserverLocation],
                      scale: TimeScale) -> float:
        """Julian day of `instant` expressed in `scale`."""
        if not math.isfinite(instant.jd):
            raise InvalidDateError("timescale", "Julian day must be finite", jd=instant.jd)
        if instant.scale is scale:
            return instant.jd
        if scale is TimeScale.TT:
            return self._to_tt(instant, observer)
        if scale is TimeScale.TDB:
            if instant.scale is TimeScale.TT:
                return self._tt_to_tdb(instant.jd, observer)
            return self._tt_to_tdb(self._to_tt(instant, observer), observer)
        utc = self._to_utc(instant, observer)
        if scale is TimeScale.UTC:
            return utc
        if scale is TimeScale.UT1:
            return self._utc_to_ut1(utc)
        return self._utc_to_local(utc, observer)

    def convert(self, instant: TimeInstant, observer: Optional[ObserverLocation],
                scale: TimeScale) -> TimeInstant:
        return TimeInstant(self.to_julian_day(instant, observer, scale), scale)
