# ephemkit/core/sidereal.py
# -----------------------------------------------------------------------------
# Sidereal time per precession model.
#
#   LASKAR               IAU 1976 GMST polynomial
#   IAU2000 / CAPITAINE  Earth rotation angle + Capitaine et al. 2003 terms
#   others               Williams 1994 polynomial
#
# Equation of the equinoxes = Δψ cos ε_mean (+ erfa.eect00 complementary terms
# for IAU2000/CAPITAINE). All results in radians, normalized to [0, 2π).
# -----------------------------------------------------------------------------
from __future__ import annotations

from typing import Optional
import math

import erfa  # pyERFA

from ephemkit.core.constants import (
    ARCSEC_TO_RAD, DEG_TO_RAD, J2000, JULIAN_DAYS_PER_CENTURY, SECONDS_PER_DAY,
    SIDEREAL_DAY_LENGTH, TWO_PI, normalize_radians,
)
from ephemkit.core.models import ObserverLocation, PrecessionModel, TimeInstant, TimeScale
from ephemkit.core.nutation import PoleOffsetCache, nutation_angles, nutation_theory_for
from ephemkit.core.obliquity import mean_obliquity

__all__ = [
    "greenwich_mean_sidereal_time", "equation_of_equinoxes",
    "greenwich_apparent_sidereal_time", "local_apparent_sidereal_time",
    "apparent_sidereal_time",
]

_ERA_MODELS = (PrecessionModel.IAU2000, PrecessionModel.CAPITAINE)


def greenwich_mean_sidereal_time(jd_ut1: float, jd_tdb: float, model: PrecessionModel) -> float:
    jd0 = math.floor(jd_ut1 - 0.5) + 0.5
    t0 = (jd0 - J2000) / JULIAN_DAYS_PER_CENTURY
    secs = (jd_ut1 - jd0) * SECONDS_PER_DAY

    if model in _ERA_MODELS:
        gmst = TWO_PI * (secs / SECONDS_PER_DAY + 0.5 + 0.7790572732640
                         + (SIDEREAL_DAY_LENGTH - 1.0) * (jd_ut1 - J2000))
        dt = (jd_tdb - J2000) / JULIAN_DAYS_PER_CENTURY
        gmst += (0.014506 + (4612.15739966 + (1.39667721 + (-0.00009344 + 0.00001882 * dt) * dt) * dt) * dt) \
            * ARCSEC_TO_RAD
        return normalize_radians(gmst)

    if model is PrecessionModel.LASKAR:
        gmst = ((-6.2e-6 * t0 + 9.3104e-2) * t0 + 8640184.812866) * t0 + 24110.54841
        msday = 1.0 + ((-1.86e-5 * t0 + 0.186208) * t0 + 8640184.812866) / (86400.0 * 36525.0)
    else:
        gmst = (((-2.0e-6 * t0 - 3.0e-7) * t0 + 9.27695e-2) * t0 + 8640184.7928613) * t0 + 24110.54841
        msday = (((-(4.0 * 2.0e-6) * t0 - (3.0 * 3.0e-7)) * t0 + (2.0 * 9.27695e-2)) * t0
                 + 8640184.7928613) / (86400.0 * 36525.0) + 1.0

    gmst = gmst + msday * secs
    return normalize_radians(gmst * (15.0 / 3600.0) * DEG_TO_RAD)


def equation_of_equinoxes(jd_tdb: float, model: PrecessionModel,
                          cache: Optional[PoleOffsetCache] = None) -> float:
    theory = nutation_theory_for(model)
    offsets = cache.offsets(jd_tdb, model, theory) if cache is not None else (0.0, 0.0)
    dpsi, _deps = nutation_angles(jd_tdb, theory, offsets)
    eps = mean_obliquity((jd_tdb - J2000) / JULIAN_DAYS_PER_CENTURY, model)
    eq_eq = dpsi * math.cos(eps)
    if model in _ERA_MODELS:
        d1 = math.floor(jd_tdb)
        eq_eq += float(erfa.eect00(d1, jd_tdb - d1))
    return eq_eq


def greenwich_apparent_sidereal_time(jd_ut1: float, jd_tdb: float, model: PrecessionModel,
                                     cache: Optional[PoleOffsetCache] = None) -> float:
    return normalize_radians(greenwich_mean_sidereal_time(jd_ut1, jd_tdb, model)
                             + equation_of_equinoxes(jd_tdb, model, cache))


def local_apparent_sidereal_time(jd_ut1: float, jd_tdb: float, longitude: float,
                                 model: PrecessionModel,
                                 cache: Optional[PoleOffsetCache] = None) -> float:
    return normalize_radians(greenwich_apparent_sidereal_time(jd_ut1, jd_tdb, model, cache) + longitude)


def apparent_sidereal_time(converter, instant: TimeInstant, observer: ObserverLocation,
                           model: PrecessionModel, cache: Optional[PoleOffsetCache] = None) -> float:
    """Local apparent sidereal time at `observer`, scales resolved by `converter`."""
    jd_ut1 = converter.to_julian_day(instant, observer, TimeScale.UT1)
    jd_tdb = converter.to_julian_day(instant, observer, TimeScale.TDB)
    return local_apparent_sidereal_time(jd_ut1, jd_tdb, observer.longitude, model, cache)
