# ephemkit/core/frames.py
# -----------------------------------------------------------------------------
# Frame & correction utilities (pure vector algebra)
#
#   deflection_correction / solar_deflection   gravitational light bending (Murray 1981)
#   aberration                                 relativistic annual aberration
#   to_icrs_frame / to_j2000_frame             frame bias, second-order diagonal
#   ecliptic_to_equatorial / equatorial_to_ecliptic   mean obliquity of a date
#
# All vectors are rectangular tuples in AU (and AU/day); inputs are never
# mutated. Velocity components, when present, ride along unchanged unless a
# rotation applies to them.
# -----------------------------------------------------------------------------
from __future__ import annotations

from typing import Sequence
import math

from ephemkit.core.constants import (
    ARCSEC_TO_RAD, AU, J2000, JULIAN_DAYS_PER_CENTURY, LIGHT_TIME_DAYS_PER_AU,
    SPEED_OF_LIGHT, SUN_GRAVITATIONAL_CONSTANT,
)
from ephemkit.core.models import PrecessionModel
from ephemkit.core.obliquity import mean_obliquity
from ephemkit.core.vectors import Vector, dot, norm, rotate_x

__all__ = [
    "DEFLECTION_COLLINEARITY_LIMIT",
    "deflection_correction", "solar_deflection", "aberration",
    "to_icrs_frame", "to_j2000_frame",
    "ecliptic_to_equatorial", "equatorial_to_ecliptic",
]

# |cos| between deflector→object and deflector→observer above which no
# deflection is applied (object behind/in front of the deflector within ~1")
DEFLECTION_COLLINEARITY_LIMIT: float = 0.99999999999

# ───────────────────────────── Light deflection ─────────────────────────────

def deflection_correction(vep: Sequence[float], ves: Sequence[float], vsp: Sequence[float],
                          deflector: Sequence[float] = (0.0, 0.0, 0.0),
                          relative_mass: float = 1.0) -> Vector:
    """
    Deflect the observer→object vector `vep` by a body of mass M☉/relative_mass.

    ves        observer→Sun
    vsp        Sun→object
    deflector  Sun→deflecting body ((0,0,0) for the Sun itself)
    """
    d2e = tuple(-ves[i] - deflector[i] for i in range(3))
    d2p = tuple(vsp[i] - deflector[i] for i in range(3))

    r_geo = norm(vep)
    r_earth = norm(d2e)
    r_planet = norm(d2p)

    dot_planet = dot(vep, d2p) / (r_geo * r_planet)
    dot_earth = dot(d2e, vep) / (r_geo * r_earth)
    dot_deflector = dot(d2p, d2e) / (r_earth * r_planet)

    if abs(dot_deflector) > DEFLECTION_COLLINEARITY_LIMIT:
        return tuple(vep)

    fac1 = SUN_GRAVITATIONAL_CONSTANT * 2.0 / (
        SPEED_OF_LIGHT ** 2 * AU * 1000.0 * r_earth * relative_mass)
    fac2 = 1.0 + dot_deflector

    out = tuple(
        r_geo * (vep[i] / r_geo
                 + fac1 * (dot_planet * d2e[i] / r_earth - dot_earth * d2p[i] / r_planet) / fac2)
        for i in range(3)
    )
    return out + tuple(vep[3:6])

def solar_deflection(vep: Sequence[float], ves: Sequence[float], vsp: Sequence[float]) -> Vector:
    """Deflection by the Sun alone."""
    return deflection_correction(vep, ves, vsp, (0.0, 0.0, 0.0), 1.0)

# ───────────────────────────── Aberration ─────────────────────────────

def aberration(geo: Sequence[float], observer_state: Sequence[float], light_time: float) -> Vector:
    """
    Relativistic aberration of `geo` (observer→object, AU) for an observer
    moving with velocity observer_state[3:6] (AU/day). `light_time` in days.
    Valid for |v| ≪ c.
    """
    vel = observer_state[3:6]
    p1mag = light_time / LIGHT_TIME_DAYS_PER_AU
    vmag = norm(vel)
    if p1mag == 0.0 or vmag == 0.0:
        return tuple(geo[0:3])
    beta = vmag * LIGHT_TIME_DAYS_PER_AU
    cosd = dot(geo, vel) / (p1mag * vmag)
    gammai = math.sqrt(1.0 - beta * beta)
    p = beta * cosd
    q = (1.0 + p / (1.0 + gammai)) * light_time
    r = 1.0 + p
    return tuple((gammai * geo[i] + q * vel[i]) / r for i in range(3))

# ───────────────────────────── Frame bias ─────────────────────────────

_XI0 = -0.0166170 * ARCSEC_TO_RAD
_ETA0 = -0.0068192 * ARCSEC_TO_RAD
_DA0 = -0.01460 * ARCSEC_TO_RAD

_YX = -_DA0
_ZX = _XI0
_XY = _DA0
_ZY = _ETA0
_XZ = -_XI0
_YZ = -_ETA0
_XX = 1.0 - 0.5 * (_YX * _YX + _ZX * _ZX)
_YY = 1.0 - 0.5 * (_YX * _YX + _ZY * _ZY)
_ZZ = 1.0 - 0.5 * (_ZY * _ZY + _ZX * _ZX)

def to_j2000_frame(v: Sequence[float]) -> Vector:
    """ICRS → dynamical mean equator/equinox J2000 (position only)."""
    x, y, z = v[0], v[1], v[2]
    return (_XX * x + _XY * y + _XZ * z,
            _YX * x + _YY * y + _YZ * z,
            _ZX * x + _ZY * y + _ZZ * z)

def to_icrs_frame(v: Sequence[float]) -> Vector:
    """
    Dynamical J2000 → ICRS by the transposed bias matrix. Not an exact inverse
    of to_j2000_frame beyond first order.
    """
    x, y, z = v[0], v[1], v[2]
    return (_XX * x + _YX * y + _ZX * z,
            _XY * x + _YY * y + _ZY * z,
            _XZ * x + _YZ * y + _ZZ * z)

# ───────────────────────────── Ecliptic ↔ equatorial ─────────────────────────────

def _eps(jd: float, model: PrecessionModel) -> float:
    return mean_obliquity((jd - J2000) / JULIAN_DAYS_PER_CENTURY, model)

def ecliptic_to_equatorial(v: Sequence[float], jd: float, model: PrecessionModel) -> Vector:
    """Mean ecliptic of `jd` → mean equator of `jd` (3- or 6-vectors)."""
    return rotate_x(v, _eps(jd, model))

def equatorial_to_ecliptic(v: Sequence[float], jd: float, model: PrecessionModel) -> Vector:
    """Mean equator of `jd` → mean ecliptic of `jd` (3- or 6-vectors)."""
    return rotate_x(v, -_eps(jd, model))
