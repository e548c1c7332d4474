# ephemkit/core/orbits.py
# -----------------------------------------------------------------------------
# Two-body propagation of heliocentric orbital elements.
#
#   elliptic   (e < 1)  Kepler's equation, Newton with Danby's starter
#   parabolic  (e = 1)  Barker's equation, closed form
#   hyperbolic (e > 1)  e sinh H − H = M, Newton; NonConvergenceError at the cap
#
# Elements are referred to the mean ecliptic and equinox J2000; output is a
# heliocentric ecliptic J2000 6-vector (AU, AU/day).
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
import logging
import math

from ephemkit.core.constants import EARTH_MEAN_ORBIT_RATE, normalize_radians
from ephemkit.core.errors import NonConvergenceError
from ephemkit.core.vectors import Vector

log = logging.getLogger(__name__)

__all__ = [
    "ELLIPTIC_MAX_ITERATIONS", "ELLIPTIC_TOLERANCE",
    "HYPERBOLIC_MAX_ITERATIONS", "HYPERBOLIC_TOLERANCE",
    "OrbitalElements", "mean_motion",
    "orbit_plane", "to_ecliptic_plane", "heliocentric_ecliptic_position",
]

ELLIPTIC_MAX_ITERATIONS = 20
ELLIPTIC_TOLERANCE = 1e-15
HYPERBOLIC_MAX_ITERATIONS = 20
HYPERBOLIC_TOLERANCE = 1e-10
_HYPERBOLIC_ANOMALY_LIMIT = 100.0


def mean_motion(semimajor_axis: float) -> float:
    """Heliocentric mean motion (rad/day) for a massless body."""
    return EARTH_MEAN_ORBIT_RATE / abs(semimajor_axis) ** 1.5


@dataclass(frozen=True)
class OrbitalElements:
    """
    Angles in radians, distances in AU, times in JD (TDB).
    For e = 1 only perihelion_distance and reference_time (perihelion passage)
    matter; for e ≠ 1 mean_anomaly is the value at reference_time.
    """
    name: str
    semimajor_axis: float
    eccentricity: float
    inclination: float
    ascending_node: float
    argument_of_perihelion: float
    mean_anomaly: float
    reference_time: float
    mean_motion: Optional[float] = None
    perihelion_distance: Optional[float] = None
    valid_from: Optional[float] = None
    valid_to: Optional[float] = None

    def __post_init__(self) -> None:
        if self.eccentricity < 0.0:
            raise ValueError("eccentricity must be non-negative")
        if self.eccentricity == 1.0 and not self.q:
            raise ValueError("parabolic orbits need a perihelion distance")

    @property
    def n(self) -> float:
        return self.mean_motion if self.mean_motion is not None else mean_motion(self.semimajor_axis)

    @property
    def q(self) -> float:
        if self.perihelion_distance is not None:
            return self.perihelion_distance
        return abs(self.semimajor_axis) * abs(1.0 - self.eccentricity)

# ───────────────────────────── Orbit plane solvers ─────────────────────────────

def _elliptic(el: OrbitalElements, jd: float) -> Tuple[float, float, float, float]:
    e, a, n = el.eccentricity, el.semimajor_axis, el.n
    m = normalize_radians(n * (jd - el.reference_time) + el.mean_anomaly)
    s = math.sin(m)
    big_e = m + (math.copysign(0.85 * e, s) if s != 0.0 else 0.0)
    for _ in range(ELLIPTIC_MAX_ITERATIONS):
        de = (m + e * math.sin(big_e) - big_e) / (1.0 - e * math.cos(big_e))
        big_e += de
        if abs(de) <= ELLIPTIC_TOLERANCE:
            break
    tmp = math.sqrt(1.0 - e * e)
    ce, se = math.cos(big_e), math.sin(big_e)
    rho = 1.0 - e * ce
    return (a * (ce - e), a * tmp * se, -a * n * se / rho, a * n * tmp * ce / rho)


def _parabolic(el: OrbitalElements, jd: float) -> Tuple[float, float, float, float]:
    q = el.q
    w = 3.0 * EARTH_MEAN_ORBIT_RATE * (jd - el.reference_time) / (2.0 * q * math.sqrt(2.0 * q))
    b = (w + math.sqrt(w * w + 1.0)) ** (1.0 / 3.0)
    tav2 = b - 1.0 / b
    k = EARTH_MEAN_ORBIT_RATE / math.sqrt(2.0 * q)
    r = q * (1.0 + tav2 * tav2)
    x = q * (1.0 - tav2 * tav2)
    y = 2.0 * q * tav2
    return (x, y, -k * y / r, k * (x / r + 1.0))


def _newton_hyperbolic(m: float, e: float, h: float) -> Tuple[float, float, int]:
    dh = 1.0
    n_iter = 0
    while n_iter < HYPERBOLIC_MAX_ITERATIONS and abs(h) < _HYPERBOLIC_ANOMALY_LIMIT:
        dh = (m - e * math.sinh(h) + h) / (e * math.cosh(h) - 1.0)
        h += dh
        n_iter += 1
        if abs(dh) <= HYPERBOLIC_TOLERANCE:
            break
    return h, dh, n_iter


def _hyperbolic(el: OrbitalElements, jd: float) -> Tuple[float, float, float, float]:
    e = el.eccentricity
    a = abs(el.semimajor_axis) if el.semimajor_axis else el.q / (e - 1.0)
    n = el.mean_motion if el.mean_motion is not None else mean_motion(a)
    m = n * (jd - el.reference_time) + el.mean_anomaly

    h, dh, n_iter = _newton_hyperbolic(m, e, math.copysign(math.log(2.0 * abs(m) / e + 1.8), m))
    if abs(h) >= _HYPERBOLIC_ANOMALY_LIMIT or abs(dh) > HYPERBOLIC_TOLERANCE:
        log.debug("Hyperbolic solve for %s restarting after %d iterations", el.name, n_iter)
        h, dh, n_iter = _newton_hyperbolic(m, e, math.copysign((6.0 * abs(m)) ** (1.0 / 3.0), m))
    if abs(h) >= _HYPERBOLIC_ANOMALY_LIMIT or abs(dh) > HYPERBOLIC_TOLERANCE:
        raise NonConvergenceError("orbit", f"hyperbolic anomaly did not converge for {el.name}",
                                  mean_anomaly=m, eccentricity=e, iterations=n_iter)

    root = math.sqrt(e * e - 1.0)
    ch, sh = math.cosh(h), math.sinh(h)
    hdot = n / (e * ch - 1.0)
    return (a * (e - ch), a * root * sh, -a * sh * hdot, a * root * ch * hdot)


def orbit_plane(el: OrbitalElements, jd: float) -> Tuple[float, float, float, float]:
    """(x, y, vx, vy) in the orbit plane, x toward perihelion."""
    if el.eccentricity < 1.0:
        return _elliptic(el, jd)
    if el.eccentricity == 1.0:
        return _parabolic(el, jd)
    return _hyperbolic(el, jd)


def to_ecliptic_plane(el: OrbitalElements, planar: Tuple[float, float, float, float]) -> Vector:
    c1, s1 = math.cos(el.argument_of_perihelion), math.sin(el.argument_of_perihelion)
    c2, s2 = math.cos(el.inclination), math.sin(el.inclination)
    c3, s3 = math.cos(el.ascending_node), math.sin(el.ascending_node)
    m11, m12 = c1 * c3 - s1 * c2 * s3, -s1 * c3 - c1 * c2 * s3
    m21, m22 = c1 * s3 + s1 * c2 * c3, -s1 * s3 + c1 * c2 * c3
    m31, m32 = s1 * s2, c1 * s2
    x, y, vx, vy = planar
    return (m11 * x + m12 * y, m21 * x + m22 * y, m31 * x + m32 * y,
            m11 * vx + m12 * vy, m21 * vx + m22 * vy, m31 * vx + m32 * vy)


def heliocentric_ecliptic_position(el: OrbitalElements, jd: float) -> Vector:
    return to_ecliptic_plane(el, orbit_plane(el, jd))
