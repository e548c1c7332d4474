# ephemkit/core/precession.py
# -----------------------------------------------------------------------------
# Precession Engine
#
# Two strategy families registered per PrecessionModel:
#   • MatrixPrecession      (IAU2000, CAPITAINE)  ψ_A, ω_A, χ_A → R3(χ)R1(-ω)R3(-ψ)R1(ε0)
#   • ElementaryPrecession  (WILLIAMS, JPLDE403, SIMON, LASKAR)  p_A, W, π_A series
#
# Public API:
#   precess(jd_from, jd_to, v, model)
#   precess_from_j2000(jd, v, model) / precess_to_j2000(jd, v, model)
#   precess_ecliptic_with_velocity(jd_from, jd_to, v, model)
#   precess_equatorial_with_velocity(jd_from, jd_to, v, model)
#   precession_matrix(jd, model)   (matrix strategy only)
#   precess_pole_from_j2000(jd, pole_ra, pole_dec, model) → SphericalPosition
#
# Epochs are Julian days (TDB). Any leg at J2000 returns its input unchanged.
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple
import math

from ephemkit.core.constants import ARCSEC_TO_RAD, J2000, JULIAN_DAYS_PER_CENTURY
from ephemkit.core.models import PrecessionModel
from ephemkit.core.obliquity import mean_obliquity
from ephemkit.core.vectors import (
    Matrix3, SphericalPosition, Vector, apply_matrix, from_spherical, rotate_x, to_spherical,
)

__all__ = [
    "PrecessionStrategy", "MatrixPrecession", "ElementaryPrecession",
    "PRECESSION_STRATEGIES",
    "precess", "precess_from_j2000", "precess_to_j2000",
    "precess_ecliptic_with_velocity", "precess_equatorial_with_velocity",
    "precession_matrix", "precess_pole_from_j2000",
]

# ───────────────────────────── Helpers ─────────────────────────────

def _horner(coeffs: Sequence[float], t: float) -> float:
    acc = 0.0
    for c in coeffs:
        acc = acc * t + c
    return acc

def _centuries(jd: float) -> float:
    return (jd - J2000) / JULIAN_DAYS_PER_CENTURY

# ───────────────────────────── Strategy base ─────────────────────────────

class PrecessionStrategy:
    """Rotates equatorial vectors between mean J2000 and mean of date."""
    model: PrecessionModel

    def from_j2000(self, jd: float, v: Sequence[float]) -> Vector:
        raise NotImplementedError

    def to_j2000(self, jd: float, v: Sequence[float]) -> Vector:
        raise NotImplementedError

# ───────────────────────────── Matrix strategy ─────────────────────────────

@dataclass(frozen=True)
class _MatrixAngles:
    eps0: float            # arcsec
    psi: Tuple[float, ...]     # Horner coefficients, highest power first, times T
    omega: Tuple[float, ...]
    chi: Tuple[float, ...]
    psi_t0: float = 0.0        # arcsec per century of epoch offset (IAU2000 correction)
    omega_t0: float = 0.0


_MATRIX_ANGLES: Dict[PrecessionModel, _MatrixAngles] = {
    # Capitaine et al. 2003 (P03)
    PrecessionModel.CAPITAINE: _MatrixAngles(
        eps0=84381.406,
        psi=(-0.0000000951, 0.000132851, -0.00114045, -1.0790069, 5038.481507, 0.0),
        omega=(0.0000003337, -0.000000467, -0.00772503, 0.0512623, -0.025754, 0.0),
        chi=(-0.0000000560, 0.000170663, -0.00121197, -2.3814292, 10.556403, 0.0),
    ),
    # IAU 2000 (Lieske 1977 + precession-rate corrections)
    PrecessionModel.IAU2000: _MatrixAngles(
        eps0=84381.448,
        psi=(-0.001147, -1.07259, 5038.7784, 0.0),
        omega=(-0.007726, 0.05127, 0.0, 0.0),
        chi=(-0.001125, -2.38064, 10.5526, 0.0),
        psi_t0=-0.29965,
        omega_t0=-0.02524,
    ),
}


class MatrixPrecession(PrecessionStrategy):
    def __init__(self, model: PrecessionModel):
        self.model = model
        self._angles = _MATRIX_ANGLES[model]

    def matrix(self, jd: float) -> Matrix3:
        """Rotation mean J2000 → mean of `jd` (rows act on column vectors)."""
        a = self._angles
        t = _centuries(jd)
        # epoch offset of the non-J2000 end, used identically in both directions
        t0 = t
        psi = _horner(a.psi, t) + a.psi_t0 * t0
        omega = _horner(a.omega, t) + a.eps0 + a.omega_t0 * t0
        chi = _horner(a.chi, t)

        sa, ca = math.sin(a.eps0 * ARCSEC_TO_RAD), math.cos(a.eps0 * ARCSEC_TO_RAD)
        sb, cb = math.sin(-psi * ARCSEC_TO_RAD), math.cos(-psi * ARCSEC_TO_RAD)
        sc, cc = math.sin(-omega * ARCSEC_TO_RAD), math.cos(-omega * ARCSEC_TO_RAD)
        sd, cd = math.sin(chi * ARCSEC_TO_RAD), math.cos(chi * ARCSEC_TO_RAD)

        xx = cd * cb - sb * sd * cc
        yx = cd * sb * ca + sd * cc * cb * ca - sa * sd * sc
        zx = cd * sb * sa + sd * cc * cb * sa + ca * sd * sc
        xy = -sd * cb - sb * cd * cc
        yy = -sd * sb * ca + cd * cc * cb * ca - sa * cd * sc
        zy = -sd * sb * sa + cd * cc * cb * sa + ca * cd * sc
        xz = sb * sc
        yz = -sc * cb * ca - sa * cc
        zz = -sc * cb * sa + cc * ca
        return ((xx, yx, zx), (xy, yy, zy), (xz, yz, zz))

    def from_j2000(self, jd: float, v: Sequence[float]) -> Vector:
        if jd == J2000:
            return v  # type: ignore[return-value]
        return apply_matrix(self.matrix(jd), v)

    def to_j2000(self, jd: float, v: Sequence[float]) -> Vector:
        if jd == J2000:
            return v  # type: ignore[return-value]
        m = self.matrix(jd)
        return apply_matrix(((m[0][0], m[1][0], m[2][0]),
                             (m[0][1], m[1][1], m[2][1]),
                             (m[0][2], m[1][2], m[2][2])), v)

# ───────────────────────────── Elementary strategy ─────────────────────────────

@dataclass(frozen=True)
class _ElementarySeries:
    longitude: Tuple[float, ...]    # p_A, arcsec, 10 terms, times T
    node: Tuple[float, ...]         # W, rad, 11 terms
    inclination: Tuple[float, ...]  # π_A, rad, 11 terms


_WILLIAMS_SERIES = _ElementarySeries(
    longitude=(-8.66e-10, -4.759e-8, 2.424e-7, 1.3095e-5, 1.7451e-4, -1.8055e-3,
               -0.235316, 0.076, 110.5407, 50287.70000),
    node=(6.6402e-16, -2.69151e-15, -1.547021e-12, 7.521313e-12, 1.9e-10, -3.54e-9,
          -1.8103e-7, 1.26e-7, 7.436169e-5, -0.04207794833, 3.052115282424),
    inclination=(1.2147e-16, 7.3759e-17, -8.26287e-14, 2.503410e-13, 2.4650839e-11,
                 -5.4000441e-11, 1.32115526e-9, -6.012e-7, -1.62442e-5, 0.00227850649, 0.0),
)

_ELEMENTARY_SERIES: Dict[PrecessionModel, _ElementarySeries] = {
    PrecessionModel.WILLIAMS: _WILLIAMS_SERIES,
    PrecessionModel.JPLDE403: _ElementarySeries(
        longitude=(-8.66e-10, -4.759e-8, 2.424e-7, 1.3095e-5, 1.7451e-4, -1.8055e-3,
                   -0.235316, 0.076, 110.5414, 50287.91959),
        node=_WILLIAMS_SERIES.node,
        inclination=_WILLIAMS_SERIES.inclination,
    ),
    PrecessionModel.SIMON: _ElementarySeries(
        longitude=(-8.66e-10, -4.759e-8, 2.424e-7, 1.3095e-5, 1.7451e-4, -1.8055e-3,
                   -0.235316, 0.07732, 111.2022, 50288.200),
        node=(6.6402e-16, -2.69151e-15, -1.547021e-12, 7.521313e-12, 1.9e-10, -3.54e-9,
              -1.8103e-7, 2.579e-8, 7.4379679e-5, -0.0420782900, 3.0521126906),
        inclination=(1.2147e-16, 7.3759e-17, -8.26287e-14, 2.503410e-13, 2.4650839e-11,
                     -5.4000441e-11, 1.32115526e-9, -5.99908e-7, -1.624383e-5,
                     0.002278492868, 0.0),
    ),
    PrecessionModel.LASKAR: _ElementarySeries(
        longitude=(-8.66e-10, -4.759e-8, 2.424e-7, 1.3095e-5, 1.7451e-4, -1.8055e-3,
                   -0.235316, 0.07732, 111.1971, 50290.966),
        node=(6.6402e-16, -2.69151e-15, -1.547021e-12, 7.521313e-12, 6.3190131e-10,
              -3.48388152e-9, -1.813065896e-7, 2.75036225e-8, 7.4394531426e-5,
              -0.042078604317, 3.052112654975),
        inclination=(1.2147e-16, 7.3759e-17, -8.26287e-14, 2.503410e-13, 2.4650839e-11,
                     -5.4000441e-11, 1.32115526e-9, -5.998737027e-7, -1.6242797091e-5,
                     0.002278495537, 0.0),
    ),
}


class ElementaryPrecession(PrecessionStrategy):
    """
    Five elementary rotations through the ecliptic:
    J2000 equator → J2000 ecliptic → node → ecliptic of date → equator of date.
    """
    def __init__(self, model: PrecessionModel):
        self.model = model
        self._series = _ELEMENTARY_SERIES[model]

    def _angles(self, jd: float) -> Tuple[float, float, float]:
        t = (jd - J2000) / JULIAN_DAYS_PER_CENTURY / 10.0
        s = self._series
        p_a = _horner(s.longitude, t) * ARCSEC_TO_RAD * t
        w = _horner(s.node, t)
        z = _horner(s.inclination, t)
        return p_a, w, z

    @staticmethod
    def _rot_z(v: Tuple[float, float, float], angle: float) -> Tuple[float, float, float]:
        a, b = math.sin(angle), math.cos(angle)
        return (b * v[0] + a * v[1], -a * v[0] + b * v[1], v[2])

    @staticmethod
    def _rot_x(v: Tuple[float, float, float], angle: float) -> Tuple[float, float, float]:
        a, b = math.sin(angle), math.cos(angle)
        return (v[0], b * v[1] + a * v[2], -a * v[1] + b * v[2])

    def _rotate(self, jd: float, v: Sequence[float], forward: bool) -> Tuple[float, float, float]:
        p_a, w, z = self._angles(jd)
        eps0 = mean_obliquity(0.0, self.model)
        eps = mean_obliquity(_centuries(jd), self.model)
        r = (float(v[0]), float(v[1]), float(v[2]))
        if forward:
            r = self._rot_x(r, eps0)
            r = self._rot_z(r, w)
            r = self._rot_x(r, z)
            r = self._rot_z(r, -w - p_a)
            r = self._rot_x(r, -eps)
        else:
            r = self._rot_x(r, eps)
            r = self._rot_z(r, w + p_a)
            r = self._rot_x(r, -z)
            r = self._rot_z(r, -w)
            r = self._rot_x(r, -eps0)
        return r

    def _apply(self, jd: float, v: Sequence[float], forward: bool) -> Vector:
        if jd == J2000:
            return v  # type: ignore[return-value]
        out: Vector = self._rotate(jd, v, forward)
        if len(v) >= 6:
            out += self._rotate(jd, v[3:6], forward)
        return out

    def from_j2000(self, jd: float, v: Sequence[float]) -> Vector:
        return self._apply(jd, v, True)

    def to_j2000(self, jd: float, v: Sequence[float]) -> Vector:
        return self._apply(jd, v, False)

# ───────────────────────────── Registry ─────────────────────────────

PRECESSION_STRATEGIES: Dict[PrecessionModel, PrecessionStrategy] = {
    PrecessionModel.IAU2000: MatrixPrecession(PrecessionModel.IAU2000),
    PrecessionModel.CAPITAINE: MatrixPrecession(PrecessionModel.CAPITAINE),
    PrecessionModel.WILLIAMS: ElementaryPrecession(PrecessionModel.WILLIAMS),
    PrecessionModel.JPLDE403: ElementaryPrecession(PrecessionModel.JPLDE403),
    PrecessionModel.SIMON: ElementaryPrecession(PrecessionModel.SIMON),
    PrecessionModel.LASKAR: ElementaryPrecession(PrecessionModel.LASKAR),
}

# ───────────────────────────── Public API ─────────────────────────────

def precess_from_j2000(jd: float, v: Sequence[float], model: PrecessionModel) -> Vector:
    """Equatorial mean J2000 → mean equator/equinox of `jd`."""
    return PRECESSION_STRATEGIES[model].from_j2000(jd, v)

def precess_to_j2000(jd: float, v: Sequence[float], model: PrecessionModel) -> Vector:
    """Mean equator/equinox of `jd` → equatorial mean J2000."""
    return PRECESSION_STRATEGIES[model].to_j2000(jd, v)

def precess(jd_from: float, jd_to: float, v: Sequence[float], model: PrecessionModel) -> Vector:
    """Equatorial vector from mean equinox `jd_from` to mean equinox `jd_to`."""
    if jd_from == jd_to:
        return v  # type: ignore[return-value]
    return precess_from_j2000(jd_to, precess_to_j2000(jd_from, v, model), model)

def precess_equatorial_with_velocity(jd_from: float, jd_to: float, v: Sequence[float],
                                     model: PrecessionModel) -> Vector:
    """Same as precess(); position and velocity parts of a 6-vector rotate alike."""
    return precess(jd_from, jd_to, v, model)

def precess_ecliptic_with_velocity(jd_from: float, jd_to: float, v: Sequence[float],
                                   model: PrecessionModel) -> Vector:
    """Ecliptic of `jd_from` → ecliptic of `jd_to`, through the equator."""
    if jd_from == jd_to:
        return v  # type: ignore[return-value]
    eq = rotate_x(v, mean_obliquity(_centuries(jd_from), model))
    eq = precess(jd_from, jd_to, eq, model)
    return rotate_x(eq, -mean_obliquity(_centuries(jd_to), model))

def precession_matrix(jd: float, model: PrecessionModel) -> Matrix3:
    strategy = PRECESSION_STRATEGIES[model]
    if not isinstance(strategy, MatrixPrecession):
        raise ValueError(f"{model.value} has no single-matrix form")
    return strategy.matrix(jd)

def precess_pole_from_j2000(jd: float, pole_ra: float, pole_dec: float,
                            model: PrecessionModel) -> SphericalPosition:
    """
    Body rotation pole (J2000 RA/Dec, radians) referred to the mean equator
    and equinox of `jd`.
    """
    return to_spherical(precess_from_j2000(jd, from_spherical(pole_ra, pole_dec, 1.0), model))
