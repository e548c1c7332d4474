# ephemkit/core/obliquity.py
# -----------------------------------------------------------------------------
# Mean obliquity of the ecliptic, per precession model.
#
#   ε(u) = 23°26' + c0 + Σ_{i=1..10} c_i u^i / 100   [arcsec],  u = T/100
#
# T in Julian centuries from J2000 (TDB). Coefficient table indexed by model;
# no memo, every call recomputes.
# -----------------------------------------------------------------------------
from __future__ import annotations

from typing import Dict, Tuple

from ephemkit.core.constants import ARCSEC_TO_RAD
from ephemkit.core.models import PrecessionModel

__all__ = ["OBLIQUITY_COEFFICIENTS", "mean_obliquity", "true_obliquity"]

_CAPITAINE: Tuple[float, Tuple[float, ...]] = (
    21.4059,
    (-468367.69, -183.1, 200340.0, -5760.0, -43400.0, 0.0, 0.0, 0.0, 0.0, 0.0),
)
_WILLIAMS: Tuple[float, Tuple[float, ...]] = (
    21.406173,
    (-468339.6, -175.0, 199890.0, -5138.0, -24967.0, -3905.0, 712.0, 2787.0, 579.0, 245.0),
)

OBLIQUITY_COEFFICIENTS: Dict[PrecessionModel, Tuple[float, Tuple[float, ...]]] = {
    PrecessionModel.IAU2000: _CAPITAINE,
    PrecessionModel.CAPITAINE: _CAPITAINE,
    PrecessionModel.WILLIAMS: _WILLIAMS,
    PrecessionModel.JPLDE403: _WILLIAMS,
    PrecessionModel.SIMON: (
        21.412,
        (-468092.7, -152.0, 199890.0, -5138.0, -24967.0, -3905.0, 712.0, 2787.0, 579.0, 245.0),
    ),
    PrecessionModel.LASKAR: (
        21.448,
        (-468093.0, -155.0, 199925.0, -5138.0, -24967.0, -3905.0, 712.0, 2787.0, 579.0, 245.0),
    ),
}


def mean_obliquity(t_centuries: float, model: PrecessionModel) -> float:
    """Mean obliquity (rad) at `t_centuries` Julian centuries from J2000."""
    const, coeffs = OBLIQUITY_COEFFICIENTS[model]
    u0 = t_centuries / 100.0
    u = u0
    arcsec = 23.0 * 3600.0 + 26.0 * 60.0 + const
    for c in coeffs:
        arcsec += u * c / 100.0
        u *= u0
    return arcsec * ARCSEC_TO_RAD


def true_obliquity(t_centuries: float, model: PrecessionModel, nutation_in_obliquity: float) -> float:
    """Mean obliquity plus Δε (rad) from the nutation interface."""
    return mean_obliquity(t_centuries, model) + nutation_in_obliquity
