# ephemkit/core/nutation.py
# -----------------------------------------------------------------------------
# Nutation interface (series evaluated by pyERFA)
#
#   nutation_theory_for(model)                  model → NutationTheory
#   nutation_angles(jd_tdb, theory, offsets)    → (Δψ, Δε) rad
#   apply_nutation(jd_tdb, v, model, ...)       mean equator/equinox → true
#   remove_nutation(jd_tdb, v, model, ...)      true → mean
#
# Celestial pole offsets (dψ, dε from an EOP service) are optional and come
# from a caller-owned PoleOffsetCache; there is no module-level memo.
# -----------------------------------------------------------------------------
from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Tuple
import math

import erfa  # pyERFA

from ephemkit.core.constants import ARCSEC_TO_RAD, J2000, JULIAN_DAYS_PER_CENTURY
from ephemkit.core.models import PrecessionModel
from ephemkit.core.obliquity import mean_obliquity
from ephemkit.core.vectors import Vector, rotate_x, rotate_z
from ephemkit.utils.cache import LRUCache

__all__ = [
    "NutationTheory", "nutation_theory_for",
    "PoleOffsetProvider", "PoleOffsetCache",
    "nutation_angles", "apply_nutation", "remove_nutation",
]


class NutationTheory(Enum):
    IAU1980 = "iau1980"
    IAU2000A = "iau2000a"
    IAU2006A = "iau2006a"


_MODEL_THEORY: Dict[PrecessionModel, NutationTheory] = {
    PrecessionModel.IAU2000: NutationTheory.IAU2000A,
    PrecessionModel.CAPITAINE: NutationTheory.IAU2006A,
}

_ERFA_NUTATION: Dict[NutationTheory, Callable[[float, float], Tuple[float, float]]] = {
    NutationTheory.IAU1980: erfa.nut80,
    NutationTheory.IAU2000A: erfa.nut00a,
    NutationTheory.IAU2006A: erfa.nut06a,
}


def nutation_theory_for(model: PrecessionModel) -> NutationTheory:
    return _MODEL_THEORY.get(model, NutationTheory.IAU1980)

# ───────────────────────────── Pole offsets ─────────────────────────────

# jd (TDB) → (dψ, dε) in arcseconds
PoleOffsetProvider = Callable[[float], Tuple[float, float]]


class PoleOffsetCache:
    """
    Celestial pole offsets memoized per (model, theory, civil day).
    Lookups within ±0.5 day of a cached day reuse its value. Owned by the
    caller and passed in through PipelineContext; safe to share across threads.
    """

    def __init__(self, provider: Optional[PoleOffsetProvider] = None, capacity: int = 256):
        self.provider = provider
        self._cache = LRUCache(capacity)

    @staticmethod
    def key(jd: float, model: PrecessionModel, theory: NutationTheory) -> Tuple[str, str, int]:
        return model.value, theory.value, int(math.floor(jd + 0.5))

    def offsets(self, jd: float, model: PrecessionModel, theory: NutationTheory) -> Tuple[float, float]:
        """(dψ, dε) in radians; zero without a provider."""
        if self.provider is None:
            return 0.0, 0.0
        k = self.key(jd, model, theory)
        dpsi, deps = self._cache.get_or_compute(k, lambda: tuple(self.provider(float(k[2]))))
        return dpsi * ARCSEC_TO_RAD, deps * ARCSEC_TO_RAD

    def __len__(self) -> int:
        return len(self._cache)

# ───────────────────────────── Angles & rotation ─────────────────────────────

def nutation_angles(jd_tdb: float, theory: NutationTheory,
                    offsets: Tuple[float, float] = (0.0, 0.0)) -> Tuple[float, float]:
    """Nutation in longitude and obliquity (rad), plus optional pole offsets."""
    d1 = math.floor(jd_tdb)
    dpsi, deps = _ERFA_NUTATION[theory](d1, jd_tdb - d1)
    return float(dpsi) + offsets[0], float(deps) + offsets[1]


def _angles(jd_tdb: float, model: PrecessionModel, theory: Optional[NutationTheory],
            cache: Optional[PoleOffsetCache]) -> Tuple[float, float, float]:
    theory = theory or nutation_theory_for(model)
    offsets = cache.offsets(jd_tdb, model, theory) if cache is not None else (0.0, 0.0)
    dpsi, deps = nutation_angles(jd_tdb, theory, offsets)
    eps = mean_obliquity((jd_tdb - J2000) / JULIAN_DAYS_PER_CENTURY, model)
    return dpsi, deps, eps


def apply_nutation(jd_tdb: float, v: Sequence[float], model: PrecessionModel,
                   theory: Optional[NutationTheory] = None,
                   cache: Optional[PoleOffsetCache] = None) -> Vector:
    """Mean → true equator and equinox of date: R1(−ε−Δε) R3(−Δψ) R1(ε)."""
    dpsi, deps, eps = _angles(jd_tdb, model, theory, cache)
    out = rotate_x(v, -eps)
    out = rotate_z(out, dpsi)
    return rotate_x(out, eps + deps)


def remove_nutation(jd_tdb: float, v: Sequence[float], model: PrecessionModel,
                    theory: Optional[NutationTheory] = None,
                    cache: Optional[PoleOffsetCache] = None) -> Vector:
    """True → mean equator and equinox of date (exact inverse of apply_nutation)."""
    dpsi, deps, eps = _angles(jd_tdb, model, theory, cache)
    out = rotate_x(v, -(eps + deps))
    out = rotate_z(out, -dpsi)
    return rotate_x(out, eps)
