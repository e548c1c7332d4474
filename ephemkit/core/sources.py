# ephemkit/core/sources.py
# -----------------------------------------------------------------------------
# Position sources: heliocentric state vectors of Solar System bodies.
#
#   PositionSource          interface + geocentric/light-time helper
#   ErfaPlanetarySource     erfa.epv00 (Earth), erfa.plan94 (planets), erfa.moon98
#   KeplerianSource         two-body orbital elements, Earth from erfa.epv00
#   SkyfieldSource          JPL SPK kernel through Skyfield (thread-safe lazy load)
#
# Every vector is equatorial, AU and AU/day, in the source's native frame
# (ICRS or dynamical J2000). Julian days are TDB.
# -----------------------------------------------------------------------------
from __future__ import annotations

from typing import Any, Dict, FrozenSet, Optional, Set, Tuple
import logging
import math
import os
import threading
import warnings

import erfa  # pyERFA

from ephemkit.core.errors import EphemerisError, InvalidDateError, UnsupportedTargetError
from ephemkit.core.frames import to_icrs_frame, to_j2000_frame
from ephemkit.core.models import PrecessionModel, ReferenceFrame, Target
from ephemkit.core.obliquity import mean_obliquity
from ephemkit.core.orbits import OrbitalElements, heliocentric_ecliptic_position
from ephemkit.core.vectors import Vector, rotate_x, sub
from ephemkit.utils.config import Settings, load_settings

log = logging.getLogger(__name__)

__all__ = [
    "EARTH_VELOCITY_STEP",
    "PositionSource", "ErfaPlanetarySource", "KeplerianSource", "SkyfieldSource",
]

# days; forward difference for the geocenter velocity
EARTH_VELOCITY_STEP: float = 0.001

_ZERO6: Vector = (0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

_MAJOR_TARGETS: FrozenSet[Target] = frozenset({
    Target.SUN, Target.MOON, Target.MERCURY, Target.VENUS, Target.MARS,
    Target.JUPITER, Target.SATURN, Target.URANUS, Target.NEPTUNE,
})


def _split(jd: float) -> Tuple[float, float]:
    d1 = math.floor(jd)
    return float(d1), float(jd - d1)


def _pv(pv: Any) -> Vector:
    """pyERFA structured pv-vector → 6-tuple."""
    return tuple(float(x) for x in pv["p"]) + tuple(float(x) for x in pv["v"])

# ───────────────────────────── Interface ─────────────────────────────

class PositionSource:
    """
    Base class for ephemeris backends. Subclasses provide `targets`, `span`
    and `heliocentric_position`; Earth must always be served by
    `heliocentric_position` even though it is not an observable target.
    """

    name: str = "source"
    native_frame: ReferenceFrame = ReferenceFrame.ICRS
    # bodies whose geocentric vector comes from the theory itself
    geocentric_targets: FrozenSet[Target] = frozenset({Target.MOON})

    @property
    def targets(self) -> FrozenSet[Target]:
        raise NotImplementedError

    def span(self, target: Target) -> Tuple[float, float]:
        """Inclusive (jd_min, jd_max) in TDB for `target`."""
        raise NotImplementedError

    def check(self, jd: float, target: Target) -> None:
        if target not in self.targets:
            raise UnsupportedTargetError("source", f"{self.name} cannot compute {target.value}",
                                         target=target.value, source=self.name)
        lo, hi = self.span(target)
        if not (lo <= jd <= hi):
            raise InvalidDateError("source", f"epoch outside the {self.name} span for {target.value}",
                                   jd=float(jd), jd_min=lo, jd_max=hi)

    def heliocentric_position(self, jd: float, target: Target) -> Vector:
        raise NotImplementedError

    def geocentric_theory_position(self, jd: float, target: Target) -> Vector:
        """Geocentric vector of a geocentric-theory body at `jd`; zero velocity."""
        body = self.heliocentric_position(jd, target)
        earth = self.heliocentric_position(jd, Target.EARTH)
        return sub(body[0:3], earth[0:3]) + (0.0, 0.0, 0.0)

    def geocentric_position(self, jd: float, target: Target, light_time: float = 0.0) -> Vector:
        """
        Object at jd − light_time minus the geocenter at jd. The velocity
        slots carry the geocenter's heliocentric velocity (forward difference),
        which is what aberration needs for the observer's motion.
        """
        if target in self.geocentric_targets:
            return self.geocentric_theory_position(jd - light_time, target)

        body = self.heliocentric_position(jd - light_time, target)
        earth = self.heliocentric_position(jd, Target.EARTH)
        ahead = self.heliocentric_position(jd + EARTH_VELOCITY_STEP, Target.EARTH)
        vel = tuple((ahead[i] - earth[i]) / EARTH_VELOCITY_STEP for i in range(3))
        return sub(body[0:3], earth[0:3]) + vel

# ───────────────────────────── ERFA ─────────────────────────────

_PLAN94_INDEX: Dict[Target, int] = {
    Target.MERCURY: 1,
    Target.VENUS: 2,
    Target.MARS: 4,
    Target.JUPITER: 5,
    Target.SATURN: 6,
    Target.URANUS: 7,
    Target.NEPTUNE: 8,
}


class ErfaPlanetarySource(PositionSource):
    """
    Analytic theories bundled with ERFA. plan94 output (mean dynamical J2000)
    is rotated to ICRS so every body shares one native frame.
    """

    name = "erfa"
    native_frame = ReferenceFrame.ICRS

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or load_settings()
        self._warned: Set[str] = set()

    @property
    def targets(self) -> FrozenSet[Target]:
        return _MAJOR_TARGETS

    def span(self, target: Target) -> Tuple[float, float]:
        return self.settings.erfa_jd_min, self.settings.erfa_jd_max

    def _call(self, fn_name: str, *args):
        fn = getattr(erfa, fn_name)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", erfa.ErfaWarning)
            out = fn(*args)
        for w in caught:
            if fn_name not in self._warned:
                self._warned.add(fn_name)
                log.warning("erfa.%s: %s (jd=%.1f)", fn_name, w.message, args[0] + args[1])
        return out

    def _earth(self, jd: float) -> Vector:
        pvh, _pvb = self._call("epv00", *_split(jd))
        return _pv(pvh)

    def _moon(self, jd: float) -> Vector:
        return _pv(self._call("moon98", *_split(jd)))

    def heliocentric_position(self, jd: float, target: Target) -> Vector:
        if target is Target.SUN:
            return _ZERO6
        if target is Target.EARTH:
            return self._earth(jd)
        if target is Target.MOON:
            earth, moon = self._earth(jd), self._moon(jd)
            return tuple(earth[i] + moon[i] for i in range(6))
        index = _PLAN94_INDEX.get(target)
        if index is None:
            raise UnsupportedTargetError("source", f"erfa has no theory for {target.value}",
                                         target=target.value, source=self.name)
        pv = _pv(self._call("plan94", *_split(jd), index))
        return to_icrs_frame(pv[0:3]) + to_icrs_frame(pv[3:6])

    def geocentric_theory_position(self, jd: float, target: Target) -> Vector:
        if target is Target.MOON:
            return self._moon(jd)[0:3] + (0.0, 0.0, 0.0)
        return super().geocentric_theory_position(jd, target)

# ───────────────────────────── Orbital elements ─────────────────────────────

class KeplerianSource(PositionSource):
    """
    Bodies from osculating elements on the mean ecliptic J2000; the Earth
    comes from erfa.epv00 rotated to the dynamical frame.
    """

    name = "keplerian"
    native_frame = ReferenceFrame.DYNAMICAL_J2000
    geocentric_targets: FrozenSet[Target] = frozenset()

    def __init__(self, elements: Dict[Target, OrbitalElements],
                 settings: Optional[Settings] = None,
                 model: PrecessionModel = PrecessionModel.IAU2000):
        if Target.EARTH in elements:
            raise ValueError("the Earth is not served from orbital elements")
        self.elements = dict(elements)
        self.settings = settings or load_settings()
        self._eps_j2000 = mean_obliquity(0.0, model)

    @property
    def targets(self) -> FrozenSet[Target]:
        return frozenset(self.elements) | {Target.SUN}

    def span(self, target: Target) -> Tuple[float, float]:
        lo, hi = self.settings.erfa_jd_min, self.settings.erfa_jd_max
        el = self.elements.get(target)
        if el is not None:
            if el.valid_from is not None:
                lo = max(lo, el.valid_from)
            if el.valid_to is not None:
                hi = min(hi, el.valid_to)
        return lo, hi

    def heliocentric_position(self, jd: float, target: Target) -> Vector:
        if target is Target.SUN:
            return _ZERO6
        if target is Target.EARTH:
            d1, d2 = _split(jd)
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", erfa.ErfaWarning)
                pvh, _pvb = erfa.epv00(d1, d2)
            pv = _pv(pvh)
            return to_j2000_frame(pv[0:3]) + to_j2000_frame(pv[3:6])
        el = self.elements.get(target)
        if el is None:
            raise UnsupportedTargetError("source", f"no orbital elements for {target.value}",
                                         target=target.value, source=self.name)
        return rotate_x(heliocentric_ecliptic_position(el, jd), self._eps_j2000)

# ───────────────────────────── Skyfield / JPL ─────────────────────────────

_TS = None                       # Skyfield timescale
_KERNELS: Dict[str, Any] = {}    # path → loaded SPK
_LOCK_KERNEL = threading.Lock()

_PLANET_KEYS: Dict[Target, str] = {
    Target.SUN: "sun",
    Target.MOON: "moon",
    Target.EARTH: "earth",
    Target.MERCURY: "mercury",
    Target.VENUS: "venus",
    Target.MARS: "mars",
    Target.JUPITER: "jupiter barycenter",
    Target.SATURN: "saturn barycenter",
    Target.URANUS: "uranus barycenter",
    Target.NEPTUNE: "neptune barycenter",
    Target.PLUTO: "pluto barycenter",
}


def _looks_like_lfs_pointer(path: str) -> bool:
    try:
        if os.path.getsize(path) <= 512:
            with open(path, "rb") as f:
                head = f.read(128)
            return head.startswith(b"version https://git-lfs.github.com/spec/v1")
    except OSError:
        pass
    return False


def _get_timescale():
    global _TS
    if _TS is not None:
        return _TS
    from skyfield.api import load
    with _LOCK_KERNEL:
        if _TS is None:
            _TS = load.timescale()
    return _TS


def _get_kernel(path: str):
    """Thread-safe lazy load of one SPK kernel."""
    kernel = _KERNELS.get(path)
    if kernel is not None:
        return kernel
    with _LOCK_KERNEL:
        kernel = _KERNELS.get(path)
        if kernel is not None:
            return kernel
        if not os.path.isfile(path):
            raise EphemerisError("kernel", f"JPL kernel not found: {path}")
        if _looks_like_lfs_pointer(path):
            raise EphemerisError("kernel", f"Kernel looks like a Git LFS pointer: {path}")
        from skyfield.api import load
        try:
            kernel = load(path)
        except Exception as e:
            raise EphemerisError("kernel", f"Skyfield failed to load kernel: {path}", error=str(e))
        _KERNELS[path] = kernel
        log.info("Loaded JPL kernel %s", os.path.basename(path))
    return kernel


class SkyfieldSource(PositionSource):
    """JPL development ephemeris (e.g. de421.bsp) read through Skyfield."""

    name = "skyfield"
    native_frame = ReferenceFrame.ICRS

    def __init__(self, path: Optional[str] = None, settings: Optional[Settings] = None):
        self.settings = settings or load_settings()
        self.path = path or self.settings.ephemeris_path
        if not self.path:
            raise EphemerisError("kernel", "No JPL kernel configured (pass a path or set EPHEMKIT_EPHEMERIS)")
        self._span: Optional[Tuple[float, float]] = None

    @property
    def kernel(self):
        return _get_kernel(self.path)

    @property
    def targets(self) -> FrozenSet[Target]:
        kernel = self.kernel
        out = set()
        for target, key in _PLANET_KEYS.items():
            if target is Target.EARTH:
                continue
            try:
                kernel[key]
            except (KeyError, ValueError):
                continue
            out.add(target)
        return frozenset(out)

    def span(self, target: Target) -> Tuple[float, float]:
        if self._span is None:
            segments = [s.spk_segment for s in self.kernel.segments]
            self._span = (max(float(s.start_jd) for s in segments),
                          min(float(s.end_jd) for s in segments))
        return self._span

    def heliocentric_position(self, jd: float, target: Target) -> Vector:
        if target is Target.SUN:
            return _ZERO6
        key = _PLANET_KEYS.get(target)
        if key is None:
            raise UnsupportedTargetError("source", f"no kernel body for {target.value}",
                                         target=target.value, source=self.name)
        kernel = self.kernel
        try:
            body = kernel[key] - kernel["sun"]
        except (KeyError, ValueError) as e:
            raise UnsupportedTargetError("source", f"kernel lacks {key}",
                                         target=target.value, source=self.name) from e
        state = body.at(_get_timescale().tdb_jd(jd))
        return (tuple(float(x) for x in state.position.au)
                + tuple(float(x) for x in state.velocity.au_per_d))
