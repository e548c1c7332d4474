# ephemkit/core/pipeline.py
# -----------------------------------------------------------------------------
# Position pipeline: astrometric reduction of one body for one observer.
#
#   instant ─► TDB ─► span/target check ─► light time ─► heliocentric fields
#           ─► deflection (Sun, Jupiter, Saturn) + aberration (apparent)
#           ─► frame bias ─► precession
#           ─► nutation (apparent) ─► topocentric + horizontal ─► output equinox
#
# The result is an immutable PublishedPosition assembled by a PositionBuilder.
# Mutable state (the pole-offset memo) lives in a caller-owned PipelineContext.
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Union
import logging
import math

from ephemkit.core.constants import (
    AU, EQUATORIAL_RADIUS_KM, J2000, LIGHT_TIME_DAYS_PER_AU, SECONDS_PER_DAY, SUN_MASS_RATIO,
)
from ephemkit.core.ellipsoid import ellipsoid_for_model, geodetic_to_geocentric
from ephemkit.core.errors import NonConvergenceError, UnsupportedTargetError
from ephemkit.core.frames import (
    aberration, deflection_correction, ecliptic_to_equatorial, equatorial_to_ecliptic,
    solar_deflection, to_icrs_frame, to_j2000_frame,
)
from ephemkit.core.models import (
    EphemerisKind, EphemerisRequest, ObserverLocation, ReferenceFrame, Target,
    TimeInstant, TimeScale,
)
from ephemkit.core.nutation import PoleOffsetCache, apply_nutation
from ephemkit.core.precession import precess, precess_equatorial_with_velocity, precess_from_j2000
from ephemkit.core.sidereal import apparent_sidereal_time
from ephemkit.core.sources import PositionSource
from ephemkit.core.timescales import TimeConverter
from ephemkit.core.topocentric import (
    horizontal_coordinates, topocentric_correction, topocentric_observer,
)
from ephemkit.core.vectors import Vector, from_spherical, norm, sub, to_spherical
from ephemkit.utils.config import Settings, load_settings

log = logging.getLogger(__name__)

__all__ = [
    "LIGHT_TIME_TOLERANCE", "LIGHT_TIME_MAX_PASSES",
    "EventMarker", "EventTime",
    "PipelineContext", "PublishedPosition", "PositionBuilder",
    "topocentric_light_time", "solve_light_time",
    "PLANETARY_DEFLECTORS", "planetary_deflection",
    "EphemerisPipeline",
]

LIGHT_TIME_TOLERANCE: float = 0.001 / SECONDS_PER_DAY   # days
LIGHT_TIME_MAX_PASSES: int = 100

# bodies bending light besides the Sun, in the order they are applied
PLANETARY_DEFLECTORS: Tuple[Target, ...] = (Target.JUPITER, Target.SATURN)

_ZERO6: Vector = (0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

# ───────────────────────────── Result types ─────────────────────────────

class EventMarker(Enum):
    """Published in place of a rise/set instant when the event does not occur."""
    CIRCUMPOLAR = "circumpolar"
    ALWAYS_BELOW_HORIZON = "always_below_horizon"


# Julian day (local time) or a marker
EventTime = Union[float, EventMarker]


@dataclass
class PipelineContext:
    """Caller-owned mutable state shared by pipeline runs (thread-safe)."""
    pole_cache: PoleOffsetCache = field(default_factory=PoleOffsetCache)

    @classmethod
    def from_settings(cls, settings: Settings, provider=None) -> "PipelineContext":
        return cls(PoleOffsetCache(provider, capacity=settings.pole_cache_size))


@dataclass(frozen=True)
class PublishedPosition:
    """
    Angles in radians, distances in AU, light time in days. Rise/set/transit
    are local-time Julian days (observer time zone) or an EventMarker.
    """
    target: Target
    jd_tdb: float
    ra: float
    dec: float
    distance: float
    helio_longitude: float
    helio_latitude: float
    distance_from_sun: float
    light_time: float
    angular_radius: float = 0.0
    azimuth: Optional[float] = None
    elevation: Optional[float] = None
    parallactic_angle: Optional[float] = None
    rise: Optional[EventTime] = None
    set: Optional[EventTime] = None
    transit: Optional[EventTime] = None
    transit_elevation: Optional[float] = None
    events_converged: Optional[bool] = None


class PositionBuilder:
    """
    Collects pipeline stage outputs; `build()` may be called once. Stages
    overwrite fields freely until then.
    """

    _FIELDS = frozenset(f.name for f in fields(PublishedPosition))

    def __init__(self, **initial: Any):
        self._values: Dict[str, Any] = {}
        self._built = False
        self.set(**initial)

    @classmethod
    def from_position(cls, position: PublishedPosition) -> "PositionBuilder":
        return cls(**{f.name: getattr(position, f.name) for f in fields(PublishedPosition)})

    def set(self, **values: Any) -> "PositionBuilder":
        if self._built:
            raise RuntimeError("PositionBuilder.build() already called")
        unknown = set(values) - self._FIELDS
        if unknown:
            raise TypeError(f"unknown PublishedPosition fields: {sorted(unknown)}")
        self._values.update(values)
        return self

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def build(self) -> PublishedPosition:
        if self._built:
            raise RuntimeError("PositionBuilder.build() already called")
        self._built = True
        return PublishedPosition(**self._values)

# ───────────────────────────── Light time ─────────────────────────────

def topocentric_light_time(geo: Sequence[float], observer_vector: Sequence[float]) -> float:
    """Light time (days) from the observer to the geocentric position `geo`."""
    return norm(sub(geo[0:3], observer_vector[0:3])) * LIGHT_TIME_DAYS_PER_AU


def solve_light_time(source: PositionSource, jd_tdb: float, target: Target,
                     observer_vector: Sequence[float] = _ZERO6,
                     light_time: Optional[float] = None,
                     tolerance: float = LIGHT_TIME_TOLERANCE,
                     max_passes: int = LIGHT_TIME_MAX_PASSES) -> Tuple[float, Vector]:
    """
    Fixed-point iteration of the light time against the observer position.
    Returns (light_time, geocentric vector at the previous estimate); stops
    once successive estimates agree within `tolerance` days.
    """
    if light_time is None:
        light_time = norm(source.geocentric_position(jd_tdb, target, 0.0)[0:3]) * LIGHT_TIME_DAYS_PER_AU

    geo = source.geocentric_position(jd_tdb, target, light_time)
    corrected = topocentric_light_time(geo, observer_vector)
    passes = 1
    while abs(light_time - corrected) > tolerance:
        if passes >= max_passes:
            raise NonConvergenceError("light-time", f"no convergence after {passes} passes",
                                      target=target.value, jd=jd_tdb,
                                      delta_s=abs(light_time - corrected) * SECONDS_PER_DAY)
        light_time = corrected
        geo = source.geocentric_position(jd_tdb, target, light_time)
        corrected = topocentric_light_time(geo, observer_vector)
        passes += 1
    log.debug("Light time for %s converged in %d passes (%.9f d)", target.value, passes, corrected)
    return corrected, geo

# ───────────────────────────── Deflection ─────────────────────────────

def planetary_deflection(source: PositionSource, jd: float, target: Target,
                         geo: Sequence[float], sun: Sequence[float], helio: Sequence[float],
                         deflectors: Sequence[Target] = PLANETARY_DEFLECTORS) -> Vector:
    """
    Light bending of the observer→object vector `geo` by major planets.
    `sun` is observer→Sun and `helio` Sun→object, both in the source frame.
    Each deflector is placed where it was when its own light left it.
    Deflectors the source cannot serve at `jd` are skipped, as is the target.
    """
    out: Vector = tuple(geo)
    observer = tuple(-x for x in sun[0:3])
    for body in deflectors:
        if body is target or body not in source.targets:
            continue
        lo, hi = source.span(body)
        if not (lo <= jd <= hi):
            continue
        where = source.heliocentric_position(jd, body)
        delay = norm(sub(where[0:3], observer)) * LIGHT_TIME_DAYS_PER_AU
        where = source.heliocentric_position(jd - delay, body)
        out = deflection_correction(out, sun, helio, where[0:3], SUN_MASS_RATIO[body.value])
    return out

# ───────────────────────────── Pipeline ─────────────────────────────

class EphemerisPipeline:
    """
    Reduces a position source to published coordinates.

        pipeline = EphemerisPipeline(ErfaPlanetarySource())
        pos = pipeline.compute(TimeInstant(2451545.0, TimeScale.TT),
                               observer, EphemerisRequest(Target.SUN))
    """

    def __init__(self, source: PositionSource, settings: Optional[Settings] = None,
                 context: Optional[PipelineContext] = None,
                 converter: Optional[TimeConverter] = None):
        self.source = source
        self.settings = settings or load_settings()
        self.context = context or PipelineContext.from_settings(self.settings)
        self.converter = converter or TimeConverter(self.settings)

    # ── frames ──
    def _to_requested_frame(self, v: Sequence[float], frame: ReferenceFrame) -> Vector:
        native = self.source.native_frame
        if native is frame:
            return tuple(v[0:3])
        if native is ReferenceFrame.ICRS:
            return to_j2000_frame(v)
        return to_icrs_frame(v)

    def _observer_in_native_frame(self, v: Vector) -> Vector:
        if self.source.native_frame is ReferenceFrame.DYNAMICAL_J2000:
            return to_j2000_frame(v[0:3]) + to_j2000_frame(v[3:6])
        return v

    # ── stages ──
    def _heliocentric(self, jd: float, target: Target, light_time: float,
                      request: EphemerisRequest) -> Tuple[Vector, Tuple[float, float, float]]:
        helio = self.source.heliocentric_position(jd - light_time, target)
        dyn = helio
        if self.source.native_frame is ReferenceFrame.ICRS:
            dyn = to_j2000_frame(helio[0:3]) + to_j2000_frame(helio[3:6])
        of_date = precess_equatorial_with_velocity(J2000, jd, dyn, request.model)
        loc = to_spherical(equatorial_to_ecliptic(of_date[0:3], jd, request.model))
        return helio, (loc.longitude, loc.latitude, loc.radius)

    @staticmethod
    def _angular_radius(target: Target, distance: float) -> float:
        radius_km = EQUATORIAL_RADIUS_KM.get(target.value)
        if not radius_km or distance <= 0.0:
            return 0.0
        return math.atan(radius_km / (distance * AU))

    def _to_output_equinox(self, builder: PositionBuilder, jd: float,
                           request: EphemerisRequest) -> None:
        equinox = request.resolve_equinox(jd)
        model = request.model

        eq = from_spherical(builder.get("ra"), builder.get("dec"), builder.get("distance"))
        loc = to_spherical(precess(jd, equinox, eq, model))
        builder.set(ra=loc.longitude, dec=loc.latitude)

        helio = from_spherical(builder.get("helio_longitude"), builder.get("helio_latitude"),
                               builder.get("distance_from_sun"))
        helio = precess(jd, equinox, ecliptic_to_equatorial(helio, jd, model), model)
        loc = to_spherical(equatorial_to_ecliptic(helio, equinox, model))
        builder.set(helio_longitude=loc.longitude, helio_latitude=loc.latitude)

    # ── public ──
    def compute(self, instant: TimeInstant, observer: ObserverLocation,
                request: EphemerisRequest) -> PublishedPosition:
        target, model = request.target, request.model
        cache = self.context.pole_cache
        apparent = request.kind is EphemerisKind.APPARENT

        jd = self.converter.to_julian_day(instant, observer, TimeScale.TDB)

        if target is Target.EARTH:
            raise UnsupportedTargetError("pipeline", "the Earth cannot be observed from the geocenter",
                                         target=target.value)
        self.source.check(jd, target)

        ellipsoid = ellipsoid_for_model(model)
        geo_observer = geodetic_to_geocentric(observer, ellipsoid)
        lst = 0.0
        observer_vector = _ZERO6
        if request.topocentric:
            lst = apparent_sidereal_time(self.converter, instant, observer, model, cache)
            observer_vector = self._observer_in_native_frame(
                topocentric_observer(jd, lst, geo_observer, ellipsoid, model, cache))

        geo = self.source.geocentric_position(jd, target, 0.0)
        light_time = 0.0
        if request.kind is not EphemerisKind.GEOMETRIC:
            light_time = norm(geo[0:3]) * LIGHT_TIME_DAYS_PER_AU
            if target is not Target.SUN:
                light_time, geo = solve_light_time(self.source, jd, target, observer_vector, light_time)

        helio, (helio_lon, helio_lat, helio_r) = self._heliocentric(jd, target, light_time, request)

        if apparent:
            sun = self.source.geocentric_position(jd, Target.SUN, light_time)
            if target is not Target.SUN:
                geo = solar_deflection(geo, sun, helio)
                geo = planetary_deflection(self.source, jd, target, geo, sun, helio,
                                           PLANETARY_DEFLECTORS)
            if target is not Target.MOON:
                geo = aberration(geo, sun, light_time)

        geo = self._to_requested_frame(geo, request.frame)
        geo = precess_from_j2000(jd, geo, model)
        if apparent:
            geo = apply_nutation(jd, geo, model, cache=cache)

        loc = to_spherical(geo)
        builder = PositionBuilder(
            target=target, jd_tdb=jd,
            ra=loc.longitude, dec=loc.latitude, distance=loc.radius,
            helio_longitude=helio_lon, helio_latitude=helio_lat, distance_from_sun=helio_r,
            light_time=light_time,
            angular_radius=self._angular_radius(target, loc.radius),
        )

        if request.topocentric:
            ra, dec, dist = topocentric_correction(loc.longitude, loc.latitude, loc.radius, lst,
                                                   geo_observer, ellipsoid, apparent)
            hz = horizontal_coordinates(ra, dec, lst, observer, apparent)
            builder.set(ra=ra, dec=dec, distance=dist, azimuth=hz.azimuth,
                        elevation=hz.elevation, parallactic_angle=hz.parallactic_angle)

        if not request.is_equinox_of_date:
            self._to_output_equinox(builder, jd, request)

        return builder.build()
