# ephemkit/core/rise_set.py
# -----------------------------------------------------------------------------
# Rise / set / transit solver.
#
# A single pass treats the body as fixed on the sky:
#   cos H0 = (−h0 − sin φ sin δ) / (cos φ cos δ)
#   > 1  → ALWAYS_BELOW_HORIZON,  < −1 → CIRCUMPOLAR
# with h0 the event altitude, plus angular radius and horizon depression for
# the horizon event. Sidereal offsets are folded into the requested window
# and converted to solar days.
#
# RiseSetSolver refines each event by recomputing the apparent topocentric
# position at the current estimate until successive estimates agree to
# EVENT_TOLERANCE, at most EVENT_MAX_ITERATIONS times.
# -----------------------------------------------------------------------------
from __future__ import annotations

from typing import Callable, Dict, Optional, Tuple
import logging
import math

from ephemkit.core.constants import (
    DEG_TO_RAD, RAD_TO_DAY, SECONDS_PER_DAY, SIDEREAL_DAY_LENGTH, module,
)
from ephemkit.core.ellipsoid import horizon_depression
from ephemkit.core.errors import NonConvergenceError
from ephemkit.core.models import (
    EQUINOX_OF_DATE, EphemerisKind, EphemerisRequest, EventWindow, ObserverLocation,
    PrecessionModel, TimeInstant, TimeScale,
)
from ephemkit.core.pipeline import (
    EphemerisPipeline, EventMarker, EventTime, PositionBuilder, PublishedPosition,
)
from ephemkit.core.sidereal import apparent_sidereal_time
from ephemkit.core.topocentric import horizontal_coordinates

log = logging.getLogger(__name__)

__all__ = [
    "TWILIGHT_CIVIL", "TWILIGHT_NAUTICAL", "TWILIGHT_ASTRONOMICAL", "HORIZON_ASTRONOMICAL",
    "EVENT_MAX_ITERATIONS", "EVENT_TOLERANCE",
    "EVENT_RISE", "EVENT_TRANSIT", "EVENT_SET",
    "next_event", "last_event", "nearest_event",
    "estimate_events", "RiseSetSolver",
]

# Event altitudes (rad below the horizon)
TWILIGHT_CIVIL: float = 6.0 * DEG_TO_RAD
TWILIGHT_NAUTICAL: float = 12.0 * DEG_TO_RAD
TWILIGHT_ASTRONOMICAL: float = 18.0 * DEG_TO_RAD
HORIZON_ASTRONOMICAL: float = (32.67 / 60.0) * DEG_TO_RAD   # refraction at the horizon

EVENT_MAX_ITERATIONS: int = 10
EVENT_TOLERANCE: float = 0.5 / SECONDS_PER_DAY   # days

EVENT_RISE = "rise"
EVENT_TRANSIT = "transit"
EVENT_SET = "set"

# ───────────────────────────── Window folding ─────────────────────────────

def next_event(offset: float) -> float:
    """Sidereal-day fraction → solar days to the next occurrence, in [0, 1)."""
    x = module(offset, 1.0)
    if x < 0.0:
        x += 1.0
    if x > 1.0:
        x -= 1.0
    return x / SIDEREAL_DAY_LENGTH


def last_event(offset: float) -> float:
    """Sidereal-day fraction → solar days to the previous occurrence, in (−1, 0]."""
    x = module(offset, 1.0)
    if x > 0.0:
        x -= 1.0
    if x < -1.0:
        x += 1.0
    return x / SIDEREAL_DAY_LENGTH


def nearest_event(offset: float) -> float:
    x = module(offset, 1.0)
    if x > 0.5:
        x -= 1.0
    if x < -0.5:
        x += 1.0
    return x / SIDEREAL_DAY_LENGTH


Fold = Callable[[float], float]

# (rise, transit, set) folds per window
_WINDOW_FOLDS: Dict[EventWindow, Tuple[Fold, Fold, Fold]] = {
    EventWindow.NEXT: (next_event, next_event, next_event),
    EventWindow.CURRENT: (last_event, nearest_event, next_event),
    EventWindow.PREVIOUS: (last_event, last_event, last_event),
    EventWindow.NEAREST: (nearest_event, nearest_event, nearest_event),
}

# ───────────────────────────── Single pass ─────────────────────────────

def estimate_events(ra: float, dec: float, angular_radius: float, lst: float, jd_local: float,
                    observer: ObserverLocation, model: PrecessionModel,
                    event: float = HORIZON_ASTRONOMICAL,
                    window: EventWindow = EventWindow.NEXT) -> Dict[str, object]:
    """
    Static-body estimate of rise, transit and set (local-time Julian days or
    EventMarker) and the transit elevation, relative to the instant whose
    local apparent sidereal time is `lst` and local Julian day is `jd_local`.
    """
    if window is EventWindow.CURRENT_OR_NEXT:
        raise ValueError("resolve CURRENT_OR_NEXT before estimating events")
    fold_rise, fold_transit, fold_set = _WINDOW_FOLDS[window]
    lat = observer.latitude

    h0 = -event
    if event == HORIZON_ASTRONOMICAL:
        h0 = h0 - angular_radius - horizon_depression(observer, model)
    cos_h = (h0 - math.sin(lat) * math.sin(dec)) / (math.cos(lat) * math.cos(dec))

    out: Dict[str, object] = {
        EVENT_TRANSIT: jd_local + fold_transit(RAD_TO_DAY * (ra - lst)),
        "transit_elevation": math.asin(max(-1.0, min(1.0, math.sin(dec) * math.sin(lat)
                                                     + math.cos(dec) * math.cos(lat)))),
    }
    if cos_h > 1.0:
        out[EVENT_RISE] = out[EVENT_SET] = EventMarker.ALWAYS_BELOW_HORIZON
    elif cos_h < -1.0:
        out[EVENT_RISE] = out[EVENT_SET] = EventMarker.CIRCUMPOLAR
    else:
        ang = math.acos(cos_h)
        out[EVENT_RISE] = jd_local + fold_rise(RAD_TO_DAY * (ra - ang - lst))
        out[EVENT_SET] = jd_local + fold_set(RAD_TO_DAY * (ra + ang - lst))
    return out

# ───────────────────────────── Refinement ─────────────────────────────

class RiseSetSolver:
    """Iterated rise/set/transit on top of an EphemerisPipeline."""

    def __init__(self, pipeline: EphemerisPipeline):
        self.pipeline = pipeline

    @property
    def strict(self) -> bool:
        return self.pipeline.settings.strict_events

    def _resolve_window(self, window: EventWindow, position: PublishedPosition, lst: float,
                        observer: ObserverLocation) -> EventWindow:
        if window is not EventWindow.CURRENT_OR_NEXT:
            return window
        elevation = position.elevation
        if elevation is None:
            elevation = horizontal_coordinates(position.ra, position.dec, lst, observer, False).elevation
        return EventWindow.CURRENT if elevation >= 0.0 else EventWindow.NEXT

    def _refine(self, name: str, instant: TimeInstant, observer: ObserverLocation,
                request: EphemerisRequest, position: PublishedPosition, lst: float,
                jd_local: float, event: float, window: EventWindow) -> Tuple[EventTime, float, bool]:
        ra, dec, radius = position.ra, position.dec, position.angular_radius
        last: Optional[float] = None
        estimate: Dict[str, object] = {}
        dt = math.inf
        n_iter = 0
        while True:
            n_iter += 1
            estimate = estimate_events(ra, dec, radius, lst, jd_local, observer,
                                       request.model, event, window)
            t = estimate[name]
            if isinstance(t, EventMarker):
                dt = 0.0
            else:
                dt = math.inf if last is None else t - last
            if abs(dt) <= EVENT_TOLERANCE or n_iter >= EVENT_MAX_ITERATIONS:
                break
            last = t
            moved = self.pipeline.compute(TimeInstant(t, TimeScale.LOCAL), observer, request)
            ra, dec, radius = moved.ra, moved.dec, moved.angular_radius

        converged = abs(dt) <= EVENT_TOLERANCE
        log.debug("%s of %s: %d iterations, |dt|=%.3f s", name, position.target.value, n_iter,
                  abs(dt) * SECONDS_PER_DAY if math.isfinite(dt) else float("inf"))
        if not converged:
            if self.strict:
                raise NonConvergenceError("events", f"{name} did not converge in {n_iter} iterations",
                                          target=position.target.value, last_step_s=dt * SECONDS_PER_DAY)
            log.warning("%s of %s not converged after %d iterations (last step %.2f s)",
                        name, position.target.value, n_iter, dt * SECONDS_PER_DAY)
        return estimate[name], estimate["transit_elevation"], converged

    def solve(self, instant: TimeInstant, observer: ObserverLocation, request: EphemerisRequest,
              position: PublishedPosition, event: float = HORIZON_ASTRONOMICAL,
              window: EventWindow = EventWindow.CURRENT_OR_NEXT) -> PublishedPosition:
        """
        `position` is the pipeline output for (instant, observer, request).
        Returns a copy carrying rise, set, transit and transit elevation.
        """
        pipeline = self.pipeline
        refined = request.with_(kind=EphemerisKind.APPARENT, equinox=EQUINOX_OF_DATE, topocentric=True)
        lst = apparent_sidereal_time(pipeline.converter, instant, observer, request.model,
                                     pipeline.context.pole_cache)
        jd_local = pipeline.converter.to_julian_day(instant, observer, TimeScale.LOCAL)
        window = self._resolve_window(window, position, lst, observer)

        builder = PositionBuilder.from_position(position)
        all_converged = True
        for name in (EVENT_RISE, EVENT_TRANSIT, EVENT_SET):
            value, transit_elevation, converged = self._refine(
                name, instant, observer, refined, position, lst, jd_local, event, window)
            all_converged = all_converged and converged
            builder.set(**{name: value})
            if name == EVENT_TRANSIT:
                builder.set(transit_elevation=transit_elevation)
        builder.set(events_converged=all_converged)
        return builder.build()
