# tests/test_rise_set.py
from __future__ import annotations

import logging
import math

import pytest

from ephemkit.core import rise_set
from ephemkit.core.calendar import AstroDate
from ephemkit.core.constants import SIDEREAL_DAY_LENGTH
from ephemkit.core.errors import NonConvergenceError
from ephemkit.core.models import (
    EphemerisRequest, EventWindow, ObserverLocation, PrecessionModel, Target, TimeInstant, TimeScale,
)
from ephemkit.core.pipeline import EphemerisPipeline, EventMarker
from ephemkit.core.rise_set import (
    TWILIGHT_CIVIL, RiseSetSolver, estimate_events, last_event, nearest_event, next_event,
)
from ephemkit.core.sources import ErfaPlanetarySource
from ephemkit.utils.config import Settings

JD_LOCAL = 2451545.0
EQUINOX_NOON = AstroDate(2024, 3, 20, 12).jd()


def _estimate(dec_deg: float, lat_deg: float, window=EventWindow.NEXT, ra=0.0, lst=0.0):
    observer = ObserverLocation.from_degrees(0.0, lat_deg)
    return estimate_events(ra, math.radians(dec_deg), 0.0, lst, JD_LOCAL, observer,
                           PrecessionModel.IAU2000, window=window)

# ─────────────────────────────────────────────────────────────────────────────
# Window folding
# ─────────────────────────────────────────────────────────────────────────────

def test_fold_helpers() -> None:
    assert next_event(0.25) == pytest.approx(0.25 / SIDEREAL_DAY_LENGTH)
    assert next_event(-0.25) == pytest.approx(0.75 / SIDEREAL_DAY_LENGTH)
    assert last_event(0.25) == pytest.approx(-0.75 / SIDEREAL_DAY_LENGTH)
    assert last_event(-0.25) == pytest.approx(-0.25 / SIDEREAL_DAY_LENGTH)
    assert nearest_event(0.75) == pytest.approx(-0.25 / SIDEREAL_DAY_LENGTH)
    assert nearest_event(-1.2) == pytest.approx(-0.2 / SIDEREAL_DAY_LENGTH)


@pytest.mark.parametrize("offset", [-2.7, -1.0, -0.4, 0.0, 0.3, 0.99, 3.1])
def test_fold_ranges(offset: float) -> None:
    assert 0.0 <= next_event(offset) < 1.0
    assert -1.0 < last_event(offset) <= 0.0
    assert -0.5 <= nearest_event(offset) * SIDEREAL_DAY_LENGTH <= 0.5

# ─────────────────────────────────────────────────────────────────────────────
# Single-pass estimate
# ─────────────────────────────────────────────────────────────────────────────

def test_markers_at_high_latitude() -> None:
    below = _estimate(-80.0, 60.0)
    assert below["rise"] is EventMarker.ALWAYS_BELOW_HORIZON
    assert below["set"] is EventMarker.ALWAYS_BELOW_HORIZON
    up = _estimate(80.0, 60.0)
    assert up["rise"] is EventMarker.CIRCUMPOLAR
    assert up["set"] is EventMarker.CIRCUMPOLAR
    # transit is always published
    assert isinstance(up["transit"], float)
    assert math.degrees(up["transit_elevation"]) == pytest.approx(70.0)


def test_equatorial_body_on_the_meridian() -> None:
    nearest = _estimate(0.0, 0.0, EventWindow.NEAREST)
    assert nearest["transit"] == JD_LOCAL
    assert nearest["transit_elevation"] == pytest.approx(math.pi / 2.0)
    current = _estimate(0.0, 0.0, EventWindow.CURRENT)
    assert current["rise"] < JD_LOCAL < current["set"]
    # half a sidereal day above the horizon, a bit more with the refraction allowance
    length = (current["set"] - current["rise"]) * SIDEREAL_DAY_LENGTH
    assert 0.5 < length < 0.51


def test_windows_order_events() -> None:
    nxt = _estimate(20.0, 40.0, EventWindow.NEXT, ra=1.0)
    prev = _estimate(20.0, 40.0, EventWindow.PREVIOUS, ra=1.0)
    for name in ("rise", "transit", "set"):
        assert nxt[name] >= JD_LOCAL
        assert prev[name] <= JD_LOCAL
        assert nxt[name] - prev[name] == pytest.approx(1.0 / SIDEREAL_DAY_LENGTH)


def test_twilight_is_lower_than_horizon() -> None:
    observer = ObserverLocation.from_degrees(0.0, 45.0)
    horizon = estimate_events(0.0, 0.0, 0.0, 0.0, JD_LOCAL, observer, PrecessionModel.IAU2000,
                              window=EventWindow.CURRENT)
    civil = estimate_events(0.0, 0.0, 0.0, 0.0, JD_LOCAL, observer, PrecessionModel.IAU2000,
                            event=TWILIGHT_CIVIL, window=EventWindow.CURRENT)
    assert civil["rise"] < horizon["rise"]
    assert civil["set"] > horizon["set"]


def test_current_or_next_must_be_resolved() -> None:
    with pytest.raises(ValueError):
        _estimate(0.0, 0.0, EventWindow.CURRENT_OR_NEXT)

# ─────────────────────────────────────────────────────────────────────────────
# Refinement
# ─────────────────────────────────────────────────────────────────────────────

def _solve(pipeline, observer, when=EQUINOX_NOON, **kwargs):
    instant = TimeInstant(when, TimeScale.UTC)
    request = EphemerisRequest(Target.SUN)
    position = pipeline.compute(instant, observer, request)
    return RiseSetSolver(pipeline).solve(instant, observer, request, position, **kwargs)


def test_sun_events_at_greenwich(erfa_pipeline, greenwich) -> None:
    pos = _solve(erfa_pipeline, greenwich)
    assert pos.events_converged is True
    # Sun up at noon: CURRENT window brackets the instant
    assert pos.rise < EQUINOX_NOON < pos.set
    assert pos.rise < pos.transit < pos.set
    assert abs(pos.transit - EQUINOX_NOON) * 24.0 < 0.25
    # near the equinox day and night are about equal
    assert (pos.set - pos.rise) * 24.0 == pytest.approx(12.2, abs=0.3)
    assert math.degrees(pos.transit_elevation) == pytest.approx(90.0 - 51.4769, abs=0.5)

    at_rise = erfa_pipeline.compute(TimeInstant(pos.rise, TimeScale.LOCAL), greenwich,
                                    EphemerisRequest(Target.SUN))
    assert abs(math.degrees(at_rise.elevation)) < 1.5


def test_night_instant_publishes_next_events(erfa_pipeline, greenwich) -> None:
    midnight = AstroDate(2024, 3, 20, 0).jd()
    pos = _solve(erfa_pipeline, greenwich, when=midnight)
    assert midnight < pos.rise < pos.set
    assert pos.transit > midnight


def test_polar_night_markers(erfa_pipeline) -> None:
    svalbard = ObserverLocation.from_degrees(15.6, 78.2, 10.0)
    pos = _solve(erfa_pipeline, svalbard, when=AstroDate(2024, 12, 21, 12).jd())
    assert pos.rise is EventMarker.ALWAYS_BELOW_HORIZON
    assert pos.set is EventMarker.ALWAYS_BELOW_HORIZON
    assert pos.events_converged is True


def test_capped_refinement_raises_when_strict(erfa_pipeline, greenwich, monkeypatch) -> None:
    monkeypatch.setattr(rise_set, "EVENT_MAX_ITERATIONS", 1)
    assert RiseSetSolver(erfa_pipeline).strict
    with pytest.raises(NonConvergenceError) as info:
        _solve(erfa_pipeline, greenwich)
    assert info.value.stage == "events"


def test_capped_refinement_warns_when_lenient(greenwich, monkeypatch, caplog, ensure_erfa) -> None:
    monkeypatch.setattr(rise_set, "EVENT_MAX_ITERATIONS", 1)
    lenient = Settings(strict_events=False)
    pipeline = EphemerisPipeline(ErfaPlanetarySource(lenient), lenient)
    with caplog.at_level(logging.WARNING, logger="ephemkit.core.rise_set"):
        pos = _solve(pipeline, greenwich)
    assert pos.events_converged is False
    assert isinstance(pos.rise, float)
    assert any("not converged" in r.getMessage() for r in caplog.records)
