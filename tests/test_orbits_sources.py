# tests/test_orbits_sources.py
from __future__ import annotations

import math

import pytest

from ephemkit.core import orbits
from ephemkit.core.constants import EARTH_MEAN_ORBIT_RATE, J2000
from ephemkit.core.errors import (
    EphemerisError, InvalidDateError, NonConvergenceError, UnsupportedTargetError,
)
from ephemkit.core.models import EphemerisRequest, ReferenceFrame, Target, TimeInstant, TimeScale
from ephemkit.core.orbits import OrbitalElements, heliocentric_ecliptic_position, orbit_plane
from ephemkit.core.pipeline import EphemerisPipeline
from ephemkit.core.sources import ErfaPlanetarySource, KeplerianSource, SkyfieldSource
from ephemkit.core.vectors import norm
from ephemkit.utils.config import Settings


def _elements(**overrides) -> OrbitalElements:
    values = dict(name="test", semimajor_axis=1.0, eccentricity=0.0, inclination=0.0,
                  ascending_node=0.0, argument_of_perihelion=0.0, mean_anomaly=0.0,
                  reference_time=J2000)
    values.update(overrides)
    return OrbitalElements(**values)

# ─────────────────────────────────────────────────────────────────────────────
# Two-body propagation
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("dt", [0.0, 10.0, 91.3, 200.0, -57.0])
def test_circular_orbit(dt: float) -> None:
    v = heliocentric_ecliptic_position(_elements(), J2000 + dt)
    assert norm(v[0:3]) == pytest.approx(1.0, abs=1e-12)
    assert norm(v[3:6]) == pytest.approx(EARTH_MEAN_ORBIT_RATE, rel=1e-12)


def test_elliptic_perihelion_and_aphelion() -> None:
    el = _elements(semimajor_axis=2.5, eccentricity=0.3)
    x, y, _, _ = orbit_plane(el, J2000)
    assert (x, y) == pytest.approx((2.5 * 0.7, 0.0), abs=1e-12)
    half = math.pi / el.n
    x, y, _, _ = orbit_plane(el, J2000 + half)
    assert math.hypot(x, y) == pytest.approx(2.5 * 1.3, abs=1e-9)


def test_elliptic_high_eccentricity_satisfies_kepler() -> None:
    el = _elements(semimajor_axis=17.8, eccentricity=0.967, mean_anomaly=0.2)
    x, y, _, _ = orbit_plane(el, J2000)
    r = math.hypot(x, y)
    assert el.q <= r <= 17.8 * 1.967


def test_parabolic_at_perihelion() -> None:
    el = _elements(semimajor_axis=0.0, eccentricity=1.0, perihelion_distance=0.6)
    x, y, vx, vy = orbit_plane(el, J2000)
    assert (x, y) == pytest.approx((0.6, 0.0))
    # v² = 2k²/q at perihelion
    assert math.hypot(vx, vy) == pytest.approx(EARTH_MEAN_ORBIT_RATE * math.sqrt(2.0 / 0.6))
    x, y, _, _ = orbit_plane(el, J2000 + 100.0)
    assert math.hypot(x, y) > 0.6 and y > 0.0


def test_parabolic_needs_perihelion_distance() -> None:
    with pytest.raises(ValueError):
        _elements(semimajor_axis=0.0, eccentricity=1.0)


def test_hyperbolic_at_perihelion() -> None:
    el = _elements(semimajor_axis=-2.0, eccentricity=1.5)
    x, y, _, _ = orbit_plane(el, J2000)
    assert (x, y) == pytest.approx((1.0, 0.0), abs=1e-9)
    x, y, _, _ = orbit_plane(el, J2000 + 300.0)
    assert math.hypot(x, y) > 1.0


def test_hyperbolic_iteration_cap(monkeypatch) -> None:
    monkeypatch.setattr(orbits, "HYPERBOLIC_MAX_ITERATIONS", 1)
    el = _elements(semimajor_axis=-2.0, eccentricity=1.5, mean_anomaly=5.0)
    with pytest.raises(NonConvergenceError) as info:
        orbit_plane(el, J2000)
    assert info.value.stage == "orbit"


def test_inclined_orbit_leaves_the_ecliptic() -> None:
    el = _elements(inclination=math.radians(10.0), argument_of_perihelion=math.pi / 2.0)
    v = heliocentric_ecliptic_position(el, J2000)
    assert v[2] == pytest.approx(math.sin(math.radians(10.0)), abs=1e-12)

# ─────────────────────────────────────────────────────────────────────────────
# Sources
# ─────────────────────────────────────────────────────────────────────────────

def test_keplerian_source_targets_and_span() -> None:
    settings = Settings()
    el = _elements(name="C/Test", semimajor_axis=3.0, eccentricity=0.5,
                   valid_from=J2000 - 1000.0, valid_to=J2000 + 1000.0)
    src = KeplerianSource({Target.COMET: el}, settings)
    assert src.native_frame is ReferenceFrame.DYNAMICAL_J2000
    assert src.targets == frozenset({Target.COMET, Target.SUN})
    assert src.span(Target.COMET) == (J2000 - 1000.0, J2000 + 1000.0)
    assert src.span(Target.SUN) == (settings.erfa_jd_min, settings.erfa_jd_max)
    with pytest.raises(InvalidDateError):
        src.check(J2000 + 2000.0, Target.COMET)
    with pytest.raises(UnsupportedTargetError):
        src.check(J2000, Target.MARS)


def test_keplerian_source_rejects_earth_elements() -> None:
    with pytest.raises(ValueError):
        KeplerianSource({Target.EARTH: _elements()}, Settings())


def test_keplerian_earth_from_erfa(ensure_erfa) -> None:
    src = KeplerianSource({}, Settings())
    earth = src.heliocentric_position(J2000, Target.EARTH)
    assert 0.98 < norm(earth[0:3]) < 1.02
    assert norm(earth[3:6]) == pytest.approx(0.0172, abs=0.0005)


def test_keplerian_pipeline_end_to_end(ensure_erfa, greenwich) -> None:
    settings = Settings()
    # a Mars-like orbit on the ecliptic
    el = _elements(name="faux-Mars", semimajor_axis=1.524, eccentricity=0.0934,
                   inclination=math.radians(1.85), ascending_node=math.radians(49.6),
                   argument_of_perihelion=math.radians(286.5), mean_anomaly=math.radians(19.4))
    pipeline = EphemerisPipeline(KeplerianSource({Target.ASTEROID: el}, settings), settings)
    pos = pipeline.compute(TimeInstant(J2000, TimeScale.TT), greenwich,
                           EphemerisRequest(Target.ASTEROID, topocentric=False))
    assert 0.3 < pos.distance < 2.7
    assert pos.distance_from_sun == pytest.approx(1.524, rel=0.11)
    assert pos.light_time > 0.0
    assert pos.angular_radius == 0.0


def test_erfa_source_earth_and_targets(ensure_erfa) -> None:
    src = ErfaPlanetarySource(Settings())
    earth = src.heliocentric_position(J2000, Target.EARTH)
    assert 0.98 < norm(earth[0:3]) < 1.02
    assert Target.PLUTO not in src.targets
    assert Target.EARTH not in src.targets
    with pytest.raises(UnsupportedTargetError):
        src.check(J2000, Target.PLUTO)
    with pytest.raises(UnsupportedTargetError):
        src.heliocentric_position(J2000, Target.PLUTO)


def test_erfa_moon_is_geocentric(ensure_erfa) -> None:
    src = ErfaPlanetarySource(Settings())
    moon = src.geocentric_position(J2000, Target.MOON)
    assert 0.0023 < norm(moon[0:3]) < 0.0028
    assert moon[3:6] == (0.0, 0.0, 0.0)


def test_erfa_geocentric_velocity_is_earths(ensure_erfa) -> None:
    src = ErfaPlanetarySource(Settings())
    geo = src.geocentric_position(J2000, Target.JUPITER)
    earth = src.heliocentric_position(J2000, Target.EARTH)
    assert geo[3:6] == pytest.approx(earth[3:6], rel=1e-3)
    assert 3.9 < norm(geo[0:3]) < 6.5


def test_erfa_out_of_range_warns_once(ensure_erfa, caplog) -> None:
    settings = Settings(erfa_jd_min=1000000.5, erfa_jd_max=3000000.5)
    src = ErfaPlanetarySource(settings)
    with caplog.at_level("WARNING", logger="ephemkit.core.sources"):
        src.heliocentric_position(1200000.5, Target.MARS)
        src.heliocentric_position(1200001.5, Target.MARS)
    assert sum("plan94" in r.getMessage() for r in caplog.records) == 1


def test_skyfield_source_requires_kernel(tmp_path) -> None:
    with pytest.raises(EphemerisError):
        SkyfieldSource(settings=Settings())
    missing = SkyfieldSource(str(tmp_path / "de421.bsp"), Settings())
    with pytest.raises(EphemerisError) as info:
        missing.kernel
    assert info.value.stage == "kernel"


def test_skyfield_source_rejects_lfs_pointer(tmp_path) -> None:
    pointer = tmp_path / "de440s.bsp"
    pointer.write_text("version https://git-lfs.github.com/spec/v1\noid sha256:abc\nsize 1\n")
    with pytest.raises(EphemerisError, match="LFS"):
        SkyfieldSource(str(pointer), Settings()).kernel
