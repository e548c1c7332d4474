# tests/test_topocentric.py
from __future__ import annotations

import math

import pytest

from ephemkit.core.constants import AU, J2000
from ephemkit.core.ellipsoid import (
    ELLIPSOIDS, ellipsoid_for_model, geocentric_to_geodetic, geodetic_to_geocentric,
    horizon_depression,
)
from ephemkit.core.models import ObserverLocation, PrecessionModel
from ephemkit.core.sidereal import (
    equation_of_equinoxes, greenwich_apparent_sidereal_time, greenwich_mean_sidereal_time,
)
from ephemkit.core.topocentric import (
    apparent_elevation, horizontal_coordinates, topocentric_correction, topocentric_observer,
)
from ephemkit.core.vectors import norm

# ─────────────────────────────────────────────────────────────────────────────
# Ellipsoids
# ─────────────────────────────────────────────────────────────────────────────

def test_model_ellipsoid_map() -> None:
    assert ellipsoid_for_model(PrecessionModel.LASKAR).name == "IAU1976"
    assert ellipsoid_for_model(PrecessionModel.IAU2000).name == "IERS2003"
    assert ellipsoid_for_model(PrecessionModel.CAPITAINE).name == "IERS2003"
    assert ellipsoid_for_model(PrecessionModel.SIMON).name == "IERS1989"
    assert len(ELLIPSOIDS) == 8
    iers = ELLIPSOIDS["IERS2003"]
    assert iers.polar_radius_km == pytest.approx(6356.75, abs=0.01)


@pytest.mark.parametrize("lat_deg,height", [(0.0, 0.0), (45.0, 1200.0), (-33.9, 10.0), (89.0, 3000.0)])
def test_geodetic_geocentric_round_trip(lat_deg, height) -> None:
    obs = ObserverLocation.from_degrees(10.0, lat_deg, height)
    ell = ellipsoid_for_model(PrecessionModel.IAU2000)
    geo = geodetic_to_geocentric(obs, ell)
    assert abs(geo.geo_latitude) <= abs(obs.latitude) + 1e-15
    lon, lat, h = geocentric_to_geodetic(geo, ell)
    assert lon == obs.longitude
    assert lat == pytest.approx(obs.latitude, abs=1e-7)
    assert h == pytest.approx(height, abs=0.5)


def test_horizon_depression() -> None:
    assert horizon_depression(ObserverLocation(0.0, 0.5, height=0.0), PrecessionModel.IAU2000) == 0.0
    dip = horizon_depression(ObserverLocation(0.0, 0.5, height=1000.0), PrecessionModel.IAU2000)
    assert math.degrees(dip) == pytest.approx(0.718, abs=0.01)

# ─────────────────────────────────────────────────────────────────────────────
# Sidereal time
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("model", list(PrecessionModel))
def test_gmst_at_j2000(model) -> None:
    gmst = greenwich_mean_sidereal_time(J2000, J2000, model)
    assert math.degrees(gmst) == pytest.approx(280.46061837, abs=1e-3)


def test_equation_of_equinoxes_is_small(ensure_erfa) -> None:
    for model in PrecessionModel:
        eqeq = equation_of_equinoxes(2455197.5, model)
        assert abs(eqeq) < math.radians(1.2 / 240.0)    # < 1.2 s of time
        gast = greenwich_apparent_sidereal_time(2455197.5, 2455197.5, model)
        assert 0.0 <= gast < 2.0 * math.pi

# ─────────────────────────────────────────────────────────────────────────────
# Topocentric corrections
# ─────────────────────────────────────────────────────────────────────────────

def test_topocentric_observer_state(ensure_erfa) -> None:
    obs = ObserverLocation.from_degrees(0.0, 0.0)
    ell = ellipsoid_for_model(PrecessionModel.IAU2000)
    geo = geodetic_to_geocentric(obs, ell)
    v = topocentric_observer(2455197.5, 1.0, geo, ell, PrecessionModel.IAU2000)
    assert len(v) == 6
    assert norm(v[0:3]) * AU == pytest.approx(ell.equatorial_radius_km, rel=1e-9)
    # equatorial rotation speed ≈ 0.465 km/s
    assert norm(v[3:6]) * AU / 86400.0 == pytest.approx(0.4651, abs=1e-3)


def test_moon_parallax_is_about_a_degree() -> None:
    obs = ObserverLocation.from_degrees(0.0, 0.0)
    ell = ellipsoid_for_model(PrecessionModel.IAU2000)
    geo = geodetic_to_geocentric(obs, ell)
    dist = 384400.0 / AU
    # body on the horizon (hour angle 90°): parallax ≈ asin(R/d) ≈ 0.95°
    ra, dec, d = topocentric_correction(0.0, 0.0, dist, -math.pi / 2.0, geo, ell, apparent=False)
    assert math.degrees(abs(ra - 0.0)) == pytest.approx(0.951, abs=0.01)
    assert d == dist


def test_zenith_and_south_meridian() -> None:
    obs = ObserverLocation.from_degrees(0.0, 45.0)
    zen = horizontal_coordinates(1.0, obs.latitude, 1.0, obs, apparent=False)
    assert zen.elevation == pytest.approx(math.pi / 2.0)
    south = horizontal_coordinates(1.0, 0.0, 1.0, obs, apparent=False)
    assert south.azimuth == pytest.approx(math.pi)
    assert south.elevation == pytest.approx(math.radians(45.0))


def test_refraction() -> None:
    alt45 = math.radians(45.0)
    r45 = apparent_elevation(1010.0, 10.0, alt45) - alt45
    assert math.degrees(r45) * 3600.0 == pytest.approx(58.0, abs=2.0)
    alt5 = math.radians(5.0)
    r5 = apparent_elevation(1010.0, 10.0, alt5) - alt5
    assert 8.0 < math.degrees(r5) * 60.0 < 11.0
    below = math.radians(-5.0)
    assert apparent_elevation(1010.0, 10.0, below) == below
