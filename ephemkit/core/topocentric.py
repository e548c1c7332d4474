# ephemkit/core/topocentric.py
# -----------------------------------------------------------------------------
# Observer-on-the-surface corrections.
#
#   topocentric_observer      observer position/velocity, ICRS J2000 (AU, AU/day)
#   topocentric_correction    diurnal parallax + diurnal aberration on RA/Dec
#   horizontal_coordinates    azimuth (from north, eastward), elevation, parallactic angle
#   apparent_elevation        Astronomical Almanac refraction (P mbar, T °C)
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
import math

from ephemkit.core.constants import (
    AU, DEG_TO_RAD, DIURNAL_ABERRATION_CONSTANT, EARTH_MEAN_ROTATION_RATE, RAD_TO_DEG,
    SECONDS_PER_DAY, normalize_radians,
)
from ephemkit.core.ellipsoid import ReferenceEllipsoid
from ephemkit.core.frames import to_icrs_frame
from ephemkit.core.models import GeocentricObserver, ObserverLocation, PrecessionModel
from ephemkit.core.nutation import PoleOffsetCache, remove_nutation
from ephemkit.core.precession import precess_to_j2000
from ephemkit.core.vectors import Vector, from_spherical, to_spherical

__all__ = [
    "HorizontalPosition",
    "topocentric_observer", "topocentric_correction",
    "horizontal_coordinates", "apparent_elevation",
]


@dataclass(frozen=True)
class HorizontalPosition:
    azimuth: float
    elevation: float
    parallactic_angle: float


def topocentric_observer(jd_tdb: float, lst: float, geo: GeocentricObserver,
                         ellipsoid: ReferenceEllipsoid, model: PrecessionModel,
                         cache: Optional[PoleOffsetCache] = None) -> Vector:
    """
    Geocentric 6-vector of the observer in ICRS (AU, AU/day). `lst` is the
    local apparent sidereal time, so the true-of-date vector points along it.
    """
    r = geo.geo_radius * ellipsoid.equatorial_radius_km / AU
    pos = from_spherical(lst, geo.geo_latitude, r)
    speed = math.hypot(pos[0], pos[1]) * EARTH_MEAN_ROTATION_RATE * SECONDS_PER_DAY
    vel = (-speed * math.sin(lst), speed * math.cos(lst), 0.0)

    mean = remove_nutation(jd_tdb, pos + vel, model, cache=cache)
    j2000 = precess_to_j2000(jd_tdb, mean, model)
    return to_icrs_frame(j2000[0:3]) + to_icrs_frame(j2000[3:6])


def topocentric_correction(ra: float, dec: float, distance: float, lst: float,
                           geo: GeocentricObserver, ellipsoid: ReferenceEllipsoid,
                           apparent: bool) -> Tuple[float, float, float]:
    """
    Diurnal parallax (AA 1986, D3) and, for apparent positions, diurnal
    aberration. Returns (ra, dec, distance); distance stays geocentric.
    """
    eq = from_spherical(ra, dec, distance)
    rho = geo.geo_radius * (ellipsoid.equatorial_radius_km / AU)
    cos_lat = math.cos(geo.geo_latitude)
    topo = (eq[0] - rho * cos_lat * math.cos(lst),
            eq[1] - rho * cos_lat * math.sin(lst),
            eq[2] - rho * math.sin(geo.geo_latitude))
    loc = to_spherical(topo)

    dra = ddec = 0.0
    if apparent:
        k = DIURNAL_ABERRATION_CONSTANT * geo.geo_radius * cos_lat
        if math.cos(dec) != 0.0:
            dra = k * math.cos(lst - ra) / math.cos(dec)
        ddec = k * math.sin(dec) * math.sin(lst - ra)

    return loc.longitude + dra, loc.latitude + ddec, distance


def apparent_elevation(pressure: float, temperature: float, alt: float) -> float:
    """
    Geometric → apparent elevation (rad). Above 15°: AA 1986 B61 (~0.1').
    From −2° to 15°: Almanac for Computers fit, inverted numerically (~0.2').
    Outside [−2°, 90°) the input is returned unchanged.
    """
    alt_deg = alt * RAD_TO_DEG
    if not (-2.0 <= alt_deg < 90.0):
        return alt
    if alt_deg > 15.0:
        return alt + 0.00452 * DEG_TO_RAD * pressure / ((273.0 + temperature) * math.tan(alt))

    y = alt_deg
    correction = 0.0
    p = (pressure - 80.0) / 930.0
    q = 4.8e-3 * (temperature - 10.0)
    y0 = y
    correction0 = correction
    for _ in range(4):
        n = y + 7.31 / (y + 4.4)
        n = 1.0 / math.tan(n * DEG_TO_RAD)
        correction = n * p / (60.0 + q * (n + 39.0))
        n = y - y0
        y0 = correction - correction0 - n   # derivative denominator
        if n != 0.0 and y0 != 0.0:
            n = y - n * (alt_deg + correction - y) / y0
        else:
            n = alt_deg + correction
        y0 = y
        correction0 = correction
        y = n
    return alt + correction * DEG_TO_RAD


def horizontal_coordinates(ra: float, dec: float, lst: float, observer: ObserverLocation,
                           apparent: bool) -> HorizontalPosition:
    """Hour-angle based alt/az with refraction for apparent positions."""
    lat = observer.latitude
    h = lst - ra
    sin_alt = math.sin(lat) * math.sin(dec) + math.cos(lat) * math.cos(dec) * math.cos(h)
    alt = math.asin(max(-1.0, min(1.0, sin_alt)))
    y = math.sin(h)
    x = math.cos(h) * math.sin(lat) - math.tan(dec) * math.cos(lat)
    azimuth = normalize_radians(math.atan2(y, x) + math.pi)

    x = math.tan(lat) * math.cos(dec) - math.sin(dec) * math.cos(h)
    if x != 0.0:
        p = math.atan2(y, x)
    elif y != 0.0:
        p = math.copysign(math.pi / 2.0, y)
    else:
        p = 0.0

    if apparent:
        alt = apparent_elevation(observer.pressure, observer.temperature, alt)
    return HorizontalPosition(azimuth, alt, normalize_radians(p))
