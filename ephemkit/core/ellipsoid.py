# ephemkit/core/ellipsoid.py
# -----------------------------------------------------------------------------
# Reference ellipsoids and geodetic ↔ geocentric observer conversion.
#
# Public API:
#   ReferenceEllipsoid, ELLIPSOIDS, ellipsoid_for_model(model)
#   geodetic_to_geocentric(observer, ellipsoid) → GeocentricObserver
#   geocentric_to_geodetic(geo, ellipsoid)      → (lon, lat, height_m)
#   horizon_depression(observer, model)         → rad
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple
import math

from ephemkit.core.models import GeocentricObserver, ObserverLocation, PrecessionModel

__all__ = [
    "ReferenceEllipsoid", "ELLIPSOIDS", "ellipsoid_for_model",
    "geodetic_to_geocentric", "geocentric_to_geodetic", "horizon_depression",
]


@dataclass(frozen=True)
class ReferenceEllipsoid:
    name: str
    equatorial_radius_km: float
    inverse_flattening: float

    @property
    def flattening(self) -> float:
        return 1.0 / self.inverse_flattening

    @property
    def polar_radius_km(self) -> float:
        return self.equatorial_radius_km * (1.0 - self.flattening)


ELLIPSOIDS: Dict[str, ReferenceEllipsoid] = {
    e.name: e for e in (
        ReferenceEllipsoid("IERS2003", 6378.1366, 298.25642),
        ReferenceEllipsoid("WGS84", 6378.137, 298.257223563),
        ReferenceEllipsoid("IERS1989", 6378.136, 298.257),
        ReferenceEllipsoid("MERIT1983", 6378.137, 298.257),
        ReferenceEllipsoid("GRS80", 6378.137, 298.257222),
        ReferenceEllipsoid("GRS67", 6378.160, 298.247167),
        ReferenceEllipsoid("IAU1976", 6378.140, 298.257),
        ReferenceEllipsoid("IAU1964", 6378.160, 298.25),
    )
}

_MODEL_ELLIPSOID: Dict[PrecessionModel, str] = {
    PrecessionModel.LASKAR: "IAU1976",
    PrecessionModel.IAU2000: "IERS2003",
    PrecessionModel.CAPITAINE: "IERS2003",
}


def ellipsoid_for_model(model: PrecessionModel) -> ReferenceEllipsoid:
    return ELLIPSOIDS[_MODEL_ELLIPSOID.get(model, "IERS1989")]


def geodetic_to_geocentric(observer: ObserverLocation, ellipsoid: ReferenceEllipsoid) -> GeocentricObserver:
    """Geocentric latitude and distance (Earth radii) of a geodetic site."""
    radius = ellipsoid.equatorial_radius_km
    co = math.cos(observer.latitude)
    si2 = math.sin(observer.latitude) ** 2
    fl = (1.0 - ellipsoid.flattening) ** 2
    u = 1.0 / math.sqrt(co * co + fl * si2)
    a = radius * u * 1000.0 + observer.height
    b = radius * fl * u * 1000.0 + observer.height
    rho = math.sqrt(a * a * co * co + b * b * si2)
    geo_lat = math.acos(min(1.0, a * co / rho))
    if observer.latitude < 0.0:
        geo_lat = -geo_lat
    return GeocentricObserver(observer.longitude, geo_lat, rho / (1000.0 * radius))


def geocentric_to_geodetic(geo: GeocentricObserver, ellipsoid: ReferenceEllipsoid) -> Tuple[float, float, float]:
    """Analytic inverse of geodetic_to_geocentric (mas-level latitude error)."""
    radius = ellipsoid.equatorial_radius_km
    fl = (1.0 - ellipsoid.flattening) ** 2
    lat = math.atan(math.tan(geo.geo_latitude) / fl)
    co, si = math.cos(lat), math.sin(lat)
    u = 1.0 / math.sqrt(co * co + fl * si * si)
    a = radius * u * 1000.0
    b = radius * fl * u * 1000.0
    rho = geo.geo_radius * 1000.0 * radius

    coef_a = co * co + si * si
    coef_b = 2.0 * a * co * co + 2.0 * b * si * si
    coef_c = a * a * co * co + b * b * si * si - rho * rho
    height = (-coef_b + math.sqrt(coef_b * coef_b - 4.0 * coef_a * coef_c)) / (2.0 * coef_a)

    lat = math.acos(min(1.0, rho * math.cos(geo.geo_latitude) / (a + height)))
    if geo.geo_latitude < 0.0:
        lat = -lat
    return geo.longitude, lat, height


def horizon_depression(observer: ObserverLocation, model: PrecessionModel) -> float:
    """Dip of the sea horizon for an observer `height` metres up (0 at or below 0 m)."""
    if observer.height <= 0.0:
        return 0.0
    rho = ellipsoid_for_model(model).equatorial_radius_km * (0.99833 + 0.00167 * math.cos(2.0 * observer.latitude))
    return math.acos(math.sqrt(rho / (rho + observer.height / 1000.0)))
