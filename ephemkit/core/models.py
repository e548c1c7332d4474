# ephemkit/core/models.py
# -----------------------------------------------------------------------------
# Model selectors and immutable request/observer/instant value types.
#
# • Enums for every selector the pipeline switches on (model, kind, frame, scale)
# • Frozen dataclasses; derived observer geometry lives in GeocentricObserver
# • "Equinox of date" is an explicit sentinel resolved before any precession
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional
import math

from ephemkit.core.errors import InvalidDateError

__all__ = [
    "PrecessionModel", "EphemerisKind", "ReferenceFrame", "TimeScale",
    "Target", "EventWindow",
    "EQUINOX_OF_DATE",
    "EphemerisRequest", "ObserverLocation", "GeocentricObserver", "TimeInstant",
]

# ───────────────────────────── Selectors ─────────────────────────────

class PrecessionModel(Enum):
    """Precession/obliquity/sidereal-time model families."""
    IAU2000 = "iau2000"
    CAPITAINE = "capitaine"
    WILLIAMS = "williams"
    JPLDE403 = "jplde403"
    SIMON = "simon"
    LASKAR = "laskar"


class EphemerisKind(Enum):
    """How far the reduction goes."""
    GEOMETRIC = "geometric"      # no light time, no corrections
    ASTROMETRIC = "astrometric"  # light time only
    APPARENT = "apparent"        # light time, deflection, aberration, nutation, refraction


class ReferenceFrame(Enum):
    DYNAMICAL_J2000 = "dynamical-j2000"
    ICRS = "icrs"


class TimeScale(Enum):
    UTC = "utc"
    UT1 = "ut1"
    TT = "tt"
    TDB = "tdb"
    LOCAL = "local"


class Target(Enum):
    """Solar System bodies; values double as keys into the constants tables."""
    SUN = "Sun"
    MERCURY = "Mercury"
    VENUS = "Venus"
    EARTH = "Earth"
    MOON = "Moon"
    MARS = "Mars"
    JUPITER = "Jupiter"
    SATURN = "Saturn"
    URANUS = "Uranus"
    NEPTUNE = "Neptune"
    PLUTO = "Pluto"
    # bodies served only by element-based sources
    COMET = "Comet"
    ASTEROID = "Asteroid"


class EventWindow(Enum):
    """Which rise/transit/set triple to publish relative to the instant."""
    NEXT = 0
    CURRENT = 1
    PREVIOUS = 2
    NEAREST = 3
    CURRENT_OR_NEXT = 4


EQUINOX_OF_DATE: Optional[float] = None

# ───────────────────────────── Request ─────────────────────────────

@dataclass(frozen=True)
class EphemerisRequest:
    target: Target
    kind: EphemerisKind = EphemerisKind.APPARENT
    equinox: Optional[float] = EQUINOX_OF_DATE    # Julian day (TDB) or of date
    topocentric: bool = True
    model: PrecessionModel = PrecessionModel.IAU2000
    frame: ReferenceFrame = ReferenceFrame.ICRS

    @property
    def is_equinox_of_date(self) -> bool:
        return self.equinox is EQUINOX_OF_DATE

    def resolve_equinox(self, jd: float) -> float:
        """Concrete equinox Julian day; `jd` stands in for 'of date'."""
        return float(jd) if self.is_equinox_of_date else float(self.equinox)

    def with_(self, **changes) -> "EphemerisRequest":
        return replace(self, **changes)

# ───────────────────────────── Observer ─────────────────────────────

@dataclass(frozen=True)
class ObserverLocation:
    """
    Geodetic observer. Angles in radians, height in metres above the ellipsoid,
    pressure in mbar, temperature in °C, tz_hours east of Greenwich.
    `zone` (IANA name) wins over tz_hours when LOCAL instants are converted.
    """
    longitude: float
    latitude: float
    height: float = 0.0
    pressure: float = 1010.0
    temperature: float = 10.0
    tz_hours: float = 0.0
    zone: Optional[str] = None
    name: str = ""

    def __post_init__(self) -> None:
        if not (-math.pi / 2.0 <= self.latitude <= math.pi / 2.0):
            raise ValueError(f"latitude out of range: {self.latitude!r} rad")
        if not math.isfinite(self.longitude):
            raise ValueError("longitude must be finite")
        if not (-14.0 <= self.tz_hours <= 14.0):
            raise ValueError(f"tz_hours out of range: {self.tz_hours!r}")

    @classmethod
    def from_degrees(cls, lon_deg: float, lat_deg: float, height: float = 0.0,
                     **kwargs) -> "ObserverLocation":
        return cls(math.radians(lon_deg), math.radians(lat_deg), height, **kwargs)


@dataclass(frozen=True)
class GeocentricObserver:
    """Derived per call from ObserverLocation; geo_radius in Earth radii."""
    longitude: float
    geo_latitude: float
    geo_radius: float

# ───────────────────────────── Instant ─────────────────────────────

@dataclass(frozen=True)
class TimeInstant:
    jd: float
    scale: TimeScale = TimeScale.UTC

    def __post_init__(self) -> None:
        if not math.isfinite(self.jd):
            raise InvalidDateError("instant", "Julian day must be finite", jd=self.jd)
