# ephemkit/core/constants.py
# -*- coding: utf-8 -*-
"""
ephemkit: core constants & small angle helpers

Purpose
-------
Single source of truth for:
- epochs and calendar lengths (J2000, Julian century, seconds per day)
- unit conversions (arcsec/deg/rad, rad→day of sidereal rotation)
- physical constants used by the reduction (AU, c, GM☉, Earth rotation)
- mass ratios for planetary light deflection
- equatorial radii used for apparent angular radii
- tiny angle helpers (normalize/module)

Design
------
- Pure-Python, no external dependencies.
- Safe to import from any core module.
- Values follow IERS Conventions 2003 where the reduction needs them.
"""

from __future__ import annotations
from typing import Dict
import math

__all__ = [
    # epochs / calendar
    "J2000", "JULIAN_DAYS_PER_CENTURY", "SECONDS_PER_DAY",
    # conversions
    "TWO_PI", "DEG_TO_RAD", "RAD_TO_DEG", "ARCSEC_TO_RAD",
    "RAD_TO_DAY",
    # physics
    "AU", "SPEED_OF_LIGHT", "LIGHT_TIME_DAYS_PER_AU",
    "SUN_GRAVITATIONAL_CONSTANT", "EARTH_MEAN_ROTATION_RATE",
    "EARTH_MEAN_ORBIT_RATE", "SIDEREAL_DAY_LENGTH", "DIURNAL_ABERRATION_CONSTANT",
    # masses / radii
    "SUN_MASS_RATIO", "EQUATORIAL_RADIUS_KM",
    # helpers
    "normalize_radians", "module",
]

# ── epochs & calendar ────────────────────────────────────────────────────────
J2000: float = 2451545.0
JULIAN_DAYS_PER_CENTURY: float = 36525.0
SECONDS_PER_DAY: float = 86400.0

# ── unit conversions ─────────────────────────────────────────────────────────
TWO_PI: float = 2.0 * math.pi
DEG_TO_RAD: float = math.pi / 180.0
RAD_TO_DEG: float = 180.0 / math.pi
ARCSEC_TO_RAD: float = DEG_TO_RAD / 3600.0
RAD_TO_DAY: float = 1.0 / TWO_PI

# ── physics ──────────────────────────────────────────────────────────────────
AU: float = 149597870.691                   # km
SPEED_OF_LIGHT: float = 299792458.0         # m/s
LIGHT_TIME_DAYS_PER_AU: float = 0.00577551833109
SUN_GRAVITATIONAL_CONSTANT: float = 1.32712440017987e20  # m^3/s^2
EARTH_MEAN_ROTATION_RATE: float = 7.2921150e-5           # rad/s
EARTH_MEAN_ORBIT_RATE: float = 0.01720209895             # Gaussian k, rad/day
SIDEREAL_DAY_LENGTH: float = 1.00273781191135448         # sidereal days per solar day
DIURNAL_ABERRATION_CONSTANT: float = 1.5472e-6           # rad, at the equator

# ── masses (Sun/body) for light deflection ───────────────────────────────────
SUN_MASS_RATIO: Dict[str, float] = {
    "Sun": 1.0,
    "Mercury": 6023600.0,
    "Venus": 408523.71,
    "Earth": 332946.050895,
    "Moon": 27068700.387534,
    "Mars": 3098708.0,
    "Jupiter": 1047.3486,
    "Saturn": 3497.898,
    "Uranus": 22902.98,
    "Neptune": 19412.24,
    "Pluto": 135200000.0,
}

# ── equatorial radii (km) for apparent angular radius ────────────────────────
EQUATORIAL_RADIUS_KM: Dict[str, float] = {
    "Sun": 696000.0,
    "Mercury": 2439.7,
    "Venus": 6051.8,
    "Earth": 6378.14,
    "Moon": 1737.4,
    "Mars": 3396.19,
    "Jupiter": 71492.0,
    "Saturn": 60268.0,
    "Uranus": 25559.0,
    "Neptune": 24764.0,
    "Pluto": 1195.0,
}

# ── tiny angle helpers ───────────────────────────────────────────────────────
def normalize_radians(r: float) -> float:
    """Wrap any angle to [0, 2π)."""
    r = math.fmod(float(r), TWO_PI)
    return r + TWO_PI if r < 0.0 else r

def module(a: float, b: float) -> float:
    """Remainder of a/b truncated toward zero (sign follows a)."""
    return a - b * int(a / b)
