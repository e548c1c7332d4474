# ephemkit/core/vectors.py
# -----------------------------------------------------------------------------
# Rectangular / spherical helpers on plain float tuples.
#
# Vectors are tuples of 3 (position, AU) or 6 (position + velocity, AU/day).
# Every helper returns a new tuple; rotations carry the velocity along.
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple
import math

from ephemkit.core.constants import normalize_radians

__all__ = [
    "Vector", "Matrix3",
    "SphericalPosition",
    "norm", "dot", "add", "sub", "scale",
    "to_spherical", "from_spherical",
    "rotate_x", "rotate_z", "apply_matrix",
]

Vector = Tuple[float, ...]
Matrix3 = Tuple[Tuple[float, float, float], Tuple[float, float, float], Tuple[float, float, float]]


@dataclass(frozen=True)
class SphericalPosition:
    longitude: float   # rad, [0, 2π)
    latitude: float    # rad
    radius: float

    def angular_distance(self, other: "SphericalPosition") -> float:
        """Great-circle separation (haversine form, stable at small angles)."""
        dlat = other.latitude - self.latitude
        dlon = other.longitude - self.longitude
        h = (math.sin(dlat / 2.0) ** 2
             + math.cos(self.latitude) * math.cos(other.latitude) * math.sin(dlon / 2.0) ** 2)
        return 2.0 * math.asin(min(1.0, math.sqrt(h)))

# ───────────────────────────── Arithmetic ─────────────────────────────

def norm(v: Sequence[float]) -> float:
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])

def dot(a: Sequence[float], b: Sequence[float]) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]

def add(a: Sequence[float], b: Sequence[float]) -> Vector:
    return tuple(x + y for x, y in zip(a, b))

def sub(a: Sequence[float], b: Sequence[float]) -> Vector:
    return tuple(x - y for x, y in zip(a, b))

def scale(v: Sequence[float], k: float) -> Vector:
    return tuple(x * k for x in v)

# ───────────────────────────── Spherical ─────────────────────────────

def to_spherical(v: Sequence[float]) -> SphericalPosition:
    """
    Cartesian → (lon, lat, r). A degenerate vector yields lon 0 and
    lat ±π/2 by the sign of z (π/2 when z is 0 as well).
    """
    x, y, z = float(v[0]), float(v[1]), float(v[2])
    rxy = math.hypot(x, y)
    r = math.sqrt(rxy * rxy + z * z)
    if rxy == 0.0:
        return SphericalPosition(0.0, -math.pi / 2.0 if z < 0.0 else math.pi / 2.0, r)
    return SphericalPosition(normalize_radians(math.atan2(y, x)), math.atan2(z, rxy), r)

def from_spherical(lon: float, lat: float, r: float = 1.0) -> Vector:
    cl = math.cos(lat)
    return (r * cl * math.cos(lon), r * cl * math.sin(lon), r * math.sin(lat))

# ───────────────────────────── Rotations ─────────────────────────────

def rotate_x(v: Sequence[float], angle: float) -> Vector:
    """Rotate about X by `angle` (y' = y cos − z sin); 6-vectors keep velocity."""
    c, s = math.cos(angle), math.sin(angle)
    out = (v[0], v[1] * c - v[2] * s, v[1] * s + v[2] * c)
    if len(v) >= 6:
        out += (v[3], v[4] * c - v[5] * s, v[4] * s + v[5] * c)
    return out

def rotate_z(v: Sequence[float], angle: float) -> Vector:
    """Rotate about Z by `angle` (x' = x cos − y sin); 6-vectors keep velocity."""
    c, s = math.cos(angle), math.sin(angle)
    out = (v[0] * c - v[1] * s, v[0] * s + v[1] * c, v[2])
    if len(v) >= 6:
        out += (v[3] * c - v[4] * s, v[3] * s + v[4] * c, v[5])
    return out

def _mul3(m: Matrix3, x: float, y: float, z: float) -> Tuple[float, float, float]:
    return (m[0][0] * x + m[0][1] * y + m[0][2] * z,
            m[1][0] * x + m[1][1] * y + m[1][2] * z,
            m[2][0] * x + m[2][1] * y + m[2][2] * z)

def apply_matrix(m: Matrix3, v: Sequence[float]) -> Vector:
    out = _mul3(m, v[0], v[1], v[2])
    if len(v) >= 6:
        out += _mul3(m, v[3], v[4], v[5])
    return out
