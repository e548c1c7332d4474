# ephemkit/utils/config.py
# -----------------------------------------------------------------------------
# Settings: frozen dataclass with env-driven defaults, optional YAML overlay.
#
#   EPHEMKIT_DUT1_SECONDS      UT1 − UTC used for UTC ≥ 1960 (|x| ≤ 0.9)
#   EPHEMKIT_STRICT_EVENTS     raise NonConvergenceError on event refinement cap
#   EPHEMKIT_ERFA_JD_MIN/MAX   span served by the ERFA planetary source
#   EPHEMKIT_POLE_CACHE_SIZE   capacity of the caller-owned pole-offset cache
#   EPHEMKIT_EPHEMERIS         path to a JPL kernel for the Skyfield source
#   EPHEMKIT_LOG_LEVEL         level for configure_logging()
#
# load_settings(path) reads YAML (keys = field names), then env overrides win.
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional
import logging
import os

import yaml

log = logging.getLogger(__name__)

__all__ = ["Settings", "load_settings", "configure_logging"]


_ENV_KEYS: Dict[str, str] = {
    "dut1_seconds": "EPHEMKIT_DUT1_SECONDS",
    "strict_events": "EPHEMKIT_STRICT_EVENTS",
    "erfa_jd_min": "EPHEMKIT_ERFA_JD_MIN",
    "erfa_jd_max": "EPHEMKIT_ERFA_JD_MAX",
    "pole_cache_size": "EPHEMKIT_POLE_CACHE_SIZE",
    "ephemeris_path": "EPHEMKIT_EPHEMERIS",
    "log_level": "EPHEMKIT_LOG_LEVEL",
}


@dataclass(frozen=True)
class Settings:
    dut1_seconds: float = 0.0
    strict_events: bool = True
    erfa_jd_min: float = 2086302.5      # 1000-01-01
    erfa_jd_max: float = 2816787.5      # 3000-01-01
    pole_cache_size: int = 256
    ephemeris_path: Optional[str] = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if abs(self.dut1_seconds) > 0.9 + 1e-12:
            raise ValueError(f"dut1_seconds out of range (|DUT1| ≤ 0.9 s): {self.dut1_seconds}")
        if self.erfa_jd_min >= self.erfa_jd_max:
            raise ValueError("erfa_jd_min must be below erfa_jd_max")
        if self.pole_cache_size < 1:
            raise ValueError("pole_cache_size must be >= 1")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"unknown log_level: {self.log_level}")

    @classmethod
    def from_env(cls) -> "Settings":
        base = cls()
        return replace(base, **_env_overrides(base))


def _coerce(field_type: Any, raw: Any, current: Any) -> Any:
    if isinstance(current, bool) or field_type in (bool, "bool"):
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int) and not isinstance(current, bool):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return None if raw in (None, "") else str(raw)


def _env_overrides(base: Settings) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for f in fields(base):
        env = _ENV_KEYS.get(f.name)
        raw = os.getenv(env) if env else None
        if raw is not None:
            out[f.name] = _coerce(f.type, raw, getattr(base, f.name))
    return out


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Build Settings from an optional YAML file plus environment overrides.
    Unknown YAML keys are ignored with a warning.
    """
    base = Settings()
    data: Dict[str, Any] = {}
    if path:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"settings file {path} must hold a mapping")

    known = {f.name: f for f in fields(base)}
    values: Dict[str, Any] = {}
    for key, raw in data.items():
        if key not in known:
            log.warning("Unknown settings key ignored: %s", key)
            continue
        values[key] = _coerce(known[key].type, raw, getattr(base, key))
    values.update(_env_overrides(base))
    return replace(base, **values)


def configure_logging(level: Optional[str] = None, settings: Optional[Settings] = None) -> None:
    """
    basicConfig fallback for scripts; libraries should not call this.
    An explicit `level` wins, otherwise `settings.log_level` (YAML file or
    EPHEMKIT_LOG_LEVEL through load_settings()).
    """
    resolved = (level or (settings or load_settings()).log_level).upper()
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(resolved)
    else:
        logging.basicConfig(level=resolved)
