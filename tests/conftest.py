# tests/conftest.py
from __future__ import annotations

"""
Pytest configuration for the ephemkit suite.

- Registers Hypothesis profiles for local dev and CI.
- Freezes the process TZ to UTC and clears EPHEMKIT_* overrides.
- Sanity-checks ERFA availability and basic tzdata presence.
- Shared observers, settings and an ERFA-backed pipeline.
"""

import math
import os

import pytest
from hypothesis import settings, HealthCheck

from ephemkit.core.models import ObserverLocation
from ephemkit.core.pipeline import EphemerisPipeline, PipelineContext
from ephemkit.core.sources import ErfaPlanetarySource
from ephemkit.utils.config import Settings


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,           # avoid flaky timeouts on slower runners
        max_examples=60,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=120,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: mark test as slow")
    config.addinivalue_line("filterwarnings", "ignore::DeprecationWarning")


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Global fixtures
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session", autouse=True)
def freeze_tz_env():
    """Process TZ pinned to UTC; IANA zones are always passed explicitly."""
    prev = os.environ.get("TZ")
    os.environ["TZ"] = "UTC"
    try:
        yield
    finally:
        if prev is None:
            os.environ.pop("TZ", None)
        else:
            os.environ["TZ"] = prev


@pytest.fixture(autouse=True)
def clean_ephemkit_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("EPHEMKIT_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(scope="session")
def ensure_erfa():
    """Fail early if pyERFA is missing functions the reduction relies on."""
    import erfa
    for name in ("utctai", "taitt", "utcut1", "dtdb", "epv00", "plan94", "moon98", "nut00a", "eect00"):
        assert hasattr(erfa, name), f"ERFA.{name} not available"
    return erfa


@pytest.fixture(scope="session")
def ensure_tzdata():
    """Core IANA zones resolve on this machine (tzdata installed)."""
    from zoneinfo import ZoneInfo
    for name in ("UTC", "Asia/Kolkata", "America/New_York"):
        ZoneInfo(name)


@pytest.fixture
def ephem_settings() -> Settings:
    return Settings()


@pytest.fixture
def greenwich() -> ObserverLocation:
    return ObserverLocation(0.0, math.radians(51.4769), height=46.0, name="Greenwich")


@pytest.fixture
def erfa_pipeline(ensure_erfa, ephem_settings) -> EphemerisPipeline:
    return EphemerisPipeline(ErfaPlanetarySource(ephem_settings), ephem_settings,
                             PipelineContext.from_settings(ephem_settings))
