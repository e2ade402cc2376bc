"""Pytest fixtures and fakes."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fake_ee import FakeContext, build_fake_ee  # noqa: E402

from ndvi_monitor.config import Settings, get_settings  # noqa: E402
from ndvi_monitor.services import (  # noqa: E402
    analysis,
    earth_engine,
    export,
    monthly,
    ndvi,
    sampler,
)
from ndvi_monitor.services.session import reset_session_store  # noqa: E402
from ndvi_monitor.utils.logging_colors import PACKAGE_LOGGER  # noqa: E402

EE_MODULES = (earth_engine, ndvi, monthly, sampler, export, analysis)


@pytest.fixture(autouse=True)
def _isolated_state(monkeypatch):
    for name in (
        "GCP_PROJECT",
        "GOOGLE_APPLICATION_CREDENTIALS",
        "SUPPORTED_YEARS",
        "DEFAULT_YEAR",
        "COMPOSITE_YEAR_POLICY",
        "MONTH_FILTER_POLICY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BACKEND_RETRY_BACKOFF_SECONDS", "0")
    monkeypatch.setenv("LOG_COLOR", "0")
    earth_engine.reset_ee()
    get_settings.cache_clear()
    reset_session_store()
    yield
    get_settings.cache_clear()
    reset_session_store()
    earth_engine.reset_ee()
    # CLI runs attach a stream handler bound to the captured stderr.
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def settings() -> Settings:
    return Settings(backend_retry_backoff_seconds=0, _env_file=None)


@pytest.fixture
def ee_context() -> FakeContext:
    return FakeContext(shape=(2, 2))


@pytest.fixture
def fake_ee(monkeypatch, ee_context):
    fake = build_fake_ee(ee_context)
    for module in EE_MODULES:
        monkeypatch.setattr(module, "ee", fake)
    return fake
