"""Shared fixtures: an in-memory database and the services built on it."""

import sys
import time
from pathlib import Path

import pytest
from PySide6.QtCore import QCoreApplication

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from focustracker.analytics.aggregator import Aggregator
from focustracker.analytics.quality import QualityAnalyzer
from focustracker.data.database import open_connection
from focustracker.data.models import Settings
from focustracker.data.repository import Repository
from focustracker.services.focus_service import FocusService
from focustracker.services.tag_service import TagService


@pytest.fixture
def repo():
    return Repository(open_connection(":memory:"))


@pytest.fixture(scope="session")
def qapp():
    """QTimer needs a core application; no display is required."""
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture
def settings(repo):
    """Settings pinned to UTC so day boundaries don't depend on the machine."""
    s = Settings(use_local_time_zone=False, time_zone_offset_hours=0)
    repo.save_settings(s)
    return s


@pytest.fixture
def berlin_tz(monkeypatch):
    """System zone switched to Central European time (+01:00 winter, +02:00 summer)."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "CET-1CEST,M3.5.0,M10.5.0/3")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def focus_svc(repo, settings):
    svc = FocusService(repo)
    svc.detector.start()
    return svc


@pytest.fixture
def tag_svc(repo):
    return TagService(repo)


@pytest.fixture
def aggregator(repo, settings):
    return Aggregator(repo)


@pytest.fixture
def analyzer(repo, settings):
    return QualityAnalyzer(repo)
