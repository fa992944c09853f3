import os
from pathlib import Path
import sys

# Kivy parses sys.argv and takes over the root logger on import.
os.environ.setdefault("KIVY_NO_ARGS", "1")
os.environ.setdefault("KIVY_LOG_MODE", "PYTHON")
os.environ.setdefault("KIVY_NO_CONSOLELOG", "1")
os.environ.setdefault("KIVY_NO_FILELOG", "1")

import pytest
import time

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from backend import settings
from backend.store import LedgerStore
from tests.utils import FakeClock


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep settings reads and writes inside the test's temp directory."""
    monkeypatch.setattr(settings, "SETTINGS_PATH", tmp_path / "settings.json")
    monkeypatch.setattr(settings, "_settings_cache", None)


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    """Fake Kivy clock that also drives ``time.time``."""
    fake = FakeClock()
    monkeypatch.setattr(time, "time", fake.time)
    return fake


@pytest.fixture
def store(tmp_path: Path):
    """Empty ledger store in a temporary database."""
    db = LedgerStore(tmp_path / "gym.db")
    yield db
    db.close()


@pytest.fixture
def push_day(store):
    """Workout 'Push Day' with a 'Bench' chest exercise."""
    with store.transaction():
        workout = store.create_workout("Push Day")
        bench = store.create_exercise(workout, "Bench", "chest")
    return workout, bench
