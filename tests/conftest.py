"""
Global test fixtures for the rotation engine.

Creates an isolated log directory per test, a controllable wall clock,
a started engine, and a Flask app/test client bound to the same directory.
"""

from __future__ import annotations
import logging
import os
import sys
from pathlib import Path
from typing import List

import pytest

# ---------------------------------------------------------------------------
# Import target packages
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app import create_app  # type: ignore
from rotation.engine import RotationEngine  # type: ignore
from rotation.retention import RetentionPolicy  # type: ignore
from rotation.schedule import RotationSchedule  # type: ignore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def archives(directory: Path, suffix: str = "") -> List[str]:
    """Sorted archive names in `directory` for the backend with `suffix`."""
    return sorted(
        p.name for p in directory.iterdir()
        if ".msgpack" in p.name and p.name.endswith(".msgpack" + suffix)
    )

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep AUTOSPLIT_* from the developer's shell out of tests."""
    for k in list(os.environ):
        if k.startswith("AUTOSPLIT_"):
            monkeypatch.delenv(k, raising=False)


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop handlers configure_logging() attached during the test."""
    yield
    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, "_autosplit_handler", False):
            root.removeHandler(h)
            h.close()


@pytest.fixture()
def log_dir(tmp_path: Path) -> Path:
    d = tmp_path / "logs"
    d.mkdir()
    return d


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_engine(log_dir: Path, clock: FakeClock):
    """Factory: engine on log_dir with the fake clock, closed at teardown."""
    made: List[RotationEngine] = []

    def _make(
        *,
        compression: str = "none",
        soft_limit: int = 1024,
        rotate_after=None,
        max_files: int = 0,
        max_space: int = 0,
        start: bool = True,
    ) -> RotationEngine:
        engine = RotationEngine(
            log_dir,
            schedule=RotationSchedule(rotate_after=rotate_after, soft_limit=soft_limit),
            retention=RetentionPolicy(max_files=max_files, max_space=max_space),
            clock=clock,
        )
        engine.set_compression(compression)
        if start:
            engine.start()
        made.append(engine)
        return engine

    yield _make
    for e in made:
        e.close()


@pytest.fixture()
def engine(make_engine) -> RotationEngine:
    return make_engine()


@pytest.fixture()
def app(log_dir: Path, clock: FakeClock):
    """Flask app fixture (testing mode ON) writing into log_dir."""
    flask_app = create_app(
        {
            "LOG_DIR": str(log_dir),
            "SOFT_LIMIT": 10,
            "MAX_FILES": 2,
            "SECRET_KEY": "test-secret",
        },
        clock=clock,
    )
    flask_app.config.update(TESTING=True)
    yield flask_app
    flask_app.container.shutdown()  # type: ignore[attr-defined]


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def auth_headers():
    return {"Authorization": "Bearer test-secret"}
