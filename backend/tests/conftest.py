from __future__ import annotations

import datetime as dt
import os
import tempfile
from pathlib import Path
from typing import Generator, Optional

_TEST_DATA_DIR = Path(tempfile.mkdtemp(prefix="siteclock-tests-"))
os.environ.setdefault("SITECLOCK_SQLITE_PATH", str(_TEST_DATA_DIR / "siteclock.db"))
os.environ.setdefault("SITECLOCK_JSON_DIR", str(_TEST_DATA_DIR / "state"))
os.environ["SITECLOCK_SCHEDULER_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from siteclock.geo import GeoProvider
from siteclock.main import app, get_clock
from siteclock.models import GeoPoint
from siteclock.services import ShiftClock
from siteclock.storage import JsonFileShiftStore

T0 = dt.datetime(2024, 3, 4, 7, 55, tzinfo=dt.timezone.utc)


class SettableClock:
    def __init__(self, now: dt.datetime) -> None:
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> dt.datetime:
        self.now = self.now + dt.timedelta(**kwargs)
        return self.now


class FakeGeoProvider(GeoProvider):
    def __init__(self, point: Optional[GeoPoint] = GeoPoint(lat=51.5072, lng=-0.1276)) -> None:
        self.point = point
        self.calls = 0

    async def locate(self) -> Optional[GeoPoint]:
        self.calls += 1
        return self.point


class CountingStore(JsonFileShiftStore):
    def __init__(self, key: str, directory: Path) -> None:
        super().__init__(key, directory)
        self.saves = 0

    def write_raw(self, raw: str) -> None:
        self.saves += 1
        super().write_raw(raw)


@pytest.fixture()
def time_source() -> SettableClock:
    return SettableClock(T0)


@pytest.fixture()
def geo() -> FakeGeoProvider:
    return FakeGeoProvider()


@pytest.fixture()
def repository(tmp_path: Path) -> CountingStore:
    return CountingStore("construct_time_app_v1", tmp_path / "state")


@pytest.fixture()
def clock(repository: CountingStore, geo: FakeGeoProvider, time_source: SettableClock) -> ShiftClock:
    return ShiftClock(repository, geo_provider=geo, geo_timeout=0.5, timezone="Europe/London", clock=time_source)


@pytest.fixture(scope="function")
def client(clock: ShiftClock) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
