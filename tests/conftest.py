# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from med_reminder.schedule.models import Medication, ScheduleEntry, User
from med_reminder.schedule.store import ScheduleStore

from .fakes import FakeClock, FakeNotifier, FakeScheduleRepo


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="med-reminder-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        schedule_db_path=tmp_path / "data" / "schedules.sqlite3",
        tick_interval_seconds=60.0,
        history_retention_days=2,
        max_concurrent_sends=4,
        push_enabled=False,
        expo_push_url="https://push.invalid/send",
        expo_access_token=None,
        push_timeout_seconds=1.0,
        push_channel_id="default",
    )


@pytest.fixture()
def store(tmp_path: Path) -> ScheduleStore:
    return ScheduleStore(tmp_path / "schedules.sqlite3")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 8, 0, 5))


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def alice() -> User:
    return User(id="u1", username="alice", push_token="tokenA", notification_sound="chime.mp3")


@pytest.fixture()
def aspirin() -> Medication:
    return Medication(
        id="med-aspirin",
        user_id="u1",
        name="Aspirin",
        amount="500mg",
        precautions="after food",
        schedules=(ScheduleEntry(id="e-0800", time_of_day="08:00"),),
    )


@pytest.fixture()
def repo(aspirin: Medication, alice: User) -> FakeScheduleRepo:
    return FakeScheduleRepo([(aspirin, alice)])
