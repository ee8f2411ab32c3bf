# tests/test_schedule_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from med_reminder.reminders.evaluator import DueEntryEvaluator
from med_reminder.schedule.store import ScheduleStore


def test_find_medications_due_joins_owner(store: ScheduleStore) -> None:
    user = store.add_user(username="alice", push_token="ExponentPushToken[abc]", notification_sound="chime.mp3")
    med = store.add_medication(user_id=user.id, name="Aspirin", amount="500mg", times=["08:00", "20:00"])
    store.add_medication(user_id=user.id, name="Vitamin D", amount="1000IU", times=["09:00"])

    rows = store.find_medications_due("08:00")

    assert len(rows) == 1
    found, owner = rows[0]
    assert found.id == med.id
    assert found.name == "Aspirin"
    assert [e.time_of_day for e in found.schedules] == ["08:00", "20:00"]
    assert owner is not None
    assert owner.push_token == "ExponentPushToken[abc]"
    assert owner.notification_sound == "chime.mp3"

    assert store.find_medications_due("12:00") == []


def test_taken_flag_round_trips_through_evaluator(store: ScheduleStore) -> None:
    user = store.add_user(username="bob", push_token="ExponentPushToken[b]")
    med = store.add_medication(user_id=user.id, name="Ibuprofen", amount="200mg", times=["08:00"])
    evaluator = DueEntryEvaluator(store)

    assert len(evaluator.find_due("08:00")) == 1

    store.set_entry_taken(med.schedules[0].id)
    assert evaluator.find_due("08:00") == []

    store.set_entry_taken(med.schedules[0].id, taken=False)
    assert len(evaluator.find_due("08:00")) == 1


def test_deleting_user_removes_medications(store: ScheduleStore) -> None:
    user = store.add_user(username="carol")
    store.add_medication(user_id=user.id, name="Aspirin", amount="500mg", times=["08:00"])
    assert store.count_medications() == 1

    store.delete_user(user.id)

    assert store.count_medications() == 0
    assert store.find_medications_due("08:00") == []


def test_update_user_push(store: ScheduleStore) -> None:
    user = store.add_user(username="dave")
    store.add_medication(user_id=user.id, name="Aspirin", amount="500mg", times=["08:00"])

    store.update_user_push(user.id, push_token="ExponentPushToken[d]", notification_sound="bell.wav")
    (_, owner), = store.find_medications_due("08:00")
    assert owner.push_token == "ExponentPushToken[d]"
    assert owner.notification_sound == "bell.wav"

    store.update_user_push(user.id, push_token="")
    (_, owner), = store.find_medications_due("08:00")
    assert owner.push_token is None
    assert owner.notification_sound == "bell.wav"


@pytest.mark.parametrize("bad", ["25:00", "8:00", "noon"])
def test_invalid_schedule_time_is_rejected(store: ScheduleStore, bad: str) -> None:
    user = store.add_user(username="erin")

    with pytest.raises(ValueError):
        store.add_medication(user_id=user.id, name="Aspirin", amount="500mg", times=[bad])
    assert store.count_medications() == 0


def test_required_fields(store: ScheduleStore) -> None:
    with pytest.raises(ValueError):
        store.add_user(username="  ")

    user = store.add_user(username="frank")
    with pytest.raises(ValueError):
        store.add_medication(user_id=user.id, name="", amount="1", times=["08:00"])
    with pytest.raises(ValueError):
        store.add_medication(user_id=user.id, name="Aspirin", amount=" ", times=["08:00"])


def test_old_database_gets_sound_column(tmp_path: Path) -> None:
    db = tmp_path / "legacy.sqlite3"
    conn = sqlite3.connect(db)
    conn.execute(
        """
        CREATE TABLE users (
            id TEXT PRIMARY KEY,
            username TEXT NOT NULL UNIQUE,
            push_token TEXT,
            created_at REAL NOT NULL,
            updated_at REAL NOT NULL
        )
        """
    )
    conn.execute("INSERT INTO users VALUES ('u1', 'legacy', 'ExponentPushToken[x]', 0, 0)")
    conn.commit()
    conn.close()

    store = ScheduleStore(db)
    store.add_medication(user_id="u1", name="Aspirin", amount="500mg", times=["07:30"])

    (_, owner), = store.find_medications_due("07:30")
    assert owner.username == "legacy"
    assert owner.notification_sound is None
