# tests/test_due_evaluator.py

from __future__ import annotations

from dataclasses import replace

import pytest

from med_reminder.reminders.evaluator import DueEntryEvaluator
from med_reminder.schedule.models import Medication, ScheduleEntry

from .fakes import FakeScheduleRepo


def test_returns_untaken_entries_at_the_minute(repo, aspirin, alice) -> None:
    due = DueEntryEvaluator(repo).find_due("08:00")

    assert len(due) == 1
    assert due[0].medication == aspirin
    assert due[0].entry.id == "e-0800"
    assert due[0].user == alice


def test_nothing_due_at_other_minutes(repo) -> None:
    assert DueEntryEvaluator(repo).find_due("08:01") == []
    assert DueEntryEvaluator(repo).find_due("20:00") == []


def test_taken_entries_are_filtered(repo, aspirin, alice) -> None:
    repo.rows = [(replace(aspirin, schedules=(replace(aspirin.schedules[0], taken=True),)), alice)]

    assert DueEntryEvaluator(repo).find_due("08:00") == []


def test_only_matching_entries_of_a_medication_are_due(alice) -> None:
    med = Medication(
        id="m1",
        user_id=alice.id,
        name="Metformin",
        amount="850mg",
        schedules=(
            ScheduleEntry(id="a", time_of_day="08:00"),
            ScheduleEntry(id="b", time_of_day="13:00"),
            ScheduleEntry(id="c", time_of_day="08:00", taken=True),
            ScheduleEntry(id="d", time_of_day="08:00"),
        ),
    )
    due = DueEntryEvaluator(FakeScheduleRepo([(med, alice)])).find_due("08:00")

    assert [d.entry.id for d in due] == ["a", "d"]


def test_medication_without_owner_is_skipped(aspirin, alice) -> None:
    orphan = replace(aspirin, id="orphan", user_id="gone")
    repo = FakeScheduleRepo([(orphan, None), (aspirin, alice)])

    due = DueEntryEvaluator(repo).find_due("08:00")

    assert [d.medication.id for d in due] == ["med-aspirin"]


def test_repeated_evaluation_is_deterministic(repo) -> None:
    evaluator = DueEntryEvaluator(repo)

    assert evaluator.find_due("08:00") == evaluator.find_due("08:00")


@pytest.mark.parametrize("bad", ["8:00", "24:00", "08:60", "0800", "", "08:00:00"])
def test_invalid_time_is_rejected(repo, bad) -> None:
    with pytest.raises(ValueError):
        DueEntryEvaluator(repo).find_due(bad)
    assert repo.calls == []


def test_store_errors_propagate(repo) -> None:
    repo.error = RuntimeError("connection lost")

    with pytest.raises(RuntimeError):
        DueEntryEvaluator(repo).find_due("08:00")
