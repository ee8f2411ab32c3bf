# tests/test_dispatch_history.py

from __future__ import annotations

from datetime import date

import pytest

from med_reminder.reminders.history import DispatchHistory


def test_record_and_lookup() -> None:
    history = DispatchHistory()
    day = date(2026, 10, 19)

    assert not history.has_dispatched("e1", day, "08:00")
    history.record_dispatch("e1", day, "08:00")

    assert history.has_dispatched("e1", day, "08:00")
    assert not history.has_dispatched("e1", day, "20:00")
    assert not history.has_dispatched("e1", date(2026, 10, 20), "08:00")
    assert not history.has_dispatched("e2", day, "08:00")

    # Recording twice is a no-op.
    history.record_dispatch("e1", day, "08:00")
    assert len(history) == 1


def test_purge_keeps_retention_window() -> None:
    history = DispatchHistory(retention_days=2)
    for d in (17, 18, 19):
        history.record_dispatch("e1", date(2026, 10, d), "08:00")

    removed = history.purge(date(2026, 10, 19))

    assert removed == 1
    assert not history.has_dispatched("e1", date(2026, 10, 17), "08:00")
    assert history.has_dispatched("e1", date(2026, 10, 18), "08:00")
    assert history.has_dispatched("e1", date(2026, 10, 19), "08:00")
    assert history.purge(date(2026, 10, 19)) == 0


def test_retention_must_be_positive() -> None:
    with pytest.raises(ValueError):
        DispatchHistory(retention_days=0)
