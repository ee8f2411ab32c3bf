# src/med_reminder/reminders/history.py

from __future__ import annotations

import logging
from datetime import date, timedelta

logger = logging.getLogger(__name__)

DispatchKey = tuple[str, date, str]


class DispatchHistory:
    """
    In-memory record of which (entry, day, minute) slots were already dispatched.

    Lost on restart; the worst case is one duplicate reminder for the minute the process
    came back up in. Records older than retention_days are evicted by purge().
    """

    def __init__(self, retention_days: int = 2) -> None:
        if retention_days < 1:
            raise ValueError("retention_days must be >= 1")
        self.retention_days = int(retention_days)
        self._records: set[DispatchKey] = set()

    def __len__(self) -> int:
        return len(self._records)

    def has_dispatched(self, entry_id: str, day: date, time_of_day: str) -> bool:
        return (entry_id, day, time_of_day) in self._records

    def record_dispatch(self, entry_id: str, day: date, time_of_day: str) -> None:
        self._records.add((entry_id, day, time_of_day))

    def purge(self, today: date) -> int:
        """Drop records dated on or before today - retention_days. Returns how many were removed."""
        cutoff = today - timedelta(days=self.retention_days)
        stale = {key for key in self._records if key[1] <= cutoff}
        if stale:
            self._records -= stale
            logger.debug("Dispatch history purged %d record(s) older than %s", len(stale), cutoff)
        return len(stale)
