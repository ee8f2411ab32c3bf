# src/med_reminder/reminders/evaluator.py

from __future__ import annotations

import logging

from ..core.ports import ScheduleRepo
from ..schedule.models import DueReminder, parse_clock_time

logger = logging.getLogger(__name__)


class DueEntryEvaluator:
    """
    Turns "what time is it" into "which doses are due".

    A schedule entry is due when its time_of_day equals the evaluation minute exactly
    and it is not marked taken. Medications whose owner no longer exists are skipped.

    The evaluator is a pure read: store errors propagate to the caller.
    """

    def __init__(self, repo: ScheduleRepo) -> None:
        self._repo = repo

    def find_due(self, now: str) -> list[DueReminder]:
        parse_clock_time(now)

        rows = self._repo.find_medications_due(now)

        due: list[DueReminder] = []
        for med, user in rows:
            if user is None:
                logger.info("Medication %s (%s) has no owning user; skipping", med.id, med.name)
                continue

            for entry in med.schedules:
                if entry.time_of_day != now or entry.taken:
                    continue
                due.append(DueReminder(medication=med, entry=entry, user=user))

        if due:
            logger.debug("Found %d due reminder(s) at %s", len(due), now)
        return due
