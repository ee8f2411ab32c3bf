# src/med_reminder/reminders/coordinator.py

from __future__ import annotations

"""
Reminder dispatch scheduler.

A small minute-aligned loop that, on every tick:
- reads the server-local clock and truncates it to "HH:MM",
- asks the evaluator which schedule entries are due,
- drops entries already dispatched for (entry, day, minute),
- sends the rest through an injected Notifier, concurrently,
- records every attempt in the dispatch history, whatever the outcome.

At most one attempt per entry per day per matching minute. Failed sends are not retried,
and minutes the process was down for are not caught up.

Times are matched in server-local time for all users. Per-user timezones are not handled.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from ..core.ports import Clock, Notifier, ScheduleRepo
from ..schedule.models import DEFAULT_SOUND, DueReminder, SendOutcome, SendResult, format_clock_time
from .evaluator import DueEntryEvaluator
from .history import DispatchHistory

logger = logging.getLogger(__name__)

REMINDER_TITLE = "Medication Reminder!"

# Wake slightly after the boundary so the clock never reads the previous minute.
_TICK_SLACK_SECONDS = 0.05


def resolve_sound(preference: str | None) -> str:
    """User's sound file name, or "default" when unset, blank or already "default"."""
    pref = (preference or "").strip()
    if not pref or pref.lower() == DEFAULT_SOUND:
        return DEFAULT_SOUND
    return pref


@dataclass(slots=True, frozen=True)
class PushMessage:
    address: str
    title: str
    body: str
    payload: dict[str, Any]
    sound: str


def build_reminder_message(
        due: DueReminder,
        time_of_day: str,
        *,
        title: str = REMINDER_TITLE,
) -> PushMessage | None:
    """
    Convert a due reminder into the push message the client expects.

    Returns None when the user has no push address.
    """
    address = (due.user.push_token or "").strip()
    if not address:
        return None

    med = due.medication
    return PushMessage(
        address=address,
        title=title,
        body=f"Time to take your {med.name} ({med.amount}).",
        payload={"medicationId": str(med.id), "scheduleTime": time_of_day},
        sound=resolve_sound(due.user.notification_sound),
    )


def validate_interval(interval_seconds: float) -> float:
    interval = float(interval_seconds)
    if interval <= 0 or interval > 60:
        raise ValueError(f"tick interval must be in (0, 60] seconds, got {interval_seconds!r}")
    ratio = 60.0 / interval
    if abs(ratio - round(ratio)) > 1e-9:
        raise ValueError(f"tick interval must divide 60 seconds evenly, got {interval_seconds!r}")
    return interval


def seconds_until_next_tick(now: datetime, interval_seconds: float) -> float:
    """
    Delay until the next interval boundary, counted from second 0 of the current minute.

    At an exact boundary the next one is a full interval away.
    """
    elapsed = now.second + now.microsecond / 1_000_000
    remainder = elapsed % interval_seconds
    if remainder == 0:
        return float(interval_seconds)
    return interval_seconds - remainder


@dataclass(slots=True)
class TickReport:
    time_of_day: str
    date: date
    due: int = 0
    dispatched: int = 0
    delivered: int = 0
    invalid_tokens: int = 0
    failed_sends: int = 0
    duplicates: int = 0
    skipped_no_token: int = 0
    failed: bool = False
    overlapped: bool = False


class ReminderScheduler:
    """
    Owns the evaluator, the dispatch history and the ticker.

    Collaborators are injected so tests can drive ticks with a fake clock and a fake notifier.
    To stop run_forever(), cancel the coroutine/task.
    """

    def __init__(
            self,
            repo: ScheduleRepo,
            notifier: Notifier,
            *,
            history: DispatchHistory | None = None,
            clock: Clock | None = None,
            interval_seconds: float = 60.0,
            max_concurrency: int = 8,
            title: str = REMINDER_TITLE,
    ) -> None:
        self.interval_seconds = validate_interval(interval_seconds)
        self.evaluator = DueEntryEvaluator(repo)
        self.history = history if history is not None else DispatchHistory()
        self.title = title
        self._notifier = notifier
        self._clock = clock or datetime.now
        self._max_concurrency = max(1, int(max_concurrency))
        self._lock = asyncio.Lock()

    async def tick(self) -> TickReport:
        now = self._clock()
        time_of_day = format_clock_time(now)
        today = now.date()
        report = TickReport(time_of_day=time_of_day, date=today)

        if self._lock.locked():
            logger.warning("Previous reminder tick still running; skipping tick at %s", time_of_day)
            report.overlapped = True
            return report

        async with self._lock:
            try:
                due_list = self.evaluator.find_due(time_of_day)
            except Exception:
                logger.exception("Due-entry evaluation failed at %s; skipping tick", time_of_day)
                report.failed = True
                return report

            report.due = len(due_list)
            if due_list:
                logger.info("Found %d medication reminder(s) due at %s", len(due_list), time_of_day)

            pending: list[tuple[DueReminder, PushMessage]] = []
            for due in due_list:
                entry_id = due.entry.id

                if self.history.has_dispatched(entry_id, today, time_of_day):
                    report.duplicates += 1
                    continue

                message = build_reminder_message(due, time_of_day, title=self.title)
                if message is None:
                    logger.warning(
                        "User %s for medication %s has no push token; cannot send reminder",
                        due.user.username or due.user.id,
                        due.medication.name,
                    )
                    report.skipped_no_token += 1
                    continue

                # Record before sending so a slow send can never race the next tick.
                self.history.record_dispatch(entry_id, today, time_of_day)
                pending.append((due, message))

            report.dispatched = len(pending)
            if pending:
                sem = asyncio.Semaphore(self._max_concurrency)
                # Every send is awaited before the tick ends, even if one of them blows up.
                results = await asyncio.gather(
                    *(self._send_one(due, msg, sem) for due, msg in pending),
                    return_exceptions=True,
                )
                for (due, _), result in zip(pending, results):
                    if isinstance(result, BaseException):
                        logger.error(
                            "Reminder send crashed entry_id=%s: %r", due.entry.id, result
                        )
                        report.failed_sends += 1
                    elif result.outcome == SendOutcome.DELIVERED:
                        report.delivered += 1
                    elif result.outcome == SendOutcome.INVALID_TOKEN:
                        report.invalid_tokens += 1
                    else:
                        report.failed_sends += 1

            self.history.purge(today)

        if report.dispatched:
            logger.info(
                "Tick %s: dispatched=%d delivered=%d invalid_tokens=%d failed=%d",
                time_of_day,
                report.dispatched,
                report.delivered,
                report.invalid_tokens,
                report.failed_sends,
            )
        return report

    async def _send_one(
            self,
            due: DueReminder,
            message: PushMessage,
            sem: asyncio.Semaphore,
    ) -> SendResult:
        async with sem:
            logger.info(
                "Sending reminder for %r to user %r (sound=%s)",
                due.medication.name,
                due.user.username or due.user.id,
                message.sound,
            )
            try:
                result = await self._notifier.send(
                    address=message.address,
                    title=message.title,
                    body=message.body,
                    payload=message.payload,
                    sound=message.sound,
                )
            except Exception as e:
                logger.exception(
                    "Notifier raised for entry_id=%s medication_id=%s", due.entry.id, due.medication.id
                )
                return SendResult(outcome=SendOutcome.TRANSPORT_ERROR, error=str(e) or type(e).__name__)

        if not isinstance(result, SendResult):
            logger.error(
                "Notifier returned %r for entry_id=%s medication_id=%s; treating as failed",
                result,
                due.entry.id,
                due.medication.id,
            )
            return SendResult(outcome=SendOutcome.TRANSPORT_ERROR, error="notifier returned no result")

        if result.outcome == SendOutcome.INVALID_TOKEN:
            logger.warning(
                "Push token for user %s looks stale or invalid (entry_id=%s): %s",
                due.user.username or due.user.id,
                due.entry.id,
                result.error,
            )
        elif result.outcome == SendOutcome.TRANSPORT_ERROR:
            logger.error(
                "Reminder delivery failed entry_id=%s medication_id=%s: %s",
                due.entry.id,
                due.medication.id,
                result.error,
            )
        return result

    async def run_forever(self) -> None:
        """
        Minute-aligned loop: sleep to the next interval boundary (second 0 of the minute
        plus whole intervals), run one tick, repeat. Tick errors are logged, never raised.
        """
        logger.info("Reminder scheduler started (interval=%ss)", self.interval_seconds)
        while True:
            delay = seconds_until_next_tick(self._clock(), self.interval_seconds)
            await asyncio.sleep(delay + _TICK_SLACK_SECONDS)
            try:
                await self.tick()
            except Exception:
                logger.exception("Reminder tick crashed; continuing")
