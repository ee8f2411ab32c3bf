# tests/fakes.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from med_reminder.schedule.models import Medication, SendOutcome, SendResult, User


class FakeClock:
    """Settable server-local clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass(slots=True)
class SentPush:
    address: str
    title: str
    body: str
    payload: dict[str, Any]
    sound: str


@dataclass
class FakeNotifier:
    """
    Fake Notifier used by scheduler tests.

    - Captures every send for assertions
    - Returns a configurable outcome, optionally after a delay or by raising
    """

    sent: list[SentPush] = field(default_factory=list)
    outcome: SendOutcome = SendOutcome.DELIVERED
    error: Exception | None = None
    delay: float = 0.0

    async def send(
        self,
        *,
        address: str,
        title: str,
        body: str,
        payload: dict[str, Any],
        sound: str,
    ) -> SendResult:
        self.sent.append(SentPush(address=address, title=title, body=body, payload=payload, sound=sound))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SendResult(outcome=self.outcome, ticket_id=f"ticket-{len(self.sent)}")


class FakeScheduleRepo:
    """
    In-memory ScheduleRepo.

    Rows are (medication, owner-or-None); mutate .rows between ticks to simulate store changes.
    """

    def __init__(self, rows: list[tuple[Medication, User | None]] | None = None) -> None:
        self.rows = list(rows or [])
        self.error: Exception | None = None
        self.calls: list[str] = []

    def find_medications_due(self, time_of_day: str) -> list[tuple[Medication, User | None]]:
        self.calls.append(time_of_day)
        if self.error is not None:
            raise self.error
        return [
            (med, user)
            for med, user in self.rows
            if any(e.time_of_day == time_of_day for e in med.schedules)
        ]
