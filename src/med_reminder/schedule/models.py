# src/med_reminder/schedule/models.py

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

DEFAULT_SOUND = "default"

_CLOCK_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_clock_time(raw: str) -> tuple[int, int]:
    """Parse a zero-padded 24h "HH:MM" string. Raises ValueError otherwise."""
    m = _CLOCK_RE.match(raw or "")
    if m is None:
        raise ValueError(f"invalid time of day: {raw!r} (expected HH:MM, 24-hour)")
    return int(m.group(1)), int(m.group(2))


def format_clock_time(now: datetime) -> str:
    """Truncate a datetime to minute granularity as "HH:MM"."""
    return f"{now.hour:02d}:{now.minute:02d}"


@dataclass(slots=True, frozen=True)
class ScheduleEntry:
    id: str
    time_of_day: str
    taken: bool = False


@dataclass(slots=True, frozen=True)
class Medication:
    id: str
    user_id: str
    name: str
    amount: str
    precautions: str | None = None
    schedules: tuple[ScheduleEntry, ...] = field(default_factory=tuple)


@dataclass(slots=True, frozen=True)
class User:
    """Read-only view of the fields the scheduler needs."""

    id: str
    username: str
    push_token: str | None = None
    notification_sound: str | None = None


@dataclass(slots=True, frozen=True)
class DueReminder:
    medication: Medication
    entry: ScheduleEntry
    user: User


class SendOutcome(StrEnum):
    DELIVERED = "delivered"
    INVALID_TOKEN = "invalid_token"
    TRANSPORT_ERROR = "transport_error"


@dataclass(slots=True, frozen=True)
class SendResult:
    outcome: SendOutcome
    ticket_id: str | None = None
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.outcome == SendOutcome.DELIVERED
