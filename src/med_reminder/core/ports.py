# src/med_reminder/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the reminder scheduler.

The scheduler depends on Protocols instead of concrete implementations.
This keeps the schedule store and the push transport swappable and makes testing easier.
"""

from datetime import datetime
from typing import Any, Awaitable, Protocol

from ..schedule.models import Medication, SendResult, User


class Clock(Protocol):
    """Returns the current server-local wall-clock time (naive datetime)."""
    def __call__(self) -> datetime: ...


class ScheduleRepo(Protocol):
    """
    Read side of the schedule store.

    find_medications_due returns every medication that has at least one schedule entry
    at the given "HH:MM", joined with its owner. The owner is None when the user row
    no longer exists.
    """

    def find_medications_due(self, time_of_day: str) -> list[tuple[Medication, User | None]]: ...


class Notifier(Protocol):
    """
    Push channel port: how the scheduler hands a reminder to the outside world.

    Implementations report transport problems through SendResult rather than raising,
    but callers still guard against exceptions.
    """

    def send(
            self,
            *,
            address: str,
            title: str,
            body: str,
            payload: dict[str, Any],
            sound: str,
    ) -> Awaitable[SendResult]: ...
