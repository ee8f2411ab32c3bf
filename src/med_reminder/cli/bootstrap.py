# src/med_reminder/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the schedule store, the push notifier and the reminder scheduler together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import Settings, get_settings
from ..push.expo import ExpoPushNotifier
from ..push.offline import LoggingNotifier
from ..reminders.coordinator import ReminderScheduler
from ..reminders.history import DispatchHistory
from ..schedule.store import ScheduleStore

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    settings: Settings
    store: ScheduleStore
    notifier: ExpoPushNotifier | LoggingNotifier
    scheduler: ReminderScheduler


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.schedule_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_notifier(settings) -> ExpoPushNotifier | LoggingNotifier:
    if not settings.push_enabled:
        logger.warning("Push delivery disabled; reminders will only be logged.")
        return LoggingNotifier()
    return ExpoPushNotifier(
        push_url=settings.expo_push_url,
        access_token=settings.expo_access_token,
        timeout_seconds=settings.push_timeout_seconds,
        channel_id=settings.push_channel_id,
    )


def create_app_state(*, settings=None) -> AppState:
    """
    Build the scheduler and its collaborators from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = ScheduleStore(settings.schedule_db_path)
    notifier = create_notifier(settings)
    scheduler = ReminderScheduler(
        store,
        notifier,
        history=DispatchHistory(retention_days=settings.history_retention_days),
        interval_seconds=settings.tick_interval_seconds,
        max_concurrency=settings.max_concurrent_sends,
    )
    return AppState(settings=settings, store=store, notifier=notifier, scheduler=scheduler)
