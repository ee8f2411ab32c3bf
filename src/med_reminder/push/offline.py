# src/med_reminder/push/offline.py

from __future__ import annotations

import logging
from typing import Any

from ..schedule.models import SendOutcome, SendResult

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """
    Log-only notifier used when push delivery is disabled (local demo runs).

    Every reminder is written to the log and reported as delivered.
    Set MEDREMIND_PUSH_ENABLED=1 to send real Expo pushes.
    """

    def __init__(self) -> None:
        self.sent_count = 0

    async def send(
            self,
            *,
            address: str,
            title: str,
            body: str,
            payload: dict[str, Any],
            sound: str,
    ) -> SendResult:
        self.sent_count += 1
        logger.info("[offline push] to=%s title=%r body=%r data=%s sound=%s", address, title, body, payload, sound)
        return SendResult(outcome=SendOutcome.DELIVERED, ticket_id=f"offline-{self.sent_count}")

    async def aclose(self) -> None:
        return
