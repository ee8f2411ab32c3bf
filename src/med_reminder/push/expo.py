# src/med_reminder/push/expo.py

"""
Expo push notifications over plain HTTP.

The Expo push service accepts a JSON list of messages and answers with one "ticket" per
message. A ticket only says the message was accepted for delivery; receipts (actual
delivery to the device) are not polled here.

Ticket mapping:
- status "ok"                                   -> DELIVERED (ticket id kept for logs)
- status "error", details.error DeviceNotRegistered -> INVALID_TOKEN
- any other ticket error, HTTP error, bad JSON  -> TRANSPORT_ERROR

See: https://docs.expo.dev/push-notifications/sending-notifications/
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from ..config import DEFAULT_EXPO_PUSH_URL
from ..schedule.models import SendOutcome, SendResult

logger = logging.getLogger(__name__)

_EXPO_TOKEN_RE = re.compile(r"^Expo(nent)?PushToken\[.+\]$")
_UUID_TOKEN_RE = re.compile(r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.IGNORECASE)


def is_expo_push_token(token: str | None) -> bool:
    if not token:
        return False
    return bool(_EXPO_TOKEN_RE.match(token) or _UUID_TOKEN_RE.match(token))


def _mask(token: str) -> str:
    return f"{token[:15]}..." if len(token) > 15 else token


class ExpoPushNotifier:
    """Notifier backed by the Expo push HTTP API (one httpx.AsyncClient per notifier)."""

    def __init__(
            self,
            *,
            push_url: str = DEFAULT_EXPO_PUSH_URL,
            access_token: str | None = None,
            timeout_seconds: float = 10.0,
            channel_id: str = "default",
            client: httpx.AsyncClient | None = None,
    ) -> None:
        self.push_url = push_url
        self.channel_id = channel_id
        self._access_token = access_token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _get_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def send(
            self,
            *,
            address: str,
            title: str,
            body: str,
            payload: dict[str, Any],
            sound: str,
    ) -> SendResult:
        if not is_expo_push_token(address):
            logger.error("Invalid Expo push token: %s", address)
            return SendResult(outcome=SendOutcome.INVALID_TOKEN, error="invalid push token format")

        message = {
            "to": address,
            "title": title,
            "body": body,
            "data": payload,
            "sound": sound,
            "channelId": self.channel_id,
        }
        logger.info("Sending push to=%s sound=%r title=%r", _mask(address), sound, title)

        try:
            response = await self._client.post(self.push_url, headers=self._get_headers(), json=[message])
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.exception("Push request failed to=%s", _mask(address))
            return SendResult(outcome=SendOutcome.TRANSPORT_ERROR, error=str(e) or type(e).__name__)

        return self._ticket_to_result(data, address)

    @staticmethod
    def _ticket_to_result(data: Any, address: str) -> SendResult:
        tickets = data.get("data") if isinstance(data, dict) else None
        if isinstance(tickets, dict):
            tickets = [tickets]
        if not isinstance(tickets, list) or not tickets or not isinstance(tickets[0], dict):
            errors = data.get("errors") if isinstance(data, dict) else None
            logger.error("Unexpected push response to=%s errors=%s", _mask(address), errors)
            return SendResult(outcome=SendOutcome.TRANSPORT_ERROR, error="malformed push response")

        ticket = tickets[0]
        if ticket.get("status") == "ok":
            ticket_id = ticket.get("id")
            logger.info("Push accepted to=%s ticket=%s", _mask(address), ticket_id)
            return SendResult(outcome=SendOutcome.DELIVERED, ticket_id=ticket_id)

        details = ticket.get("details") or {}
        error_code = details.get("error") if isinstance(details, dict) else None
        message = str(ticket.get("message") or error_code or "push error")
        if error_code == "DeviceNotRegistered":
            logger.error("Push token no longer registered to=%s: %s", _mask(address), message)
            return SendResult(outcome=SendOutcome.INVALID_TOKEN, error=message, details=dict(details))

        logger.error("Push rejected to=%s error=%s: %s", _mask(address), error_code, message)
        return SendResult(
            outcome=SendOutcome.TRANSPORT_ERROR,
            error=message,
            details=dict(details) if isinstance(details, dict) else {},
        )
