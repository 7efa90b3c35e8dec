"""
Notification transports.

A transport delivers one notification to one recipient. Failures come back
either as a raised exception or as a receipt carrying an error; the fan-out
counts both the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import httpx
from loguru import logger

from .messages import Notification

if TYPE_CHECKING:
    from ..db.quiz_store import SqlQuizStore


@dataclass
class DeliveryReceipt:
    """Outcome of one send."""

    recipient_id: str
    ok: bool = True
    error: str | None = None
    message_id: str | None = None


class NotificationTransport(Protocol):
    """Single-recipient send primitive."""

    async def send(self, notification: Notification) -> DeliveryReceipt:
        ...


class HttpNotificationTransport:
    """Deliver notifications through an HTTP notification service."""

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        timeout_ms: int = 10000,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the transport.

        Args:
            api_url: Base URL of the notification service
            api_key: Bearer token (sent when non-empty)
            timeout_ms: Request timeout in milliseconds
            client: Pre-built client, mainly for tests
        """
        self.api_url = api_url.rstrip("/")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_ms / 1000.0),
            headers=headers,
            follow_redirects=True,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> HttpNotificationTransport:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def send(self, notification: Notification) -> DeliveryReceipt:
        """
        POST one notification.

        Non-2xx responses are returned as failed receipts; network errors
        propagate to the caller.
        """
        response = await self.client.post(
            f"{self.api_url}/notifications",
            json=notification.to_dict(),
        )
        if response.is_error:
            logger.warning(
                "Notification to {} rejected: HTTP {}",
                notification.recipient_id,
                response.status_code,
            )
            return DeliveryReceipt(
                recipient_id=notification.recipient_id,
                ok=False,
                error=f"HTTP {response.status_code}",
            )

        data = response.json() if response.content else {}
        return DeliveryReceipt(
            recipient_id=notification.recipient_id,
            message_id=str(data["id"]) if data.get("id") is not None else None,
        )


class StoreNotificationTransport:
    """Deliver notifications by writing rows to the notifications table."""

    def __init__(self, store: SqlQuizStore):
        self.store = store

    async def send(self, notification: Notification) -> DeliveryReceipt:
        message_id = await self.store.create_notification(notification)
        return DeliveryReceipt(recipient_id=notification.recipient_id, message_id=message_id)
