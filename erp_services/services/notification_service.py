"""User notifications.

``NotificationService`` hands each notification to its notifiers in order.
A webhook notifier is installed when ``NOTIFICATION_WEBHOOK_URL`` is set;
when it fails the log notifier still records the message.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import httpx
from fastapi import Request

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    user_id: str
    message: str
    link: Optional[str] = None
    type: str = "INFO"


class LogNotifier:
    async def send(self, notification: Notification) -> bool:
        logger.info(
            "Notification for user %s [%s]: %s%s",
            notification.user_id,
            notification.type,
            notification.message,
            f" ({notification.link})" if notification.link else "",
        )
        return True


class WebhookNotifier:
    def __init__(self, url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def send(self, notification: Notification) -> bool:
        text = f"[{notification.type}] {notification.message}"
        if notification.link:
            text = f"{text} {notification.link}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json={"text": text, "user_id": notification.user_id})
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Notification webhook failed for user %s: %s", notification.user_id, e)
            return False
        return True


class NotificationService:
    def __init__(self, notifiers: List):
        self.notifiers = notifiers

    async def send(self, notification: Notification) -> bool:
        """Deliver through the first notifier that succeeds."""
        for notifier in self.notifiers:
            if await notifier.send(notification):
                return True
        logger.error("Notification for user %s was not delivered", notification.user_id)
        return False

    async def notify(self, user_id: str, message: str, link: Optional[str] = None, type: str = "INFO") -> bool:
        return await self.send(Notification(user_id=str(user_id), message=message, link=link, type=type))

    async def send_to_many(
        self, user_ids: Iterable[str], message: str, link: Optional[str] = None, type: str = "INFO"
    ) -> int:
        delivered = 0
        for user_id in user_ids:
            if await self.notify(user_id, message, link, type):
                delivered += 1
        return delivered


def build_notification_service(webhook_url: Optional[str], timeout: float = 10.0) -> NotificationService:
    notifiers = []
    if webhook_url:
        notifiers.append(WebhookNotifier(webhook_url, timeout))
    notifiers.append(LogNotifier())
    return NotificationService(notifiers)


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notifications
