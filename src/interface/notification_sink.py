"""Notification sinks delivering deadline alerts."""

import logging

import httpx

from src.core.config import constants, settings
from src.core.errors import TransportError
from src.domain.task import UrgencyTier


logger = logging.getLogger(__name__)


class LogNotificationSink:
    """Sink that only logs alerts; used when no webhook is configured."""

    async def notify(self, task_id: int, title: str, body: str, tier: UrgencyTier) -> None:
        logger.warning(
            "Deadline alert: %s - %s",
            title,
            body,
            extra={"task_id": task_id, "tier": tier.value},
        )


class WebhookNotificationSink:
    """Sink posting each alert as JSON to a webhook.

    Delivery is attempted once; a failure raises TransportError so the
    scheduler can keep the alert pending for the next tick.
    """

    def __init__(self, *, url: str, client: httpx.AsyncClient | None = None) -> None:
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def notify(self, task_id: int, title: str, body: str, tier: UrgencyTier) -> None:
        payload = {"taskId": task_id, "title": title, "body": body, "tier": tier.value}
        try:
            response = await self._client.post(self._url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("notification_delivery_failed", extra={"task_id": task_id, "error": str(e)})
            msg = f"Failed to deliver alert for task {task_id}: {e}"
            raise TransportError(msg) from e

        logger.info("Notification sent: %s - %s", title, body, extra={"task_id": task_id, "tier": tier.value})


def build_notification_sink() -> LogNotificationSink | WebhookNotificationSink:
    """Pick the sink from settings."""
    if settings.notification_webhook_url:
        return WebhookNotificationSink(url=settings.notification_webhook_url)
    return LogNotificationSink()
