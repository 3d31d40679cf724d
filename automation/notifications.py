"""Fire-and-forget run notifications."""

from __future__ import annotations

import logging
from typing import List, Protocol

import httpx

log = logging.getLogger(__name__)

WEBHOOK_TIMEOUT = 5.0


class Notifier(Protocol):
    async def notify(self, title: str, body: str) -> None: ...


class LogNotifier:
    """Emit notifications through the logging system."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or log

    async def notify(self, title: str, body: str) -> None:
        self.logger.info("%s: %s", title, body)


class WebhookNotifier:
    """POST ``{"title", "body"}`` as JSON to a webhook URL."""

    def __init__(self, url: str, *, timeout: float = WEBHOOK_TIMEOUT, client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client

    async def notify(self, title: str, body: str) -> None:
        payload = {"title": title, "body": body}
        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log.warning("Webhook notification to %s failed: %s", self.url, exc)


class CompositeNotifier:
    def __init__(self, notifiers: List[Notifier]) -> None:
        self.notifiers = list(notifiers)

    async def notify(self, title: str, body: str) -> None:
        for notifier in self.notifiers:
            await notifier.notify(title, body)


def build_notifier(webhook_url: str = "") -> Notifier:
    notifiers: List[Notifier] = [LogNotifier()]
    if webhook_url:
        notifiers.append(WebhookNotifier(webhook_url))
    if len(notifiers) == 1:
        return notifiers[0]
    return CompositeNotifier(notifiers)


__all__ = ["Notifier", "LogNotifier", "WebhookNotifier", "CompositeNotifier", "build_notifier"]
