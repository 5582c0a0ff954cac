"""Notification worker — delivers events to the notification webhook.

With no ``NOTIFY_WEBHOOK_URL`` configured the event is only logged.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from feedback_engine.celery_app import celery
from feedback_engine.config import settings

logger = logging.getLogger(__name__)


async def post_json(url: str, payload: dict[str, Any], *, kind: str) -> bool:
    """POST ``payload`` to ``url``; returns False when the URL is unset."""
    if not url:
        logger.info("No webhook configured for %s; payload logged only", kind, extra={"payload": payload})
        return False
    async with httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT_S) as client:
        try:
            resp = await client.post(url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Webhook %s rejected %s: HTTP %s", url, kind, e.response.status_code)
            raise
        except httpx.HTTPError as e:
            logger.error("Webhook %s unreachable for %s: %s", url, kind, e)
            raise
    logger.info("Delivered %s to webhook", kind)
    return True


@celery.task(
    name="feedback_engine.workers.notify.run_notification",
    autoretry_for=(httpx.HTTPError,),
    retry_backoff=True,
    max_retries=3,
)
def run_notification(event: dict[str, Any]) -> bool:
    return asyncio.run(post_json(settings.NOTIFY_WEBHOOK_URL, event, kind=event.get("kind", "notification")))
