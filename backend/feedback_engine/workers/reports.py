"""Report worker — synthesizes a digest and hands it to the renderer."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import httpx

from feedback_engine.celery_app import celery
from feedback_engine.config import settings
from feedback_engine.db import async_session_factory
from feedback_engine.reports import ReportSynthesizer
from feedback_engine.repositories import SQLStorage
from feedback_engine.workers.notify import post_json

logger = logging.getLogger(__name__)


@celery.task(
    name="feedback_engine.workers.reports.run_report",
    autoretry_for=(httpx.HTTPError,),
    retry_backoff=True,
    max_retries=3,
)
def run_report(report_type: str, tenant_id: str) -> bool:
    return asyncio.run(_async_run_report(report_type, tenant_id))


async def _async_run_report(report_type: str, tenant_id: str) -> bool:
    async with async_session_factory() as session:
        report = await ReportSynthesizer(SQLStorage(session)).synthesize(
            report_type, tenant_id, datetime.now(timezone.utc)
        )
    return await post_json(
        settings.RENDER_WEBHOOK_URL,
        report.model_dump(mode="json"),
        kind=f"{report_type}_report",
    )
