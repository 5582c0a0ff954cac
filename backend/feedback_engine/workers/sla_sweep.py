"""SLA sweep worker — escalates overdue open feedback for one tenant."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from feedback_engine.celery_app import celery
from feedback_engine.db import async_session_factory
from feedback_engine.feedback_service import FeedbackService
from feedback_engine.repositories import SQLStorage
from feedback_engine.side_effects import CelerySideEffects

logger = logging.getLogger(__name__)


@celery.task(name="feedback_engine.workers.sla_sweep.run_sla_sweep")
def run_sla_sweep(tenant_id: str) -> int:
    """Returns the number of breach notifications emitted."""
    return asyncio.run(_async_run_sla_sweep(tenant_id))


async def _async_run_sla_sweep(tenant_id: str) -> int:
    async with async_session_factory() as session:
        service = FeedbackService(SQLStorage(session), CelerySideEffects())
        events = await service.sla_sweep(tenant_id, datetime.now(timezone.utc))
    logger.info("SLA sweep for tenant %s emitted %s breaches", tenant_id, len(events))
    return len(events)
