"""Drafting worker — first draft for a newly ingested external review."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from feedback_engine.celery_app import celery
from feedback_engine.db import async_session_factory
from feedback_engine.drafting import build_drafting_service
from feedback_engine.errors import GenerationFailed, InvalidState
from feedback_engine.repositories import SQLStorage
from feedback_engine.response_lifecycle import ResponseLifecycleManager
from feedback_engine.side_effects import CelerySideEffects

logger = logging.getLogger(__name__)


@celery.task(name="feedback_engine.workers.draft.run_drafting")
def run_drafting(tenant_id: str, review_id: int) -> int | None:
    """Returns the new response id, or None when nothing was drafted."""
    return asyncio.run(_async_run_drafting(tenant_id, review_id))


async def _async_run_drafting(tenant_id: str, review_id: int) -> int | None:
    async with async_session_factory() as session:
        manager = ResponseLifecycleManager(
            SQLStorage(session), build_drafting_service(), CelerySideEffects()
        )
        try:
            response = await manager.generate_draft(tenant_id, review_id, datetime.now(timezone.utc))
        except InvalidState as e:
            logger.info("Drafting skipped for review %s: %s", review_id, e.message)
            return None
        except GenerationFailed as e:
            # Nothing was written; a manager can trigger generation again.
            logger.error("Drafting failed for review %s: %s", review_id, e.message)
            return None
        return response.id
