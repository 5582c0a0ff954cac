"""Orchestration worker.

Beat triggers ``fan_out`` with a per-tenant task name; this dispatches one
task per active tenant, with the tenant id as the last positional argument.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from feedback_engine.celery_app import celery
from feedback_engine.db import async_session_factory
from feedback_engine.repositories import SQLStorage

logger = logging.getLogger(__name__)


async def _active_tenant_ids() -> Sequence[str]:
    async with async_session_factory() as session:
        return await SQLStorage(session).tenants.list_active_ids()


def queue_for(task_name: str) -> str:
    route = (celery.conf.task_routes or {}).get(task_name) or {}
    return route.get("queue", celery.conf.task_default_queue)


def dispatch_per_tenant(task_name: str, tenant_ids: Sequence[str], *extra: str) -> int:
    queue = queue_for(task_name)
    for tenant_id in tenant_ids:
        logger.info("Scheduling %s for tenant %s on queue %s", task_name, tenant_id, queue)
        celery.send_task(task_name, args=[*extra, tenant_id], queue=queue, routing_key=queue)
    return len(tenant_ids)


@celery.task(name="feedback_engine.workers.orchestrator.fan_out")
def fan_out(task_name: str, *extra: str) -> int:
    """Celery Beat task that fans ``task_name`` out over active tenants."""
    tenant_ids = asyncio.run(_active_tenant_ids())
    return dispatch_per_tenant(task_name, tenant_ids, *extra)
