"""Critical check worker — detect, dedupe, log and notify.

An identical signal set (same hash) is not re-emitted until the previous
emission's cooldown has expired.
"""
from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Sequence

from feedback_engine.alert_detector import CriticalAlertDetector
from feedback_engine.celery_app import celery
from feedback_engine.config import settings
from feedback_engine.db import async_session_factory
from feedback_engine.models import AlertLog
from feedback_engine.repositories import SQLStorage, Storage
from feedback_engine.schemas.alerts import AlertSignal
from feedback_engine.side_effects import CelerySideEffects, SideEffects, fire_and_forget

logger = logging.getLogger(__name__)


def alert_hash(signals: Sequence[AlertSignal]) -> str:
    payload = sorted(f"{s.dedupe_key()}:{s.severity.value}" for s in signals)
    return hashlib.sha256(json.dumps(payload, ensure_ascii=True).encode("utf-8")).hexdigest()


async def dispatch_critical_alerts(
    storage: Storage,
    side_effects: SideEffects,
    tenant_id: str,
    now: datetime,
) -> AlertLog | None:
    """Run detection and emit the signals unless they are in cooldown.

    Returns the new ``AlertLog`` row, or None for all clear or a suppressed repeat.
    """
    signals = await CriticalAlertDetector(storage).detect(tenant_id, now)
    if not signals:
        logger.info("All clear for tenant %s", tenant_id)
        return None

    hash_value = alert_hash(signals)
    last = await storage.alerts.latest(tenant_id)
    if last and last.dedupe_hash == hash_value and last.cooldown_until and last.cooldown_until > now:
        logger.info(
            "Alert dedup hash matched for tenant %s; cooldown until %s",
            tenant_id,
            last.cooldown_until.isoformat(),
        )
        return None

    payload = {
        "kind": "critical_alert",
        "tenant_id": tenant_id,
        "generated_at": now.isoformat(),
        "signals": [s.model_dump(mode="json") for s in signals],
    }
    row = AlertLog(
        signal_types=",".join(sorted({s.signal_type.value for s in signals})),
        max_severity=max(s.severity_score for s in signals),
        payload_json=payload,
        dedupe_hash=hash_value,
        sent_at=now,
        cooldown_until=now + timedelta(seconds=settings.ALERT_COOLDOWN_S),
    )
    await storage.alerts.add(tenant_id, row)
    await storage.commit()
    logger.warning("Critical alert for tenant %s: %s signals", tenant_id, len(signals))

    fire_and_forget(side_effects, "notify", {**payload, "alert_log_id": row.id})
    return row


@celery.task(name="feedback_engine.workers.alerts.run_critical_check")
def run_critical_check(tenant_id: str) -> None:
    asyncio.run(_async_run_critical_check(tenant_id))


async def _async_run_critical_check(tenant_id: str) -> None:
    async with async_session_factory() as session:
        await dispatch_critical_alerts(
            SQLStorage(session),
            CelerySideEffects(),
            tenant_id,
            datetime.now(timezone.utc),
        )
