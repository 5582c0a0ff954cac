"""Reports and critical-alert API."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends

from feedback_engine.alert_detector import CriticalAlertDetector
from feedback_engine.api.deps import get_now, get_side_effects, get_storage, tenant_scope
from feedback_engine.reports import ReportSynthesizer
from feedback_engine.repositories import Storage
from feedback_engine.schemas.alerts import AlertSignal
from feedback_engine.side_effects import SideEffects
from feedback_engine.workers.alerts import dispatch_critical_alerts

router = APIRouter(prefix="/tenants/{tenant_id}", tags=["reports"])
logger = logging.getLogger(__name__)


@router.get("/reports/{report_type}")
async def synthesize_report(
    report_type: str,
    tenant_id: str = Depends(tenant_scope),
    storage: Storage = Depends(get_storage),
    now: datetime = Depends(get_now),
) -> dict[str, Any]:
    report = await ReportSynthesizer(storage).synthesize(report_type, tenant_id, now)
    return report.model_dump(mode="json")


@router.get("/alerts")
async def detect_alerts(
    tenant_id: str = Depends(tenant_scope),
    storage: Storage = Depends(get_storage),
    now: datetime = Depends(get_now),
) -> list[AlertSignal]:
    """Current signals without emitting anything; empty means all clear."""
    return await CriticalAlertDetector(storage).detect(tenant_id, now)


@router.post("/alerts/dispatch")
async def dispatch_alerts(
    tenant_id: str = Depends(tenant_scope),
    storage: Storage = Depends(get_storage),
    side_effects: SideEffects = Depends(get_side_effects),
    now: datetime = Depends(get_now),
) -> dict[str, Any]:
    row = await dispatch_critical_alerts(storage, side_effects, tenant_id, now)
    return {"emitted": row is not None, "alert_log_id": row.id if row else None}
