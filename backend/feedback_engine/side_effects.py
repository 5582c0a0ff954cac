"""Best-effort side effects: notifications, critical checks and first drafts.

All are queued as Celery tasks with their own failure and log path. A failure
to enqueue is logged and counted here and never reaches the caller.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol

from feedback_engine.celery_app import celery
from feedback_engine.metrics import SIDE_EFFECTS_TOTAL

logger = logging.getLogger(__name__)


class SideEffects(Protocol):
    def notify(self, event: dict[str, Any]) -> None: ...

    def request_critical_check(self, tenant_id: str) -> None: ...

    def request_draft(self, tenant_id: str, review_id: int) -> None: ...


class CelerySideEffects:
    def notify(self, event: dict[str, Any]) -> None:
        celery.send_task(
            "feedback_engine.workers.notify.run_notification",
            args=[event],
            queue="notifications",
        )

    def request_critical_check(self, tenant_id: str) -> None:
        celery.send_task(
            "feedback_engine.workers.alerts.run_critical_check",
            args=[tenant_id],
            queue="alerts",
        )

    def request_draft(self, tenant_id: str, review_id: int) -> None:
        celery.send_task(
            "feedback_engine.workers.draft.run_drafting",
            args=[tenant_id, review_id],
            queue="drafting",
        )


def fire_and_forget(side_effects: SideEffects, kind: str, *args: Any) -> bool:
    """Call ``side_effects.<kind>(*args)``; log and swallow any failure."""
    try:
        getattr(side_effects, kind)(*args)
    except Exception as exc:
        SIDE_EFFECTS_TOTAL.labels(kind=kind, outcome="failed").inc()
        logger.warning("Side effect %s failed: %s", kind, exc, exc_info=exc)
        return False
    SIDE_EFFECTS_TOTAL.labels(kind=kind, outcome="dispatched").inc()
    return True
