"""Feedback item persistence: submission, workflow transitions, queue and SLA sweep.

The rules live in ``sla_engine``; this module stores their outcome with
conditional writes and dispatches the best-effort notifications.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from feedback_engine.errors import Conflict, NotFound, ValidationError
from feedback_engine.metrics import FEEDBACK_TRANSITIONS_TOTAL, SLA_BREACHES_TOTAL
from feedback_engine.models import FeedbackItem, FeedbackStatus
from feedback_engine.repositories.base import Storage
from feedback_engine.side_effects import SideEffects, fire_and_forget
from feedback_engine.sla_engine import (
    SLAClassification,
    SLAState,
    classify_sla,
    compute_priority,
    rank_by_priority,
    status_name,
    transition,
    validate_rating,
)

logger = logging.getLogger(__name__)

CRITICAL_CHECK_MAX_RATING = 3
ESCALATION_LEVELS = {
    SLAState.OVERDUE_ACK: 1,
    SLAState.OVERDUE_RESOLVE: 2,
}


def feedback_event(kind: str, tenant_id: str, item: FeedbackItem, **extra: Any) -> dict[str, Any]:
    """JSON-safe notification event describing one feedback item."""
    return {
        "kind": kind,
        "tenant_id": tenant_id,
        "feedback_id": item.id,
        "rating": item.rating,
        "category": item.category,
        "status": status_name(item.status),
        "room_number": item.room_number,
        "guest_name": item.guest_name,
        **extra,
    }


def _detached_copy(item: FeedbackItem) -> FeedbackItem:
    return FeedbackItem(
        id=item.id,
        rating=item.rating,
        category=item.category,
        status=item.status,
        created_at=item.created_at,
        acknowledged_at=item.acknowledged_at,
        resolved_at=item.resolved_at,
        updated_at=item.updated_at,
    )


class FeedbackService:
    def __init__(self, storage: Storage, side_effects: SideEffects):
        self.storage = storage
        self.side_effects = side_effects

    async def get(self, tenant_id: str, feedback_id: int) -> FeedbackItem:
        item = await self.storage.feedback.get(tenant_id, feedback_id)
        if item is None:
            raise NotFound(f"feedback {feedback_id} not found", feedback_id=feedback_id)
        return item

    async def submit(
        self,
        tenant_id: str,
        *,
        rating: int,
        category: str,
        now: datetime,
        comment: str | None = None,
        guest_name: str | None = None,
        guest_email: str | None = None,
        room_number: str | None = None,
    ) -> FeedbackItem:
        """Store a guest submission as NEW. Ratings ≤3 queue a critical check."""
        validate_rating(rating)
        category = (category or "").strip()
        if not category:
            raise ValidationError("category is required")

        item = FeedbackItem(
            rating=rating,
            category=category,
            comment=comment,
            guest_name=guest_name,
            guest_email=guest_email,
            room_number=room_number,
            status=FeedbackStatus.NEW.value,
            created_at=now,
            updated_at=now,
        )
        await self.storage.feedback.add(tenant_id, item)
        await self.storage.commit()
        logger.info("Feedback %s submitted for tenant %s (%s★ %s)", item.id, tenant_id, rating, category)

        if rating <= CRITICAL_CHECK_MAX_RATING:
            fire_and_forget(self.side_effects, "request_critical_check", tenant_id)
        return item

    async def transition(
        self,
        tenant_id: str,
        feedback_id: int,
        target: FeedbackStatus | str,
        now: datetime,
    ) -> FeedbackItem:
        item = await self.get(tenant_id, feedback_id)
        previous = FeedbackStatus(status_name(item.status))
        # The loaded row stays untouched until the conditional write succeeds.
        proposed = transition(_detached_copy(item), target, now)
        current = FeedbackStatus(status_name(proposed.status))

        applied = await self.storage.feedback.update_status(
            tenant_id,
            feedback_id,
            previous,
            {
                "status": current.value,
                "acknowledged_at": proposed.acknowledged_at,
                "resolved_at": proposed.resolved_at,
                "updated_at": proposed.updated_at,
            },
        )
        if not applied:
            await self.storage.rollback()
            raise Conflict(
                f"feedback {feedback_id} changed while moving to {current.value}",
                feedback_id=feedback_id,
            )
        await self.storage.commit()
        FEEDBACK_TRANSITIONS_TOTAL.labels(from_status=previous.value, to_status=current.value).inc()

        fire_and_forget(
            self.side_effects,
            "notify",
            feedback_event(
                f"feedback_{current.value.lower()}",
                tenant_id,
                item,
                from_status=previous.value,
                at=now.isoformat(),
            ),
        )
        return item

    async def ranked_queue(
        self, tenant_id: str, now: datetime
    ) -> list[tuple[FeedbackItem, int, SLAClassification]]:
        """Open items, highest priority first, ties in creation order."""
        items = await self.storage.feedback.list_open(tenant_id)
        return [(item, score, classify_sla(item, now)) for item, score in rank_by_priority(items, now)]

    async def sla_sweep(self, tenant_id: str, now: datetime) -> list[dict[str, Any]]:
        """Emit one ``sla_breach`` notification per overdue open item.

        Returns the emitted events; dispatch failures are logged, not raised.
        """
        events: list[dict[str, Any]] = []
        for item in await self.storage.feedback.list_open(tenant_id):
            sla = classify_sla(item, now)
            level = ESCALATION_LEVELS.get(sla.state)
            if level is None:
                continue
            event = feedback_event(
                "sla_breach",
                tenant_id,
                item,
                sla_state=sla.state.value,
                escalation_level=level,
                hours_overdue=round(-sla.hours_remaining, 2),
                priority=compute_priority(item, now),
                at=now.isoformat(),
            )
            SLA_BREACHES_TOTAL.labels(sla_state=sla.state.value).inc()
            fire_and_forget(self.side_effects, "notify", event)
            events.append(event)
        if events:
            logger.warning("SLA sweep for tenant %s: %s overdue items", tenant_id, len(events))
        return events
