"""Feedback API — guest submissions, ranked work queue and workflow transitions."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from feedback_engine.api.deps import get_now, get_side_effects, get_storage, tenant_scope
from feedback_engine.feedback_service import FeedbackService
from feedback_engine.models import FeedbackItem
from feedback_engine.repositories import Storage
from feedback_engine.side_effects import SideEffects
from feedback_engine.sla_engine import ack_deadline, classify_sla, compute_priority, resolve_deadline, status_name

router = APIRouter(prefix="/tenants/{tenant_id}/feedback", tags=["feedback"])
logger = logging.getLogger(__name__)


class FeedbackCreate(BaseModel):
    rating: int
    category: str
    comment: str | None = None
    guest_name: str | None = None
    guest_email: str | None = None
    room_number: str | None = None


class TransitionRequest(BaseModel):
    status: str


class FeedbackOut(BaseModel):
    id: int | None
    tenant_id: str
    rating: int
    category: str
    comment: str | None = None
    guest_name: str | None = None
    room_number: str | None = None
    status: str
    created_at: datetime
    acknowledged_at: datetime | None = None
    resolved_at: datetime | None = None
    ack_due_at: datetime
    resolve_due_at: datetime
    sla: dict[str, Any]
    priority: int


def feedback_out(item: FeedbackItem, now: datetime, priority: int | None = None) -> FeedbackOut:
    return FeedbackOut(
        id=item.id,
        tenant_id=item.tenant_id,
        rating=item.rating,
        category=item.category,
        comment=item.comment,
        guest_name=item.guest_name,
        room_number=item.room_number,
        status=status_name(item.status),
        created_at=item.created_at,
        acknowledged_at=item.acknowledged_at,
        resolved_at=item.resolved_at,
        ack_due_at=ack_deadline(item),
        resolve_due_at=resolve_deadline(item),
        sla=classify_sla(item, now).as_dict(),
        priority=compute_priority(item, now) if priority is None else priority,
    )


def _service(storage: Storage, side_effects: SideEffects) -> FeedbackService:
    return FeedbackService(storage, side_effects)


@router.post("", status_code=201)
async def submit_feedback(
    payload: FeedbackCreate,
    tenant_id: str = Depends(tenant_scope),
    storage: Storage = Depends(get_storage),
    side_effects: SideEffects = Depends(get_side_effects),
    now: datetime = Depends(get_now),
) -> FeedbackOut:
    item = await _service(storage, side_effects).submit(
        tenant_id,
        rating=payload.rating,
        category=payload.category,
        now=now,
        comment=payload.comment,
        guest_name=payload.guest_name,
        guest_email=payload.guest_email,
        room_number=payload.room_number,
    )
    return feedback_out(item, now)


@router.get("/queue")
async def ranked_queue(
    tenant_id: str = Depends(tenant_scope),
    storage: Storage = Depends(get_storage),
    side_effects: SideEffects = Depends(get_side_effects),
    now: datetime = Depends(get_now),
) -> list[FeedbackOut]:
    """Open items, highest priority first."""
    entries = await _service(storage, side_effects).ranked_queue(tenant_id, now)
    return [feedback_out(item, now, priority=score) for item, score, _ in entries]


@router.post("/{feedback_id}/transition")
async def transition_feedback(
    feedback_id: int,
    payload: TransitionRequest,
    tenant_id: str = Depends(tenant_scope),
    storage: Storage = Depends(get_storage),
    side_effects: SideEffects = Depends(get_side_effects),
    now: datetime = Depends(get_now),
) -> FeedbackOut:
    item = await _service(storage, side_effects).transition(
        tenant_id, feedback_id, payload.status.upper(), now
    )
    return feedback_out(item, now)
