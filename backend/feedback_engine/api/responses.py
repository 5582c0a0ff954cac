"""Review response API — manager decisions on drafted replies."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, field_validator

from feedback_engine.api.deps import get_drafting, get_now, get_side_effects, get_storage, tenant_scope
from feedback_engine.drafting import DraftingService
from feedback_engine.repositories import Storage
from feedback_engine.response_lifecycle import ResponseLifecycleManager
from feedback_engine.side_effects import SideEffects

router = APIRouter(prefix="/tenants/{tenant_id}/responses", tags=["responses"])
logger = logging.getLogger(__name__)


class ResponseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None
    external_review_id: int
    response_text: str
    status: str
    version: int
    priority: str
    model_used: str | None = None
    generation_context: dict[str, Any] | None = None
    risk_score: int = 0
    risk_level: str = "LOW"
    risk_factors: list[str] = []
    requires_approval: bool = False
    manager_notes: str | None = None
    rejection_reason: str | None = None
    failure_reason: str | None = None
    approved_by: str | None = None
    created_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    posted_at: datetime | None = None

    @field_validator("status", "priority", "risk_level", mode="before")
    @classmethod
    def _enum_value(cls, value: Any) -> Any:
        return getattr(value, "value", value)


class ApproveRequest(BaseModel):
    manager_id: str
    notes: str | None = None


class RejectRequest(BaseModel):
    reason: str | None = None


class EditRequest(BaseModel):
    text: str


class FailedRequest(BaseModel):
    reason: str | None = None


class RejectOut(BaseModel):
    rejected: ResponseOut
    draft: ResponseOut


def lifecycle(
    storage: Storage = Depends(get_storage),
    drafting: DraftingService = Depends(get_drafting),
    side_effects: SideEffects = Depends(get_side_effects),
) -> ResponseLifecycleManager:
    return ResponseLifecycleManager(storage, drafting, side_effects)


@router.get("/{response_id}")
async def get_response(
    response_id: int,
    tenant_id: str = Depends(tenant_scope),
    manager: ResponseLifecycleManager = Depends(lifecycle),
) -> ResponseOut:
    return ResponseOut.model_validate(await manager.get(tenant_id, response_id))


@router.post("/{response_id}/approve")
async def approve_response(
    response_id: int,
    payload: ApproveRequest,
    tenant_id: str = Depends(tenant_scope),
    manager: ResponseLifecycleManager = Depends(lifecycle),
    now: datetime = Depends(get_now),
) -> ResponseOut:
    response = await manager.approve(tenant_id, response_id, payload.manager_id, now, payload.notes)
    return ResponseOut.model_validate(response)


@router.post("/{response_id}/reject")
async def reject_response(
    response_id: int,
    payload: RejectRequest,
    tenant_id: str = Depends(tenant_scope),
    manager: ResponseLifecycleManager = Depends(lifecycle),
    now: datetime = Depends(get_now),
) -> RejectOut:
    draft = await manager.reject(tenant_id, response_id, now, payload.reason)
    rejected = await manager.get(tenant_id, response_id)
    return RejectOut(
        rejected=ResponseOut.model_validate(rejected),
        draft=ResponseOut.model_validate(draft),
    )


@router.put("/{response_id}/text")
async def edit_response_text(
    response_id: int,
    payload: EditRequest,
    tenant_id: str = Depends(tenant_scope),
    manager: ResponseLifecycleManager = Depends(lifecycle),
    now: datetime = Depends(get_now),
) -> ResponseOut:
    return ResponseOut.model_validate(await manager.edit_text(tenant_id, response_id, payload.text, now))


@router.post("/{response_id}/posted")
async def mark_response_posted(
    response_id: int,
    tenant_id: str = Depends(tenant_scope),
    manager: ResponseLifecycleManager = Depends(lifecycle),
    now: datetime = Depends(get_now),
) -> ResponseOut:
    return ResponseOut.model_validate(await manager.mark_posted(tenant_id, response_id, now))


@router.post("/{response_id}/failed")
async def mark_response_failed(
    response_id: int,
    payload: FailedRequest,
    tenant_id: str = Depends(tenant_scope),
    manager: ResponseLifecycleManager = Depends(lifecycle),
    now: datetime = Depends(get_now),
) -> ResponseOut:
    return ResponseOut.model_validate(await manager.mark_failed(tenant_id, response_id, now, payload.reason))
