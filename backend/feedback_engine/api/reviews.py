"""External review API — ingestion, rating snapshots and draft generation."""
from __future__ import annotations

import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from feedback_engine.api.deps import get_now, get_side_effects, get_storage, tenant_scope
from feedback_engine.api.responses import ResponseOut, lifecycle
from feedback_engine.ingestion import IngestionService
from feedback_engine.repositories import Storage
from feedback_engine.response_lifecycle import ResponseLifecycleManager
from feedback_engine.side_effects import SideEffects

router = APIRouter(prefix="/tenants/{tenant_id}", tags=["reviews"])
logger = logging.getLogger(__name__)


class ReviewIngest(BaseModel):
    platform: str
    platform_review_id: str
    rating: int
    review_text: str = ""
    author: str | None = None
    review_date: date | None = None
    sentiment: str | None = None
    response_required: bool = True


class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None
    platform: str
    platform_review_id: str
    rating: int
    author: str | None = None
    review_text: str
    review_date: date | None = None
    sentiment: str | None = None
    response_required: bool
    created_at: datetime | None = None


class SnapshotIngest(BaseModel):
    platform: str
    average_rating: float
    total_reviews: int
    distribution: dict[str, int] = Field(description='Counts per star value, keyed "1".."5"')
    captured_at: datetime | None = None


class SnapshotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None
    platform: str
    average_rating: float
    total_reviews: int
    distribution: dict[str, int]
    captured_at: datetime


@router.post("/reviews", status_code=201)
async def ingest_review(
    payload: ReviewIngest,
    tenant_id: str = Depends(tenant_scope),
    storage: Storage = Depends(get_storage),
    side_effects: SideEffects = Depends(get_side_effects),
    now: datetime = Depends(get_now),
) -> ReviewOut:
    review = await IngestionService(storage, side_effects).ingest_review(
        tenant_id, now=now, **payload.model_dump()
    )
    return ReviewOut.model_validate(review)


@router.post("/snapshots", status_code=201)
async def ingest_snapshot(
    payload: SnapshotIngest,
    tenant_id: str = Depends(tenant_scope),
    storage: Storage = Depends(get_storage),
    side_effects: SideEffects = Depends(get_side_effects),
    now: datetime = Depends(get_now),
) -> SnapshotOut:
    snapshot = await IngestionService(storage, side_effects).record_snapshot(
        tenant_id,
        platform=payload.platform,
        average_rating=payload.average_rating,
        total_reviews=payload.total_reviews,
        distribution=payload.distribution,
        captured_at=payload.captured_at or now,
    )
    return SnapshotOut.model_validate(snapshot)


@router.post("/reviews/{review_id}/draft", status_code=201)
async def generate_draft(
    review_id: int,
    tenant_id: str = Depends(tenant_scope),
    manager: ResponseLifecycleManager = Depends(lifecycle),
    now: datetime = Depends(get_now),
) -> ResponseOut:
    return ResponseOut.model_validate(await manager.generate_draft(tenant_id, review_id, now))


@router.get("/reviews/{review_id}/responses")
async def list_responses(
    review_id: int,
    tenant_id: str = Depends(tenant_scope),
    manager: ResponseLifecycleManager = Depends(lifecycle),
) -> list[ResponseOut]:
    """Version history, newest first."""
    return [ResponseOut.model_validate(r) for r in await manager.list_responses(tenant_id, review_id)]
