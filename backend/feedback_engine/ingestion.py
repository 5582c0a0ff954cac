"""Write-path hooks for external reviews and platform rating snapshots."""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Mapping

from feedback_engine.errors import ValidationError
from feedback_engine.models import ExternalReview, RatingSnapshot
from feedback_engine.repositories.base import Storage
from feedback_engine.scoring.recovery import normalize_distribution
from feedback_engine.side_effects import SideEffects, fire_and_forget
from feedback_engine.sla_engine import validate_rating

logger = logging.getLogger(__name__)

CRITICAL_CHECK_MAX_RATING = 3


class IngestionService:
    def __init__(self, storage: Storage, side_effects: SideEffects):
        self.storage = storage
        self.side_effects = side_effects

    async def ingest_review(
        self,
        tenant_id: str,
        *,
        platform: str,
        platform_review_id: str,
        rating: int,
        now: datetime,
        review_text: str = "",
        author: str | None = None,
        review_date: date | None = None,
        sentiment: str | None = None,
        response_required: bool = True,
    ) -> ExternalReview:
        """Store a review; queue its first draft and, for ≤3★, a critical check."""
        validate_rating(rating)
        if not platform or not platform_review_id:
            raise ValidationError("platform and platform_review_id are required")

        review = ExternalReview(
            platform=platform,
            platform_review_id=platform_review_id,
            author=author,
            rating=rating,
            review_text=review_text or "",
            review_date=review_date,
            sentiment=sentiment,
            response_required=response_required,
            created_at=now,
        )
        await self.storage.reviews.add(tenant_id, review)
        await self.storage.commit()
        logger.info("Ingested %s review %s (%s★) for tenant %s", platform, review.id, rating, tenant_id)

        if response_required:
            fire_and_forget(self.side_effects, "request_draft", tenant_id, review.id)
        if rating <= CRITICAL_CHECK_MAX_RATING:
            fire_and_forget(self.side_effects, "request_critical_check", tenant_id)
        return review

    async def record_snapshot(
        self,
        tenant_id: str,
        *,
        platform: str,
        average_rating: float,
        total_reviews: int,
        distribution: Mapping[object, object],
        captured_at: datetime,
    ) -> RatingSnapshot:
        if not 0 <= average_rating <= 5:
            raise ValidationError(f"average rating {average_rating} outside 0..5")
        if total_reviews < 0:
            raise ValidationError("total_reviews cannot be negative")
        counts = normalize_distribution(distribution)

        snapshot = RatingSnapshot(
            platform=platform,
            average_rating=average_rating,
            total_reviews=total_reviews,
            distribution={str(stars): count for stars, count in sorted(counts.items())},
            captured_at=captured_at,
        )
        await self.storage.snapshots.add(tenant_id, snapshot)
        await self.storage.commit()
        logger.info("Snapshot %s for %s: %s★ over %s reviews", snapshot.id, platform, average_rating, total_reviews)
        return snapshot
