"""Response lifecycle for external reviews.

DRAFT → APPROVED → POSTED is the happy path. Rejecting a DRAFT is final for
that version and immediately asks the drafting service for the next version.
An APPROVED response whose out-of-band posting failed is marked FAILED.

Every status change is a conditional write on the expected current status,
so two concurrent decisions on the same response cannot both win; the loser
gets ``Conflict``. Storage also enforces one DRAFT/APPROVED row per review.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Mapping, Sequence

from feedback_engine.config import settings
from feedback_engine.drafting import DraftingContext, DraftingService, DraftingUnavailable, DraftResult
from feedback_engine.errors import (
    Conflict,
    GenerationFailed,
    InvalidState,
    NotFound,
    RegenerationFailed,
    ValidationError,
)
from feedback_engine.issue_extraction import IssueExtractor, KeywordIssueExtractor
from feedback_engine.metrics import (
    DRAFT_LATENCY_SECONDS,
    DRAFTS_TOTAL,
    RESPONSE_RISK_TOTAL,
    RESPONSE_TRANSITIONS_TOTAL,
)
from feedback_engine.models import ExternalReview, ResponsePriority, ResponseStatus, ReviewResponse
from feedback_engine.repositories.base import Storage
from feedback_engine.risk_assessment import RiskAssessment, assess_response_risk
from feedback_engine.side_effects import SideEffects, fire_and_forget

logger = logging.getLogger(__name__)

HIGH_PRIORITY_MAX_RATING = 2
CRITICAL_CHECK_MAX_RATING = 3
DEFAULT_REJECTION_REASON = "Rejected by manager"


def response_status(response: ReviewResponse) -> ResponseStatus:
    return ResponseStatus(response.status)


def risk_fields(risk: RiskAssessment) -> dict[str, Any]:
    return {
        "risk_score": risk.score,
        "risk_level": risk.level.value,
        "risk_factors": list(risk.factors),
        "requires_approval": risk.requires_approval,
    }


class ResponseLifecycleManager:
    def __init__(
        self,
        storage: Storage,
        drafting: DraftingService,
        side_effects: SideEffects,
        *,
        extractor: IssueExtractor | None = None,
        timeout_s: float | None = None,
    ):
        self.storage = storage
        self.drafting = drafting
        self.side_effects = side_effects
        self.extractor = extractor or KeywordIssueExtractor()
        self.timeout_s = settings.DRAFTING_TIMEOUT_S if timeout_s is None else timeout_s

    # ── reads ──

    async def get(self, tenant_id: str, response_id: int) -> ReviewResponse:
        response = await self.storage.responses.get(tenant_id, response_id)
        if response is None:
            raise NotFound(f"response {response_id} not found", response_id=response_id)
        return response

    async def list_responses(self, tenant_id: str, review_id: int) -> Sequence[ReviewResponse]:
        await self._review(tenant_id, review_id)
        return await self.storage.responses.list_for_review(tenant_id, review_id)

    async def _review(self, tenant_id: str, review_id: int) -> ExternalReview:
        review = await self.storage.reviews.get(tenant_id, review_id)
        if review is None:
            raise NotFound(f"external review {review_id} not found", review_id=review_id)
        return review

    # ── generation ──

    async def build_context(
        self,
        tenant_id: str,
        review: ExternalReview,
        *,
        regenerate: bool = False,
        rejection_reason: str | None = None,
    ) -> DraftingContext:
        tenant = await self.storage.tenants.get(tenant_id)
        extra: dict[str, Any] = {}
        if tenant is not None:
            extra = {
                "brand_voice": tenant.brand_voice or "professional and friendly",
                "contact_email": tenant.contact_email,
                "hotel_name": tenant.name,
            }
        return DraftingContext(
            platform=review.platform,
            guest_name=review.author or "Valued Guest",
            rating=review.rating,
            review_text=review.review_text or "",
            sentiment=review.sentiment,
            issues=self.extractor.extract(review.review_text or ""),
            regenerate=regenerate,
            previous_rejection_reason=rejection_reason,
            **extra,
        )

    async def _call_drafting(self, context: DraftingContext, review_id: int) -> DraftResult:
        adapter = getattr(self.drafting, "name", type(self.drafting).__name__)
        regen = "yes" if context.regenerate else "no"
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(self.drafting.draft(context), timeout=self.timeout_s)
            if not (result.text or "").strip():
                raise DraftingUnavailable("empty draft")
        except Exception as exc:
            DRAFTS_TOTAL.labels(adapter=adapter, outcome="failed", regenerate=regen).inc()
            logger.error("Drafting failed for review %s via %s: %r", review_id, adapter, exc)
            raise GenerationFailed(
                f"could not generate a response for review {review_id}",
                review_id=review_id,
                cause=type(exc).__name__,
            ) from exc
        finally:
            DRAFT_LATENCY_SECONDS.labels(adapter=adapter).observe(time.perf_counter() - started)
        DRAFTS_TOTAL.labels(adapter=adapter, outcome="ok", regenerate=regen).inc()
        return result

    async def generate_draft(
        self,
        tenant_id: str,
        review_id: int,
        now: datetime,
        *,
        regenerate: bool = False,
        rejection_reason: str | None = None,
        version: int | None = None,
    ) -> ReviewResponse:
        """Ask the drafting service for a response and store it as a DRAFT.

        Nothing is written when drafting fails. Reviews rated ≤3 also queue a
        critical check, whose failure does not affect the draft.
        """
        review = await self._review(tenant_id, review_id)
        active = await self.storage.responses.get_active(tenant_id, review_id)
        if active is not None:
            raise InvalidState(
                f"review {review_id} already has an active response {active.id} ({response_status(active).value})",
                review_id=review_id,
                response_id=active.id,
            )
        if version is None:
            version = await self.storage.responses.max_version(tenant_id, review_id) + 1

        context = await self.build_context(
            tenant_id, review, regenerate=regenerate, rejection_reason=rejection_reason
        )
        result = await self._call_drafting(context, review_id)
        risk = assess_response_risk(review.review_text or "", result.text)

        response = ReviewResponse(
            external_review_id=review.id,
            response_text=result.text.strip(),
            status=ResponseStatus.DRAFT.value,
            version=version,
            priority=(
                ResponsePriority.HIGH.value
                if review.rating <= HIGH_PRIORITY_MAX_RATING
                else ResponsePriority.NORMAL.value
            ),
            model_used=result.model,
            generation_context=context.model_dump(mode="json"),
            created_at=now,
            updated_at=now,
            **risk_fields(risk),
        )
        await self.storage.responses.add(tenant_id, response)
        await self.storage.commit()
        RESPONSE_TRANSITIONS_TOTAL.labels(from_status="NONE", to_status=ResponseStatus.DRAFT.value).inc()
        RESPONSE_RISK_TOTAL.labels(risk_level=risk.level.value).inc()
        logger.info("Draft v%s created for review %s (tenant %s)", version, review_id, tenant_id)
        if risk.requires_approval:
            logger.warning(
                "Draft v%s for review %s flagged %s risk (%s): %s",
                version,
                review_id,
                risk.level.value,
                risk.score,
                ", ".join(risk.factors),
            )

        if review.rating <= CRITICAL_CHECK_MAX_RATING:
            fire_and_forget(self.side_effects, "request_critical_check", tenant_id)
        return response

    # ── manager decisions ──

    async def _advance(
        self,
        tenant_id: str,
        response_id: int,
        expected: ResponseStatus,
        target: ResponseStatus,
        values: Mapping[str, Any],
        *,
        current: ReviewResponse | None = None,
        expected_version: int | None = None,
    ) -> ReviewResponse:
        if current is None:
            current = await self.get(tenant_id, response_id)
        if response_status(current) != expected:
            raise InvalidState(
                f"response {response_id} is {response_status(current).value}, expected {expected.value}",
                response_id=response_id,
                status=response_status(current).value,
            )
        updated = await self.storage.responses.update_if_status(
            tenant_id,
            response_id,
            expected,
            {"status": target.value, **values},
            expected_version=expected_version,
        )
        if updated is None:
            await self.storage.rollback()
            raise Conflict(
                f"response {response_id} changed while {target.value.lower()} was being recorded",
                response_id=response_id,
            )
        return updated

    def _count(self, expected: ResponseStatus, target: ResponseStatus) -> None:
        RESPONSE_TRANSITIONS_TOTAL.labels(from_status=expected.value, to_status=target.value).inc()

    async def approve(
        self,
        tenant_id: str,
        response_id: int,
        manager_id: str,
        now: datetime,
        notes: str | None = None,
    ) -> ReviewResponse:
        """Record approval. Posting to the platform stays a manual step."""
        values: dict[str, Any] = {"approved_by": manager_id, "approved_at": now, "updated_at": now}
        if notes is not None:
            values["manager_notes"] = notes
        updated = await self._advance(
            tenant_id, response_id, ResponseStatus.DRAFT, ResponseStatus.APPROVED, values
        )
        await self.storage.commit()
        self._count(ResponseStatus.DRAFT, ResponseStatus.APPROVED)
        return updated

    async def mark_posted(self, tenant_id: str, response_id: int, now: datetime) -> ReviewResponse:
        updated = await self._advance(
            tenant_id,
            response_id,
            ResponseStatus.APPROVED,
            ResponseStatus.POSTED,
            {"posted_at": now, "updated_at": now},
        )
        await self.storage.reviews.set_response_required(tenant_id, updated.external_review_id, False)
        await self.storage.commit()
        self._count(ResponseStatus.APPROVED, ResponseStatus.POSTED)
        return updated

    async def mark_failed(
        self, tenant_id: str, response_id: int, now: datetime, reason: str | None = None
    ) -> ReviewResponse:
        updated = await self._advance(
            tenant_id,
            response_id,
            ResponseStatus.APPROVED,
            ResponseStatus.FAILED,
            {"failure_reason": reason or "Posting failed", "updated_at": now},
        )
        await self.storage.commit()
        self._count(ResponseStatus.APPROVED, ResponseStatus.FAILED)
        return updated

    async def edit_text(
        self, tenant_id: str, response_id: int, new_text: str, now: datetime
    ) -> ReviewResponse:
        """Replace a DRAFT's text in place; bumps the version, keeps the status.

        The write is conditional on the version that was read, so of two
        concurrent edits to the same draft only the first lands.
        """
        text = (new_text or "").strip()
        if not text:
            raise ValidationError("response text cannot be empty", response_id=response_id)
        current = await self.get(tenant_id, response_id)
        read_version = current.version
        review = await self._review(tenant_id, current.external_review_id)
        risk = assess_response_risk(review.review_text or "", text)
        updated = await self._advance(
            tenant_id,
            response_id,
            ResponseStatus.DRAFT,
            ResponseStatus.DRAFT,
            {"response_text": text, "version": read_version + 1, "updated_at": now, **risk_fields(risk)},
            current=current,
            expected_version=read_version,
        )
        await self.storage.commit()
        return updated

    async def reject(
        self,
        tenant_id: str,
        response_id: int,
        now: datetime,
        reason: str | None = None,
    ) -> ReviewResponse:
        """Reject a DRAFT and return the regenerated next version.

        The rejection is committed before regeneration starts. If regeneration
        fails, ``RegenerationFailed`` carries the rejected response.
        """
        reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
        rejected = await self._advance(
            tenant_id,
            response_id,
            ResponseStatus.DRAFT,
            ResponseStatus.REJECTED,
            {"rejection_reason": reason, "rejected_at": now, "updated_at": now},
        )
        await self.storage.commit()
        self._count(ResponseStatus.DRAFT, ResponseStatus.REJECTED)
        logger.info("Response %s v%s rejected: %s", response_id, rejected.version, reason)

        try:
            return await self.generate_draft(
                tenant_id,
                rejected.external_review_id,
                now,
                regenerate=True,
                rejection_reason=reason,
                version=rejected.version + 1,
            )
        except (GenerationFailed, Conflict, InvalidState) as exc:
            logger.warning(
                "Rejection of response %s recorded but regeneration failed: %s",
                response_id,
                exc.message,
            )
            raise RegenerationFailed(
                f"response {response_id} was rejected but no new draft could be generated",
                rejected=rejected,
                response_id=response_id,
                review_id=rejected.external_review_id,
            ) from exc
