"""SQLAlchemy implementations of the tenant-scoped repositories."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_engine.errors import Conflict
from feedback_engine.models import (
    ACTIVE_RESPONSE_STATUSES,
    AlertLog,
    ExternalReview,
    FeedbackItem,
    FeedbackStatus,
    ManagerContact,
    RatingSnapshot,
    ResponseStatus,
    ReviewResponse,
    Tenant,
)

logger = logging.getLogger(__name__)


class _SessionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _insert(self, obj: Any) -> Any:
        self.session.add(obj)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            raise Conflict(f"{type(obj).__name__} violates a uniqueness constraint", error=str(exc.orig))
        return obj


class SQLTenantRepository(_SessionRepository):
    async def get(self, tenant_id: str) -> Tenant | None:
        res = await self.session.execute(select(Tenant).where(Tenant.id == tenant_id))
        return res.scalar_one_or_none()

    async def list_active_ids(self) -> Sequence[str]:
        res = await self.session.execute(
            select(Tenant.id).where(Tenant.is_active.is_(True)).order_by(Tenant.id)
        )
        return list(res.scalars().all())


class SQLFeedbackRepository(_SessionRepository):
    async def add(self, tenant_id: str, item: FeedbackItem) -> FeedbackItem:
        item.tenant_id = tenant_id
        return await self._insert(item)

    async def get(self, tenant_id: str, feedback_id: int) -> FeedbackItem | None:
        res = await self.session.execute(
            select(FeedbackItem).where(
                FeedbackItem.tenant_id == tenant_id,
                FeedbackItem.id == feedback_id,
            )
        )
        return res.scalar_one_or_none()

    async def list_created_since(
        self, tenant_id: str, since: datetime, *, max_rating: int | None = None
    ) -> Sequence[FeedbackItem]:
        stmt = select(FeedbackItem).where(
            FeedbackItem.tenant_id == tenant_id,
            FeedbackItem.created_at >= since,
        )
        if max_rating is not None:
            stmt = stmt.where(FeedbackItem.rating <= max_rating)
        res = await self.session.execute(stmt.order_by(FeedbackItem.created_at, FeedbackItem.id))
        return list(res.scalars().all())

    async def list_open(self, tenant_id: str) -> Sequence[FeedbackItem]:
        res = await self.session.execute(
            select(FeedbackItem)
            .where(
                FeedbackItem.tenant_id == tenant_id,
                FeedbackItem.status != FeedbackStatus.RESOLVED.value,
            )
            .order_by(FeedbackItem.created_at, FeedbackItem.id)
        )
        return list(res.scalars().all())

    async def update_status(
        self,
        tenant_id: str,
        feedback_id: int,
        expected: FeedbackStatus,
        values: Mapping[str, Any],
    ) -> bool:
        res = await self.session.execute(
            update(FeedbackItem)
            .where(
                FeedbackItem.tenant_id == tenant_id,
                FeedbackItem.id == feedback_id,
                FeedbackItem.status == expected.value,
            )
            .values(**values)
            .execution_options(synchronize_session="evaluate")
        )
        return res.rowcount == 1


class SQLReviewRepository(_SessionRepository):
    async def add(self, tenant_id: str, review: ExternalReview) -> ExternalReview:
        review.tenant_id = tenant_id
        return await self._insert(review)

    async def get(self, tenant_id: str, review_id: int) -> ExternalReview | None:
        res = await self.session.execute(
            select(ExternalReview).where(
                ExternalReview.tenant_id == tenant_id,
                ExternalReview.id == review_id,
            )
        )
        return res.scalar_one_or_none()

    async def list_created_since(
        self, tenant_id: str, since: datetime, *, max_rating: int | None = None
    ) -> Sequence[ExternalReview]:
        stmt = select(ExternalReview).where(
            ExternalReview.tenant_id == tenant_id,
            ExternalReview.created_at >= since,
        )
        if max_rating is not None:
            stmt = stmt.where(ExternalReview.rating <= max_rating)
        res = await self.session.execute(stmt.order_by(ExternalReview.created_at, ExternalReview.id))
        return list(res.scalars().all())

    async def set_response_required(self, tenant_id: str, review_id: int, value: bool) -> None:
        await self.session.execute(
            update(ExternalReview)
            .where(ExternalReview.tenant_id == tenant_id, ExternalReview.id == review_id)
            .values(response_required=value)
            .execution_options(synchronize_session="fetch")
        )


class SQLResponseRepository(_SessionRepository):
    async def add(self, tenant_id: str, response: ReviewResponse) -> ReviewResponse:
        response.tenant_id = tenant_id
        return await self._insert(response)

    async def get(self, tenant_id: str, response_id: int) -> ReviewResponse | None:
        res = await self.session.execute(
            select(ReviewResponse).where(
                ReviewResponse.tenant_id == tenant_id,
                ReviewResponse.id == response_id,
            )
        )
        return res.scalar_one_or_none()

    async def get_active(self, tenant_id: str, review_id: int) -> ReviewResponse | None:
        res = await self.session.execute(
            select(ReviewResponse).where(
                ReviewResponse.tenant_id == tenant_id,
                ReviewResponse.external_review_id == review_id,
                ReviewResponse.status.in_([s.value for s in ACTIVE_RESPONSE_STATUSES]),
            )
        )
        return res.scalars().first()

    async def max_version(self, tenant_id: str, review_id: int) -> int:
        res = await self.session.execute(
            select(func.max(ReviewResponse.version)).where(
                ReviewResponse.tenant_id == tenant_id,
                ReviewResponse.external_review_id == review_id,
            )
        )
        return int(res.scalar() or 0)

    async def list_for_review(self, tenant_id: str, review_id: int) -> Sequence[ReviewResponse]:
        res = await self.session.execute(
            select(ReviewResponse)
            .where(
                ReviewResponse.tenant_id == tenant_id,
                ReviewResponse.external_review_id == review_id,
            )
            .order_by(ReviewResponse.version.desc())
        )
        return list(res.scalars().all())

    async def update_if_status(
        self,
        tenant_id: str,
        response_id: int,
        expected: ResponseStatus,
        values: Mapping[str, Any],
        *,
        expected_version: int | None = None,
    ) -> ReviewResponse | None:
        stmt = update(ReviewResponse).where(
            ReviewResponse.tenant_id == tenant_id,
            ReviewResponse.id == response_id,
            ReviewResponse.status == expected.value,
        )
        if expected_version is not None:
            stmt = stmt.where(ReviewResponse.version == expected_version)
        try:
            res = await self.session.execute(
                stmt
                .values(**values)
                .returning(ReviewResponse)
                .execution_options(populate_existing=True)
            )
        except IntegrityError as exc:
            await self.session.rollback()
            raise Conflict("response update violates a uniqueness constraint", error=str(exc.orig))
        return res.scalar_one_or_none()


class SQLSnapshotRepository(_SessionRepository):
    async def add(self, tenant_id: str, snapshot: RatingSnapshot) -> RatingSnapshot:
        snapshot.tenant_id = tenant_id
        return await self._insert(snapshot)

    async def latest(self, tenant_id: str, platform: str, *, limit: int = 2) -> Sequence[RatingSnapshot]:
        res = await self.session.execute(
            select(RatingSnapshot)
            .where(RatingSnapshot.tenant_id == tenant_id, RatingSnapshot.platform == platform)
            .order_by(RatingSnapshot.captured_at.desc(), RatingSnapshot.id.desc())
            .limit(limit)
        )
        return list(res.scalars().all())

    async def platforms(self, tenant_id: str) -> Sequence[str]:
        res = await self.session.execute(
            select(RatingSnapshot.platform)
            .where(RatingSnapshot.tenant_id == tenant_id)
            .distinct()
            .order_by(RatingSnapshot.platform)
        )
        return list(res.scalars().all())

    async def latest_any(self, tenant_id: str) -> RatingSnapshot | None:
        res = await self.session.execute(
            select(RatingSnapshot)
            .where(RatingSnapshot.tenant_id == tenant_id)
            .order_by(RatingSnapshot.captured_at.desc(), RatingSnapshot.id.desc())
            .limit(1)
        )
        return res.scalar_one_or_none()


class SQLManagerRepository(_SessionRepository):
    async def list_active(self, tenant_id: str) -> Sequence[ManagerContact]:
        res = await self.session.execute(
            select(ManagerContact)
            .where(ManagerContact.tenant_id == tenant_id, ManagerContact.is_active.is_(True))
            .order_by(ManagerContact.is_primary.desc(), ManagerContact.name)
        )
        return list(res.scalars().all())


class SQLAlertLogRepository(_SessionRepository):
    async def add(self, tenant_id: str, row: AlertLog) -> AlertLog:
        row.tenant_id = tenant_id
        return await self._insert(row)

    async def latest(self, tenant_id: str) -> AlertLog | None:
        res = await self.session.execute(
            select(AlertLog)
            .where(AlertLog.tenant_id == tenant_id)
            .order_by(AlertLog.sent_at.desc(), AlertLog.id.desc())
            .limit(1)
        )
        return res.scalar_one_or_none()


class SQLStorage:
    """Unit of work over one ``AsyncSession``."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.tenants = SQLTenantRepository(session)
        self.feedback = SQLFeedbackRepository(session)
        self.reviews = SQLReviewRepository(session)
        self.responses = SQLResponseRepository(session)
        self.snapshots = SQLSnapshotRepository(session)
        self.managers = SQLManagerRepository(session)
        self.alerts = SQLAlertLogRepository(session)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
