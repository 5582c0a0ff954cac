"""Repository protocols.

Every method takes ``tenant_id`` as its first positional argument so a query
without a tenant filter cannot be written against these interfaces.
Status updates are conditional: they only apply while the row still has the
expected status and report whether they did.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Protocol, Sequence

from feedback_engine.models import (
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


class TenantRepository(Protocol):
    async def get(self, tenant_id: str) -> Tenant | None: ...

    async def list_active_ids(self) -> Sequence[str]: ...


class FeedbackRepository(Protocol):
    async def add(self, tenant_id: str, item: FeedbackItem) -> FeedbackItem: ...

    async def get(self, tenant_id: str, feedback_id: int) -> FeedbackItem | None: ...

    async def list_created_since(
        self, tenant_id: str, since: datetime, *, max_rating: int | None = None
    ) -> Sequence[FeedbackItem]: ...

    async def list_open(self, tenant_id: str) -> Sequence[FeedbackItem]: ...

    async def update_status(
        self,
        tenant_id: str,
        feedback_id: int,
        expected: FeedbackStatus,
        values: Mapping[str, Any],
    ) -> bool: ...


class ReviewRepository(Protocol):
    async def add(self, tenant_id: str, review: ExternalReview) -> ExternalReview: ...

    async def get(self, tenant_id: str, review_id: int) -> ExternalReview | None: ...

    async def list_created_since(
        self, tenant_id: str, since: datetime, *, max_rating: int | None = None
    ) -> Sequence[ExternalReview]: ...

    async def set_response_required(self, tenant_id: str, review_id: int, value: bool) -> None: ...


class ResponseRepository(Protocol):
    async def add(self, tenant_id: str, response: ReviewResponse) -> ReviewResponse: ...

    async def get(self, tenant_id: str, response_id: int) -> ReviewResponse | None: ...

    async def get_active(self, tenant_id: str, review_id: int) -> ReviewResponse | None: ...

    async def max_version(self, tenant_id: str, review_id: int) -> int: ...

    async def list_for_review(self, tenant_id: str, review_id: int) -> Sequence[ReviewResponse]: ...

    async def update_if_status(
        self,
        tenant_id: str,
        response_id: int,
        expected: ResponseStatus,
        values: Mapping[str, Any],
        *,
        expected_version: int | None = None,
    ) -> ReviewResponse | None: ...


class SnapshotRepository(Protocol):
    async def add(self, tenant_id: str, snapshot: RatingSnapshot) -> RatingSnapshot: ...

    async def latest(self, tenant_id: str, platform: str, *, limit: int = 2) -> Sequence[RatingSnapshot]: ...

    async def platforms(self, tenant_id: str) -> Sequence[str]: ...

    async def latest_any(self, tenant_id: str) -> RatingSnapshot | None: ...


class ManagerRepository(Protocol):
    async def list_active(self, tenant_id: str) -> Sequence[ManagerContact]: ...


class AlertLogRepository(Protocol):
    async def add(self, tenant_id: str, row: AlertLog) -> AlertLog: ...

    async def latest(self, tenant_id: str) -> AlertLog | None: ...


class Storage(Protocol):
    """Unit of work bundling the repositories over one transaction."""

    tenants: TenantRepository
    feedback: FeedbackRepository
    reviews: ReviewRepository
    responses: ResponseRepository
    snapshots: SnapshotRepository
    managers: ManagerRepository
    alerts: AlertLogRepository

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...
