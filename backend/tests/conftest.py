from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

import pytest

from feedback_engine.drafting import DraftingContext, DraftResult
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
from feedback_engine.sla_engine import status_name

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
TENANT = "hotel-a"
OTHER_TENANT = "hotel-b"


def _status(value: Any) -> str:
    return getattr(value, "value", str(value))


class _Rows:
    def __init__(self, ids: itertools.count):
        self.rows: list[Any] = []
        self._ids = ids

    def _insert(self, tenant_id: str, row: Any) -> Any:
        row.tenant_id = tenant_id
        row.id = next(self._ids)
        self.rows.append(row)
        return row

    def _get(self, tenant_id: str, row_id: int) -> Any:
        for row in self.rows:
            if row.tenant_id == tenant_id and row.id == row_id:
                return row
        return None

    def _for(self, tenant_id: str) -> list[Any]:
        return [r for r in self.rows if r.tenant_id == tenant_id]


class FakeTenants:
    def __init__(self) -> None:
        self.rows: dict[str, Tenant] = {}

    async def get(self, tenant_id: str) -> Tenant | None:
        return self.rows.get(tenant_id)

    async def list_active_ids(self) -> Sequence[str]:
        return sorted(t.id for t in self.rows.values() if t.is_active is not False)


class FakeFeedback(_Rows):
    async def add(self, tenant_id: str, item: FeedbackItem) -> FeedbackItem:
        return self._insert(tenant_id, item)

    async def get(self, tenant_id: str, feedback_id: int) -> FeedbackItem | None:
        return self._get(tenant_id, feedback_id)

    async def list_created_since(
        self, tenant_id: str, since: datetime, *, max_rating: int | None = None
    ) -> Sequence[FeedbackItem]:
        rows = [
            r
            for r in self._for(tenant_id)
            if r.created_at >= since and (max_rating is None or r.rating <= max_rating)
        ]
        return sorted(rows, key=lambda r: (r.created_at, r.id))

    async def list_open(self, tenant_id: str) -> Sequence[FeedbackItem]:
        rows = [r for r in self._for(tenant_id) if status_name(r.status) != FeedbackStatus.RESOLVED.value]
        return sorted(rows, key=lambda r: (r.created_at, r.id))

    async def update_status(
        self, tenant_id: str, feedback_id: int, expected: FeedbackStatus, values: Mapping[str, Any]
    ) -> bool:
        row = self._get(tenant_id, feedback_id)
        if row is None or status_name(row.status) != expected.value:
            return False
        for key, value in values.items():
            setattr(row, key, value)
        return True


class FakeReviews(_Rows):
    async def add(self, tenant_id: str, review: ExternalReview) -> ExternalReview:
        return self._insert(tenant_id, review)

    async def get(self, tenant_id: str, review_id: int) -> ExternalReview | None:
        return self._get(tenant_id, review_id)

    async def list_created_since(
        self, tenant_id: str, since: datetime, *, max_rating: int | None = None
    ) -> Sequence[ExternalReview]:
        rows = [
            r
            for r in self._for(tenant_id)
            if r.created_at >= since and (max_rating is None or r.rating <= max_rating)
        ]
        return sorted(rows, key=lambda r: (r.created_at, r.id))

    async def set_response_required(self, tenant_id: str, review_id: int, value: bool) -> None:
        row = self._get(tenant_id, review_id)
        if row is not None:
            row.response_required = value


class FakeResponses(_Rows):
    """Enforces the same uniqueness rules as the database indexes."""

    def _check_unique(self, candidate: ReviewResponse, ignore: ReviewResponse | None = None) -> None:
        for row in self.rows:
            if row is ignore or row.external_review_id != candidate.external_review_id:
                continue
            if row.version == candidate.version:
                raise Conflict("duplicate response version")
            if (
                _status(row.status) in {s.value for s in ACTIVE_RESPONSE_STATUSES}
                and _status(candidate.status) in {s.value for s in ACTIVE_RESPONSE_STATUSES}
            ):
                raise Conflict("review already has an active response")

    async def add(self, tenant_id: str, response: ReviewResponse) -> ReviewResponse:
        self._check_unique(response)
        return self._insert(tenant_id, response)

    async def get(self, tenant_id: str, response_id: int) -> ReviewResponse | None:
        return self._get(tenant_id, response_id)

    async def get_active(self, tenant_id: str, review_id: int) -> ReviewResponse | None:
        for row in self._for(tenant_id):
            if row.external_review_id == review_id and _status(row.status) in {
                s.value for s in ACTIVE_RESPONSE_STATUSES
            }:
                return row
        return None

    async def max_version(self, tenant_id: str, review_id: int) -> int:
        return max((r.version for r in self._for(tenant_id) if r.external_review_id == review_id), default=0)

    async def list_for_review(self, tenant_id: str, review_id: int) -> Sequence[ReviewResponse]:
        rows = [r for r in self._for(tenant_id) if r.external_review_id == review_id]
        return sorted(rows, key=lambda r: -r.version)

    async def update_if_status(
        self,
        tenant_id: str,
        response_id: int,
        expected: ResponseStatus,
        values: Mapping[str, Any],
        *,
        expected_version: int | None = None,
    ) -> ReviewResponse | None:
        row = self._get(tenant_id, response_id)
        if row is None or _status(row.status) != expected.value:
            return None
        if expected_version is not None and row.version != expected_version:
            return None
        for key, value in values.items():
            setattr(row, key, value)
        return row


class FakeSnapshots(_Rows):
    async def add(self, tenant_id: str, snapshot: RatingSnapshot) -> RatingSnapshot:
        return self._insert(tenant_id, snapshot)

    def _newest_first(self, rows: list[RatingSnapshot]) -> list[RatingSnapshot]:
        return sorted(rows, key=lambda r: (r.captured_at, r.id), reverse=True)

    async def latest(self, tenant_id: str, platform: str, *, limit: int = 2) -> Sequence[RatingSnapshot]:
        rows = [r for r in self._for(tenant_id) if r.platform == platform]
        return self._newest_first(rows)[:limit]

    async def platforms(self, tenant_id: str) -> Sequence[str]:
        return sorted({r.platform for r in self._for(tenant_id)})

    async def latest_any(self, tenant_id: str) -> RatingSnapshot | None:
        rows = self._newest_first(self._for(tenant_id))
        return rows[0] if rows else None


class FakeManagers(_Rows):
    async def list_active(self, tenant_id: str) -> Sequence[ManagerContact]:
        rows = [r for r in self._for(tenant_id) if r.is_active is not False]
        return sorted(rows, key=lambda r: (not r.is_primary, r.name))


class FakeAlerts(_Rows):
    async def add(self, tenant_id: str, row: AlertLog) -> AlertLog:
        return self._insert(tenant_id, row)

    async def latest(self, tenant_id: str) -> AlertLog | None:
        rows = sorted(self._for(tenant_id), key=lambda r: (r.sent_at, r.id))
        return rows[-1] if rows else None


class FakeStorage:
    def __init__(self) -> None:
        ids = itertools.count(1)
        self.tenants = FakeTenants()
        self.feedback = FakeFeedback(ids)
        self.reviews = FakeReviews(ids)
        self.responses = FakeResponses(ids)
        self.snapshots = FakeSnapshots(ids)
        self.managers = FakeManagers(ids)
        self.alerts = FakeAlerts(ids)
        self.commits = 0
        self.rollbacks = 0

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1


class FakeSideEffects:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.events: list[dict[str, Any]] = []
        self.critical_checks: list[str] = []
        self.drafts: list[tuple[str, int]] = []

    def _maybe_fail(self) -> None:
        if self.fail:
            raise RuntimeError("broker unavailable")

    def notify(self, event: dict[str, Any]) -> None:
        self._maybe_fail()
        self.events.append(event)

    def request_critical_check(self, tenant_id: str) -> None:
        self._maybe_fail()
        self.critical_checks.append(tenant_id)

    def request_draft(self, tenant_id: str, review_id: int) -> None:
        self._maybe_fail()
        self.drafts.append((tenant_id, review_id))


class FakeDrafting:
    """Returns numbered drafts; ``failures`` makes the next N calls raise."""

    name = "fake"

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.contexts: list[DraftingContext] = []

    async def draft(self, context: DraftingContext) -> DraftResult:
        self.contexts.append(context)
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("drafting backend down")
        return DraftResult(
            text=f"Dear {context.guest_name}, draft {len(self.contexts)} about {', '.join(context.issues) or 'your stay'}.",
            model="fake-1",
        )


def make_tenant(tenant_id: str = TENANT, name: str = "Harbour View Hotel") -> Tenant:
    return Tenant(
        id=tenant_id,
        slug=tenant_id,
        name=name,
        brand_voice="warm and professional",
        contact_email="guestrelations@harbourview.example",
        is_active=True,
    )


def make_feedback(
    *,
    rating: int,
    category: str = "Housekeeping",
    created_at: datetime = NOW,
    status: FeedbackStatus = FeedbackStatus.NEW,
    comment: str | None = None,
    guest_name: str | None = "Ama",
    acknowledged_at: datetime | None = None,
    resolved_at: datetime | None = None,
    feedback_id: int | None = None,
) -> FeedbackItem:
    return FeedbackItem(
        id=feedback_id,
        tenant_id=TENANT,
        rating=rating,
        category=category,
        comment=comment,
        guest_name=guest_name,
        status=status.value,
        created_at=created_at,
        updated_at=created_at,
        acknowledged_at=acknowledged_at,
        resolved_at=resolved_at,
    )


def make_review(
    *,
    rating: int,
    review_text: str = "",
    platform: str = "tripadvisor",
    created_at: datetime = NOW,
    author: str = "Kwame",
) -> ExternalReview:
    return ExternalReview(
        platform=platform,
        platform_review_id=f"{platform}-{rating}-{created_at.timestamp()}",
        author=author,
        rating=rating,
        review_text=review_text,
        sentiment="negative" if rating <= 2 else "positive",
        response_required=True,
        created_at=created_at,
    )


def make_snapshot(
    *,
    average: float,
    captured_at: datetime,
    platform: str = "tripadvisor",
    total: int = 139,
    distribution: dict[str, int] | None = None,
) -> RatingSnapshot:
    return RatingSnapshot(
        platform=platform,
        average_rating=average,
        total_reviews=total,
        distribution=distribution or {"5": 59, "4": 43, "3": 21, "2": 5, "1": 11},
        captured_at=captured_at,
    )


def make_manager(
    name: str,
    department: str,
    *,
    title: str | None = None,
    is_primary: bool = False,
) -> ManagerContact:
    return ManagerContact(
        name=name,
        title=title,
        department=department,
        email=f"{name.split()[0].lower()}@harbourview.example",
        phone="+233 20 000 0000",
        is_primary=is_primary,
        is_active=True,
    )


@pytest.fixture
def storage() -> FakeStorage:
    s = FakeStorage()
    s.tenants.rows[TENANT] = make_tenant()
    s.tenants.rows[OTHER_TENANT] = make_tenant(OTHER_TENANT, name="Other Hotel")
    return s


@pytest.fixture
def side_effects() -> FakeSideEffects:
    return FakeSideEffects()
