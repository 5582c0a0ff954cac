from __future__ import annotations

import asyncio

import pytest

from conftest import NOW, TENANT, FakeSideEffects
from feedback_engine.errors import ValidationError
from feedback_engine.ingestion import IngestionService


def _ingest(service: IngestionService, rating: int, **kwargs):
    kwargs.setdefault("platform", "google")
    kwargs.setdefault("platform_review_id", f"g-{rating}")
    return asyncio.run(service.ingest_review(TENANT, rating=rating, now=NOW, **kwargs))


def test_low_rated_review_queues_draft_and_critical_check(storage) -> None:
    side_effects = FakeSideEffects()
    review = _ingest(IngestionService(storage, side_effects), 2, review_text="Noisy room")

    assert review.id is not None
    assert review.created_at == NOW
    assert side_effects.drafts == [(TENANT, review.id)]
    assert side_effects.critical_checks == [TENANT]
    assert storage.commits == 1


def test_review_without_reply_needed_queues_nothing_for_good_rating(storage) -> None:
    side_effects = FakeSideEffects()
    _ingest(IngestionService(storage, side_effects), 5, response_required=False)
    assert side_effects.drafts == []
    assert side_effects.critical_checks == []


def test_broken_queue_does_not_fail_ingestion(storage) -> None:
    review = _ingest(IngestionService(storage, FakeSideEffects(fail=True)), 1)
    assert asyncio.run(storage.reviews.get(TENANT, review.id)) is review


def test_review_validation(storage) -> None:
    service = IngestionService(storage, FakeSideEffects())
    with pytest.raises(ValidationError):
        _ingest(service, 6)
    with pytest.raises(ValidationError):
        _ingest(service, 4, platform_review_id="")
    assert storage.commits == 0


def test_snapshot_distribution_is_normalized(storage) -> None:
    service = IngestionService(storage, FakeSideEffects())
    snapshot = asyncio.run(
        service.record_snapshot(
            TENANT,
            platform="tripadvisor",
            average_rating=4.1,
            total_reviews=70,
            distribution={5: 50, "4": 20},
            captured_at=NOW,
        )
    )
    assert snapshot.distribution == {"1": 0, "2": 0, "3": 0, "4": 20, "5": 50}
    assert asyncio.run(storage.snapshots.latest_any(TENANT)) is snapshot


@pytest.mark.parametrize(
    "average, total, distribution",
    [
        (5.2, 10, {}),
        (4.0, -1, {}),
        (4.0, 10, {"6": 1}),
        (4.0, 10, {"5": -3}),
    ],
)
def test_snapshot_validation(storage, average: float, total: int, distribution: dict) -> None:
    service = IngestionService(storage, FakeSideEffects())
    with pytest.raises(ValidationError):
        asyncio.run(
            service.record_snapshot(
                TENANT,
                platform="google",
                average_rating=average,
                total_reviews=total,
                distribution=distribution,
                captured_at=NOW,
            )
        )
