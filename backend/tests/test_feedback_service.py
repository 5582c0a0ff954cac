from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from conftest import NOW, OTHER_TENANT, TENANT, FakeSideEffects
from feedback_engine.errors import Conflict, InvalidTransition, NotFound, ValidationError
from feedback_engine.feedback_service import FeedbackService
from feedback_engine.models import FeedbackStatus
from feedback_engine.sla_engine import SLAState

T0 = NOW - timedelta(hours=2)


def _submit(service: FeedbackService, rating: int, category: str = "Housekeeping", at=T0, tenant_id: str = TENANT):
    return asyncio.run(service.submit(tenant_id, rating=rating, category=category, now=at, guest_name="Ama"))


def test_submit_stores_new_item_and_queues_critical_check_for_low_rating(storage) -> None:
    side_effects = FakeSideEffects()
    service = FeedbackService(storage, side_effects)

    low = _submit(service, 2)
    _submit(service, 5, "Pool")

    assert low.status == FeedbackStatus.NEW.value
    assert low.created_at == T0
    assert low.tenant_id == TENANT
    assert side_effects.critical_checks == [TENANT]


@pytest.mark.parametrize("rating", [0, 6])
def test_submit_rejects_rating_outside_range(storage, rating: int) -> None:
    service = FeedbackService(storage, FakeSideEffects())
    with pytest.raises(ValidationError):
        _submit(service, rating)
    assert storage.feedback.rows == []


def test_transition_persists_and_notifies(storage) -> None:
    side_effects = FakeSideEffects()
    service = FeedbackService(storage, side_effects)
    item = _submit(service, 3)

    acked = asyncio.run(service.transition(TENANT, item.id, "ACKNOWLEDGED", T0 + timedelta(minutes=10)))
    assert acked.status == FeedbackStatus.ACKNOWLEDGED.value
    assert acked.acknowledged_at == T0 + timedelta(minutes=10)

    resolved = asyncio.run(service.transition(TENANT, item.id, FeedbackStatus.RESOLVED, T0 + timedelta(hours=1)))
    assert resolved.resolved_at == T0 + timedelta(hours=1)
    assert [e["kind"] for e in side_effects.events] == ["feedback_acknowledged", "feedback_resolved"]
    assert side_effects.events[1]["from_status"] == "ACKNOWLEDGED"


def test_notification_failure_does_not_fail_transition(storage) -> None:
    service = FeedbackService(storage, FakeSideEffects(fail=True))
    item = _submit(service, 4)
    resolved = asyncio.run(service.transition(TENANT, item.id, "RESOLVED", T0 + timedelta(minutes=5)))
    assert resolved.status == FeedbackStatus.RESOLVED.value


def test_invalid_transition_leaves_item_untouched(storage) -> None:
    service = FeedbackService(storage, FakeSideEffects())
    item = _submit(service, 4)
    asyncio.run(service.transition(TENANT, item.id, "RESOLVED", T0 + timedelta(minutes=5)))
    with pytest.raises(InvalidTransition):
        asyncio.run(service.transition(TENANT, item.id, "ACKNOWLEDGED", T0 + timedelta(minutes=6)))
    assert item.status == FeedbackStatus.RESOLVED.value


def test_transition_is_tenant_scoped(storage) -> None:
    service = FeedbackService(storage, FakeSideEffects())
    item = _submit(service, 4)
    with pytest.raises(NotFound):
        asyncio.run(service.transition(OTHER_TENANT, item.id, "ACKNOWLEDGED", T0 + timedelta(minutes=5)))


def test_concurrent_transition_loses_with_conflict(storage) -> None:
    service = FeedbackService(storage, FakeSideEffects())
    item = _submit(service, 4)

    async def stale(*args, **kwargs):
        return False

    storage.feedback.update_status = stale
    with pytest.raises(Conflict):
        asyncio.run(service.transition(TENANT, item.id, "ACKNOWLEDGED", T0 + timedelta(minutes=5)))
    assert item.status == FeedbackStatus.NEW.value
    assert item.acknowledged_at is None


def test_ranked_queue_skips_resolved_and_orders_by_priority(storage) -> None:
    service = FeedbackService(storage, FakeSideEffects())
    pool = _submit(service, 4, "Pool", at=T0)
    front = _submit(service, 2, "Front Desk", at=T0 + timedelta(minutes=1))
    done = _submit(service, 1, "Housekeeping", at=T0 + timedelta(minutes=2))
    asyncio.run(service.transition(TENANT, done.id, "RESOLVED", T0 + timedelta(minutes=3)))

    queue = asyncio.run(service.ranked_queue(TENANT, NOW))
    assert [item.id for item, _, _ in queue] == [front.id, pool.id]
    assert queue[0][1] == 80 + 15 + 30
    assert queue[0][2].state == SLAState.OVERDUE_ACK


def test_sla_sweep_emits_breaches_with_escalation_level(storage) -> None:
    side_effects = FakeSideEffects()
    service = FeedbackService(storage, side_effects)
    stale_ack = _submit(service, 2, at=NOW - timedelta(hours=1))
    overdue = _submit(service, 3, "Pool", at=NOW - timedelta(hours=30))
    asyncio.run(service.transition(TENANT, overdue.id, "ACKNOWLEDGED", NOW - timedelta(hours=29)))
    _submit(service, 5, "Pool", at=NOW - timedelta(minutes=5))
    side_effects.events.clear()

    events = asyncio.run(service.sla_sweep(TENANT, NOW))
    by_id = {e["feedback_id"]: e for e in events}
    assert set(by_id) == {stale_ack.id, overdue.id}
    assert by_id[stale_ack.id]["escalation_level"] == 1
    assert by_id[stale_ack.id]["sla_state"] == "overdue_ack"
    assert by_id[overdue.id]["escalation_level"] == 2
    assert by_id[overdue.id]["hours_overdue"] == 6.0
    assert all(e["kind"] == "sla_breach" for e in side_effects.events)
    assert len(side_effects.events) == 2
