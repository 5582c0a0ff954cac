from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import NOW, make_feedback
from feedback_engine.errors import InvalidTransition, ValidationError
from feedback_engine.models import FeedbackStatus
from feedback_engine.sla_engine import (
    SLAState,
    Urgency,
    classify_sla,
    compute_priority,
    rank_by_priority,
    transition,
    validate_rating,
)

T0 = NOW - timedelta(days=1)


def test_unacknowledged_item_is_not_critical_at_29_minutes() -> None:
    item = make_feedback(rating=4, category="Pool", created_at=T0)
    sla = classify_sla(item, T0 + timedelta(minutes=29))
    assert sla.urgency != Urgency.CRITICAL
    assert sla.state == SLAState.ON_TIME


def test_unacknowledged_item_is_overdue_ack_at_31_minutes() -> None:
    item = make_feedback(rating=4, category="Pool", created_at=T0)
    sla = classify_sla(item, T0 + timedelta(minutes=31))
    assert sla.state == SLAState.OVERDUE_ACK
    assert sla.urgency == Urgency.CRITICAL
    assert sla.hours_remaining < 0
    assert sla.display_remaining() == "Overdue"


def test_ack_breach_scenario_scores_at_least_125() -> None:
    item = make_feedback(rating=2, category="Housekeeping", created_at=T0)
    now = T0 + timedelta(minutes=45)
    sla = classify_sla(item, now)
    assert (sla.state, sla.urgency) == (SLAState.OVERDUE_ACK, Urgency.CRITICAL)
    assert compute_priority(item, now) >= 125


def test_acknowledged_item_moves_to_warning_then_overdue_resolve() -> None:
    item = make_feedback(
        rating=3,
        created_at=T0,
        status=FeedbackStatus.ACKNOWLEDGED,
        acknowledged_at=T0 + timedelta(minutes=5),
    )
    assert classify_sla(item, T0 + timedelta(hours=10)).state == SLAState.ON_TIME
    warning = classify_sla(item, T0 + timedelta(hours=20))
    assert (warning.state, warning.urgency) == (SLAState.WARNING, Urgency.HIGH)
    assert warning.display_remaining() == "4.0h left"
    overdue = classify_sla(item, T0 + timedelta(hours=25))
    assert (overdue.state, overdue.urgency) == (SLAState.OVERDUE_RESOLVE, Urgency.CRITICAL)


def test_resolved_item_has_no_urgency() -> None:
    item = make_feedback(
        rating=1,
        created_at=T0,
        status=FeedbackStatus.RESOLVED,
        acknowledged_at=T0,
        resolved_at=T0,
    )
    sla = classify_sla(item, T0 + timedelta(days=3))
    assert sla.state == SLAState.RESOLVED
    assert sla.urgency == Urgency.NONE
    assert sla.display_remaining() == "Resolved"


def test_low_rating_high_impact_critical_outscores_five_star() -> None:
    now = T0 + timedelta(hours=2)
    worst = make_feedback(rating=1, category="Room Service", created_at=T0)
    best = make_feedback(rating=5, category="Pool", created_at=now)
    assert compute_priority(worst, now) == 100 + 15 + 30
    assert compute_priority(worst, now) > compute_priority(best, now)


def test_ranking_keeps_creation_order_on_ties() -> None:
    now = T0 + timedelta(minutes=10)
    first = make_feedback(rating=3, category="Pool", created_at=T0, feedback_id=1)
    second = make_feedback(rating=3, category="Pool", created_at=T0 + timedelta(minutes=1), feedback_id=2)
    urgent = make_feedback(rating=1, category="Front Desk", created_at=T0 + timedelta(minutes=2), feedback_id=3)
    ranked = rank_by_priority([second, urgent, first], now)
    assert [item.id for item, _ in ranked] == [3, 1, 2]


def test_transition_acknowledge_then_resolve_sets_timestamps() -> None:
    item = make_feedback(rating=2, created_at=T0)
    transition(item, FeedbackStatus.ACKNOWLEDGED, T0 + timedelta(minutes=10))
    assert item.status == FeedbackStatus.ACKNOWLEDGED
    assert item.acknowledged_at == T0 + timedelta(minutes=10)
    assert item.resolved_at is None

    transition(item, "RESOLVED", T0 + timedelta(hours=2))
    assert item.status == FeedbackStatus.RESOLVED
    assert item.resolved_at == T0 + timedelta(hours=2)
    assert item.acknowledged_at <= item.resolved_at


def test_direct_resolution_also_stamps_acknowledged_at() -> None:
    item = make_feedback(rating=4, created_at=T0)
    transition(item, FeedbackStatus.RESOLVED, T0 + timedelta(hours=1))
    assert item.acknowledged_at == item.resolved_at == T0 + timedelta(hours=1)


@pytest.mark.parametrize(
    "start, target",
    [
        (FeedbackStatus.ACKNOWLEDGED, FeedbackStatus.NEW),
        (FeedbackStatus.RESOLVED, FeedbackStatus.ACKNOWLEDGED),
        (FeedbackStatus.NEW, FeedbackStatus.NEW),
    ],
)
def test_illegal_edges_raise_invalid_transition(start: FeedbackStatus, target: FeedbackStatus) -> None:
    item = make_feedback(rating=3, created_at=T0, status=start, acknowledged_at=T0, resolved_at=None)
    with pytest.raises(InvalidTransition):
        transition(item, target, T0 + timedelta(hours=1))


def test_unknown_target_status_is_invalid_transition() -> None:
    item = make_feedback(rating=3, created_at=T0)
    with pytest.raises(InvalidTransition):
        transition(item, "ARCHIVED", T0 + timedelta(hours=1))


def test_transition_before_creation_is_rejected() -> None:
    item = make_feedback(rating=3, created_at=T0)
    with pytest.raises(ValidationError):
        transition(item, FeedbackStatus.ACKNOWLEDGED, T0 - timedelta(minutes=1))


@pytest.mark.parametrize("rating", [0, 6, True, 3.5, "4", None])
def test_validate_rating_rejects_out_of_range_and_non_int(rating: object) -> None:
    with pytest.raises(ValidationError):
        validate_rating(rating)
