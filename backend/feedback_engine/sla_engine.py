"""SLA classification, priority scoring and feedback workflow transitions.

Pure functions over ``FeedbackItem`` rows and an explicit ``now``; nothing here
touches storage. Persistence of transitions lives in ``feedback_service``.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from feedback_engine.config import settings
from feedback_engine.errors import InvalidTransition, ValidationError
from feedback_engine.models.feedback import FeedbackItem, FeedbackStatus

logger = logging.getLogger(__name__)


class SLAState(str, enum.Enum):
    RESOLVED = "resolved"
    OVERDUE_ACK = "overdue_ack"
    OVERDUE_RESOLVE = "overdue_resolve"
    WARNING = "warning"
    ON_TIME = "on_time"


class Urgency(str, enum.Enum):
    NONE = "none"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


URGENCY_POINTS = {
    Urgency.CRITICAL: 30,
    Urgency.HIGH: 15,
}
HIGH_IMPACT_POINTS = 15

ALLOWED_TRANSITIONS: dict[FeedbackStatus, frozenset[FeedbackStatus]] = {
    FeedbackStatus.NEW: frozenset({FeedbackStatus.ACKNOWLEDGED, FeedbackStatus.RESOLVED}),
    FeedbackStatus.ACKNOWLEDGED: frozenset({FeedbackStatus.RESOLVED}),
    FeedbackStatus.RESOLVED: frozenset(),
}


@dataclass(frozen=True)
class SLAClassification:
    state: SLAState
    urgency: Urgency
    hours_remaining: float

    @property
    def is_overdue(self) -> bool:
        return self.state in (SLAState.OVERDUE_ACK, SLAState.OVERDUE_RESOLVE)

    def display_remaining(self) -> str:
        if self.state == SLAState.RESOLVED:
            return "Resolved"
        if self.hours_remaining <= 0:
            return "Overdue"
        return f"{self.hours_remaining:.1f}h left"

    def as_dict(self) -> dict[str, object]:
        return {
            "state": self.state.value,
            "urgency": self.urgency.value,
            "hours_remaining": round(self.hours_remaining, 2),
            "display": self.display_remaining(),
        }


def status_name(value: FeedbackStatus | str) -> str:
    if isinstance(value, FeedbackStatus):
        return value.value
    raw = str(value)
    if raw.startswith("FeedbackStatus."):
        return raw.split(".", 1)[1]
    return raw


def validate_rating(rating: object) -> int:
    """Ratings are integers 1..5; bool is rejected even though it is an int."""
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError(f"rating must be an integer between 1 and 5, got {rating!r}", rating=rating)
    return rating


def classify_sla(item: FeedbackItem, now: datetime) -> SLAClassification:
    """Classify an item against the acknowledge and resolve deadlines.

    ``hours_remaining`` goes negative once a deadline has passed.
    """
    if status_name(item.status) == FeedbackStatus.RESOLVED.value:
        return SLAClassification(SLAState.RESOLVED, Urgency.NONE, 0.0)

    elapsed_h = (now - item.created_at).total_seconds() / 3600
    ack_sla_h = settings.SLA_ACK_MINUTES / 60
    resolve_sla_h = float(settings.SLA_RESOLVE_HOURS)

    if item.acknowledged_at is None and elapsed_h > ack_sla_h:
        return SLAClassification(SLAState.OVERDUE_ACK, Urgency.CRITICAL, ack_sla_h - elapsed_h)
    if elapsed_h > resolve_sla_h:
        return SLAClassification(SLAState.OVERDUE_RESOLVE, Urgency.CRITICAL, resolve_sla_h - elapsed_h)
    if elapsed_h > resolve_sla_h * settings.SLA_WARNING_RATIO:
        return SLAClassification(SLAState.WARNING, Urgency.HIGH, resolve_sla_h - elapsed_h)
    return SLAClassification(SLAState.ON_TIME, Urgency.NORMAL, resolve_sla_h - elapsed_h)


def compute_priority(
    item: FeedbackItem,
    now: datetime,
    *,
    high_impact_categories: Iterable[str] | None = None,
) -> int:
    """Rank score: low rating, high-impact category and SLA urgency all add."""
    rating = validate_rating(item.rating)
    categories = set(
        settings.HIGH_IMPACT_CATEGORIES if high_impact_categories is None else high_impact_categories
    )

    score = (6 - rating) * 20
    if item.category in categories:
        score += HIGH_IMPACT_POINTS
    score += URGENCY_POINTS.get(classify_sla(item, now).urgency, 0)
    return score


def rank_by_priority(
    items: Sequence[FeedbackItem],
    now: datetime,
    *,
    high_impact_categories: Iterable[str] | None = None,
) -> list[tuple[FeedbackItem, int]]:
    """Highest score first; equal scores keep creation order."""
    by_creation = sorted(items, key=lambda i: (i.created_at, i.id or 0))
    scored = [
        (item, compute_priority(item, now, high_impact_categories=high_impact_categories))
        for item in by_creation
    ]
    # sorted() is stable, so ties stay in creation order.
    return sorted(scored, key=lambda pair: -pair[1])


def transition(item: FeedbackItem, target: FeedbackStatus | str, now: datetime) -> FeedbackItem:
    """Advance ``item`` to ``target`` in place and return it.

    Allowed edges: NEW→ACKNOWLEDGED, ACKNOWLEDGED→RESOLVED, NEW→RESOLVED.
    A direct NEW→RESOLVED also stamps ``acknowledged_at``.
    """
    current = FeedbackStatus(status_name(item.status))
    try:
        wanted = FeedbackStatus(status_name(target))
    except ValueError:
        raise InvalidTransition(f"unknown feedback status {target!r}", target=str(target))

    if wanted not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(
            f"feedback {item.id} cannot move from {current.value} to {wanted.value}",
            from_status=current.value,
            to_status=wanted.value,
        )

    floor = item.acknowledged_at or item.created_at
    if floor is not None and now < floor:
        raise ValidationError(
            f"transition time {now.isoformat()} precedes {floor.isoformat()}",
            feedback_id=item.id,
        )

    if wanted == FeedbackStatus.ACKNOWLEDGED:
        item.acknowledged_at = now
    elif wanted == FeedbackStatus.RESOLVED:
        if item.acknowledged_at is None:
            item.acknowledged_at = now
        item.resolved_at = now
    item.status = wanted
    item.updated_at = now
    logger.debug("Feedback %s %s -> %s", item.id, current.value, wanted.value)
    return item


def ack_deadline(item: FeedbackItem) -> datetime:
    return item.created_at + timedelta(minutes=settings.SLA_ACK_MINUTES)


def resolve_deadline(item: FeedbackItem) -> datetime:
    return item.created_at + timedelta(hours=settings.SLA_RESOLVE_HOURS)
