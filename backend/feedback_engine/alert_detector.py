"""Critical alert detection.

Three independent checks, each of which may add entries to the result:

1. guest complaints: every feedback item or external review rated ≤3 in the
   complaint window, one alert per item;
2. rating drop: the latest snapshot of a platform averages lower than the one
   before it;
3. data freshness: the latest snapshot of a platform is older than the
   allowed age.

Missing data means a check does not fire. An empty list is "all clear".
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Sequence

from feedback_engine.config import settings
from feedback_engine.metrics import ALERT_SIGNALS_TOTAL
from feedback_engine.models import ExternalReview, FeedbackItem, ManagerContact, RatingSnapshot
from feedback_engine.repositories.base import Storage
from feedback_engine.schemas.alerts import (
    SEVERITY_SCORES,
    AlertSignal,
    Contact,
    Severity,
    SignalCategory,
    SignalType,
)

logger = logging.getLogger(__name__)

COMPLAINT_MAX_RATING = 3
CRITICAL_MAX_RATING = 2

COMPLAINT_ACTIONS = [
    "Guest contact recommended within 2 hours",
    "Service recovery opportunity identified",
    "Follow-up documentation suggested",
    "Public review monitoring advised",
]
RATING_DROP_ACTIONS = [
    "Recent feedback pattern analysis recommended",
    "Service improvement opportunities identified",
    "Additional review monitoring suggested",
]
FRESHNESS_ACTIONS = [
    "Check the rating collection job status",
    "Verify connectivity to the review platform",
    "Manual rating check if critical decisions needed",
]


def _contact(manager: ManagerContact) -> Contact:
    return Contact(name=manager.name, title=manager.title, phone=manager.phone, email=manager.email)


def _is_management(manager: ManagerContact) -> bool:
    return manager.department == "Management" or "general manager" in (manager.title or "").lower()


def escalation_contacts(managers: Sequence[ManagerContact]) -> list[Contact]:
    """Primary managers first, then management; falls back to a GM placeholder."""
    picked = [m for m in managers if m.is_primary] + [
        m for m in managers if _is_management(m) and not m.is_primary
    ]
    return [_contact(m) for m in picked] or [Contact(name="General Manager")]


def management_contacts(managers: Sequence[ManagerContact]) -> list[Contact]:
    return [_contact(m) for m in managers if _is_management(m)] or [Contact(name="General Manager")]


def _complaint_signal(
    *,
    rating: int,
    subject: str,
    guest: str | None,
    source: str,
    contacts: list[Contact],
    now: datetime,
    feedback_id: int | None = None,
    review_id: int | None = None,
    platform: str | None = None,
) -> AlertSignal:
    critical = rating <= CRITICAL_MAX_RATING
    severity = Severity.CRITICAL if critical else Severity.HIGH
    return AlertSignal(
        signal_type=SignalType.GUEST_COMPLAINT,
        category=SignalCategory.GUEST_EXPERIENCE,
        severity=severity,
        severity_score=SEVERITY_SCORES[severity],
        title=f"{rating}★ Guest {'Complaint' if critical else 'Concern'} - {subject}",
        summary=(
            f"{guest or 'Anonymous'} left a {rating}-star {source} about {subject}. "
            + ("High risk of a negative public review." if critical else "Service improvement opportunity identified.")
        ),
        guest_impact="High - potential public review risk" if critical else "Medium - service quality concern",
        recommended_actions=list(COMPLAINT_ACTIONS),
        contacts=contacts,
        timeline="Within 2 hours",
        platform=platform,
        feedback_id=feedback_id,
        review_id=review_id,
        detected_at=now,
    )


def guest_complaint_signals(
    feedback: Sequence[FeedbackItem],
    reviews: Sequence[ExternalReview],
    managers: Sequence[ManagerContact],
    now: datetime,
) -> list[AlertSignal]:
    """One signal per low-rated item created inside the window, newest first."""
    since = now - timedelta(hours=settings.COMPLAINT_WINDOW_HOURS)
    contacts = escalation_contacts(managers)

    rows: list[tuple[datetime, int, int, AlertSignal]] = []
    for item in feedback:
        if item.rating > COMPLAINT_MAX_RATING or not since <= item.created_at <= now:
            continue
        signal = _complaint_signal(
            rating=item.rating,
            subject=item.category,
            guest=item.guest_name,
            source="feedback form",
            contacts=contacts,
            now=now,
            feedback_id=item.id,
        )
        rows.append((item.created_at, 0, item.id or 0, signal))
    for review in reviews:
        if review.rating > COMPLAINT_MAX_RATING or not since <= review.created_at <= now:
            continue
        signal = _complaint_signal(
            rating=review.rating,
            subject=f"{review.platform} review",
            guest=review.author,
            source=f"{review.platform} review",
            contacts=contacts,
            now=now,
            review_id=review.id,
            platform=review.platform,
        )
        rows.append((review.created_at, 1, review.id or 0, signal))

    rows.sort(key=lambda r: (-r[0].timestamp(), r[1], r[2]))
    return [r[3] for r in rows]


def rating_drop_signal(
    platform: str,
    snapshots: Sequence[RatingSnapshot],
    managers: Sequence[ManagerContact],
    now: datetime,
) -> AlertSignal | None:
    """``snapshots`` newest first; needs at least two."""
    if len(snapshots) < 2:
        return None
    latest, previous = snapshots[0], snapshots[1]
    if not latest.average_rating < previous.average_rating:
        return None
    delta = round(latest.average_rating - previous.average_rating, 2)
    return AlertSignal(
        signal_type=SignalType.RATING_DROP,
        category=SignalCategory.GUEST_EXPERIENCE,
        severity=Severity.HIGH,
        severity_score=SEVERITY_SCORES[Severity.HIGH],
        title=f"{platform} Rating Drop Detected",
        summary=(
            f"Rating decreased from {previous.average_rating}★ to {latest.average_rating}★ "
            f"({delta:+.2f})"
        ),
        guest_impact="Medium - reputation impact",
        recommended_actions=list(RATING_DROP_ACTIONS),
        contacts=management_contacts(managers),
        timeline="Within 4 hours",
        platform=platform,
        snapshot_id=latest.id,
        detected_at=now,
    )


def freshness_signal(
    platform: str,
    snapshots: Sequence[RatingSnapshot],
    now: datetime,
) -> AlertSignal | None:
    """``snapshots`` newest first; needs at least one."""
    if not snapshots:
        return None
    latest = snapshots[0]
    age_h = (now - latest.captured_at).total_seconds() / 3600
    if age_h <= settings.DATA_FRESHNESS_MAX_HOURS:
        return None
    support = settings.TECH_SUPPORT_CONTACT
    return AlertSignal(
        signal_type=SignalType.DATA_FRESHNESS,
        category=SignalCategory.INSTRUMENTATION,
        severity=Severity.MEDIUM,
        severity_score=SEVERITY_SCORES[Severity.MEDIUM],
        title=f"{platform} Data Freshness Alert",
        summary=(
            f"Rating data is {round(age_h)} hours old "
            f"(limit {settings.DATA_FRESHNESS_MAX_HOURS}h)"
        ),
        guest_impact="Low - monitoring delay only",
        recommended_actions=list(FRESHNESS_ACTIONS),
        contacts=[Contact(name=support.get("name", "Technical Support"), phone=support.get("phone") or None)],
        timeline="Within 24 hours",
        platform=platform,
        snapshot_id=latest.id,
        detected_at=now,
    )


class CriticalAlertDetector:
    def __init__(self, storage: Storage):
        self.storage = storage

    async def detect(self, tenant_id: str, now: datetime) -> list[AlertSignal]:
        since = now - timedelta(hours=settings.COMPLAINT_WINDOW_HOURS)
        feedback = await self.storage.feedback.list_created_since(
            tenant_id, since, max_rating=COMPLAINT_MAX_RATING
        )
        reviews = await self.storage.reviews.list_created_since(
            tenant_id, since, max_rating=COMPLAINT_MAX_RATING
        )
        managers = await self.storage.managers.list_active(tenant_id)

        complaints = guest_complaint_signals(feedback, reviews, managers, now)
        drops: list[AlertSignal] = []
        stale: list[AlertSignal] = []
        for platform in await self.storage.snapshots.platforms(tenant_id):
            snapshots = await self.storage.snapshots.latest(tenant_id, platform, limit=2)
            drop = rating_drop_signal(platform, snapshots, managers, now)
            if drop:
                drops.append(drop)
            fresh = freshness_signal(platform, snapshots, now)
            if fresh:
                stale.append(fresh)

        signals = complaints + drops + stale
        for signal in signals:
            ALERT_SIGNALS_TOTAL.labels(
                signal_type=signal.signal_type.value,
                severity=signal.severity.value,
            ).inc()
        logger.info(
            "Critical check for tenant %s: %s complaints, %s drops, %s stale feeds",
            tenant_id,
            len(complaints),
            len(drops),
            len(stale),
        )
        return signals
