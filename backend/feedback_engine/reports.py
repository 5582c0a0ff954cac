"""Digest synthesis: morning briefing, weekly scorecard and critical alert.

The builders are pure functions over already-loaded rows and an explicit
``now``; ``ReportSynthesizer`` only loads the rows. Same data and same ``now``
give the same payload.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Mapping, Sequence

from feedback_engine.alert_detector import CriticalAlertDetector
from feedback_engine.config import settings
from feedback_engine.errors import NotFound, ValidationError
from feedback_engine.metrics import REPORTS_TOTAL
from feedback_engine.models import FeedbackItem, ManagerContact, RatingSnapshot
from feedback_engine.repositories.base import Storage
from feedback_engine.schemas.alerts import AlertSignal
from feedback_engine.schemas.reports import (
    AttentionItem,
    CriticalReport,
    DepartmentScore,
    DepartmentStatus,
    MorningReport,
    PriorityAction,
    ReportPayload,
    ReportType,
    SnapshotSummary,
    WeeklyReport,
    Win,
)
from feedback_engine.scoring.recovery import compute_recovery_plan
from feedback_engine.sla_engine import Urgency, classify_sla, rank_by_priority

logger = logging.getLogger(__name__)

LOW_RATING_MAX = 3
GOOD_THRESHOLD = 4.0
WARNING_THRESHOLD = 3.5
TOP_PRIORITY_ACTIONS = 3
TOP_ATTENTION_ITEMS = 2
MAX_WINS = 2
EXCERPT_CHARS = 100

FOCUS_SIZE = 3
FOCUS_DEFAULTS = (
    "Follow up on yesterday's guest feedback responses",
    "Review housekeeping quality scores with department head",
    "Walk the floor with the duty manager before noon",
)
OPERATIONAL_WIN = Win(
    kind="operational",
    title="Consistent Service Delivery",
    description="No five-star feedback this week; keep service standards steady to earn it",
)


def _in_window(items: Sequence[FeedbackItem], since: datetime, now: datetime) -> list[FeedbackItem]:
    return [i for i in items if since <= i.created_at <= now]


def low_rating_counts(items: Sequence[FeedbackItem]) -> list[tuple[str, int]]:
    """Categories of ≤3★ items by frequency, ties by name."""
    counts = Counter(i.category for i in items if i.rating <= LOW_RATING_MAX)
    return sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))


def todays_focus(week_items: Sequence[FeedbackItem]) -> list[str]:
    focus: list[str] = []
    ranked = low_rating_counts(week_items)
    if ranked:
        category, count = ranked[0]
        focus.append(f"Monitor {category} - {count} recent issues")
    focus.extend(FOCUS_DEFAULTS)
    return focus[:FOCUS_SIZE]


def snapshot_summary(snapshot: RatingSnapshot | None) -> SnapshotSummary | None:
    if snapshot is None:
        return None
    return SnapshotSummary(
        platform=snapshot.platform,
        average_rating=snapshot.average_rating,
        total_reviews=snapshot.total_reviews,
        captured_at=snapshot.captured_at,
    )


def build_morning_report(
    tenant_id: str,
    tenant_name: str,
    now: datetime,
    *,
    recent: Sequence[FeedbackItem],
    week: Sequence[FeedbackItem],
    open_items: Sequence[FeedbackItem],
    snapshot: RatingSnapshot | None,
) -> MorningReport:
    last_24h = _in_window(recent, now - timedelta(hours=24), now)
    urgent = [
        i for i in last_24h if classify_sla(i, now).urgency in (Urgency.CRITICAL, Urgency.HIGH)
    ]

    actions: list[PriorityAction] = []
    for item, score in rank_by_priority(open_items, now)[:TOP_PRIORITY_ACTIONS]:
        sla = classify_sla(item, now)
        actions.append(
            PriorityAction(
                feedback_id=item.id,
                rating=item.rating,
                category=item.category,
                guest_name=item.guest_name,
                priority_score=score,
                sla_state=sla.state.value,
                sla_display=sla.display_remaining(),
                description=f"{item.rating}★ {item.category} issue - {item.guest_name or 'Anonymous Guest'}",
            )
        )

    plan = None
    if snapshot is not None:
        plan = compute_recovery_plan(snapshot.distribution, snapshot.total_reviews)

    return MorningReport(
        tenant_id=tenant_id,
        tenant_name=tenant_name,
        generated_at=now,
        new_feedback_count=len(last_24h),
        urgent_count=len(urgent),
        current_rating=snapshot_summary(snapshot),
        priority_actions=actions,
        recovery_plan=plan,
        focus=todays_focus(_in_window(week, now - timedelta(days=7), now)),
    )


def category_matches(category: str, mapped: str) -> bool:
    """Exact or whole-word prefix match; "Room Service" never matches "Service"."""
    cat = category.lower().strip()
    ref = mapped.lower().strip()
    return cat == ref or cat.startswith(ref + " ") or ref.startswith(cat + " ")


def department_status(average: float | None) -> DepartmentStatus:
    if average is None:
        return DepartmentStatus.NO_DATA
    if average >= GOOD_THRESHOLD:
        return DepartmentStatus.GOOD
    if average >= WARNING_THRESHOLD:
        return DepartmentStatus.WARNING
    return DepartmentStatus.POOR


def department_scores(
    items: Sequence[FeedbackItem],
    departments: Mapping[str, Sequence[str]],
    managers: Sequence[ManagerContact] = (),
) -> list[DepartmentScore]:
    by_department: dict[str, ManagerContact] = {}
    for manager in managers:
        by_department.setdefault(manager.department or "", manager)

    scores: list[DepartmentScore] = []
    for name, categories in departments.items():
        matched = [i for i in items if any(category_matches(i.category, c) for c in categories)]
        average = round(sum(i.rating for i in matched) / len(matched), 2) if matched else None
        manager = by_department.get(name)
        scores.append(
            DepartmentScore(
                name=name,
                manager=manager.name if manager else None,
                phone=manager.phone if manager else None,
                average_rating=average,
                feedback_count=len(matched),
                issue_count=sum(1 for i in matched if i.rating <= LOW_RATING_MAX),
                status=department_status(average),
            )
        )
    return scores


def attention_items(items: Sequence[FeedbackItem]) -> list[AttentionItem]:
    return [
        AttentionItem(
            category=category,
            count=count,
            priority="high" if count > 2 else "medium",
            title=f"{category} Concerns",
            description=f"{count} guest complaints this week - pattern analysis needed",
        )
        for category, count in low_rating_counts(items)[:TOP_ATTENTION_ITEMS]
    ]


def _excerpt(text: str) -> str:
    text = " ".join(text.split())
    return text if len(text) <= EXCERPT_CHARS else text[:EXCERPT_CHARS].rstrip() + "..."


def weekly_wins(items: Sequence[FeedbackItem]) -> list[Win]:
    praise = sorted(
        (i for i in items if i.rating == 5 and (i.comment or "").strip()),
        key=lambda i: (-i.created_at.timestamp(), i.id or 0),
    )
    wins = [
        Win(
            kind="guest_praise",
            title=f"5★ Guest Praise - {i.category}",
            description=f'"{_excerpt(i.comment or "")}" - {i.guest_name or "Anonymous Guest"}',
        )
        for i in praise[:MAX_WINS]
    ]
    return wins or [OPERATIONAL_WIN]


def build_weekly_report(
    tenant_id: str,
    tenant_name: str,
    now: datetime,
    *,
    week: Sequence[FeedbackItem],
    managers: Sequence[ManagerContact] = (),
    departments: Mapping[str, Sequence[str]] | None = None,
) -> WeeklyReport:
    since = now - timedelta(days=7)
    items = _in_window(week, since, now)
    average = round(sum(i.rating for i in items) / len(items), 2) if items else None
    return WeeklyReport(
        tenant_id=tenant_id,
        tenant_name=tenant_name,
        generated_at=now,
        period_start=since,
        feedback_count=len(items),
        average_rating=average,
        departments=department_scores(
            items, settings.CATEGORY_DEPARTMENTS if departments is None else departments, managers
        ),
        attention=attention_items(items),
        wins=weekly_wins(items),
    )


def build_critical_report(
    tenant_id: str, tenant_name: str, now: datetime, signals: Sequence[AlertSignal]
) -> CriticalReport:
    return CriticalReport(
        tenant_id=tenant_id,
        tenant_name=tenant_name,
        generated_at=now,
        all_clear=not signals,
        max_severity=max((s.severity_score for s in signals), default=0),
        signals=list(signals),
    )


class ReportSynthesizer:
    def __init__(self, storage: Storage):
        self.storage = storage

    async def synthesize(self, report_type: ReportType | str, tenant_id: str, now: datetime) -> ReportPayload:
        try:
            kind = ReportType(report_type)
        except ValueError:
            raise ValidationError(f"unknown report type {report_type!r}", report_type=str(report_type))

        tenant = await self.storage.tenants.get(tenant_id)
        if tenant is None:
            raise NotFound(f"tenant {tenant_id} not found", tenant_id=tenant_id)

        week_start = now - timedelta(days=7)
        report: ReportPayload
        if kind == ReportType.MORNING:
            week = await self.storage.feedback.list_created_since(tenant_id, week_start)
            report = build_morning_report(
                tenant_id,
                tenant.name,
                now,
                recent=week,
                week=week,
                open_items=await self.storage.feedback.list_open(tenant_id),
                snapshot=await self.storage.snapshots.latest_any(tenant_id),
            )
        elif kind == ReportType.WEEKLY:
            report = build_weekly_report(
                tenant_id,
                tenant.name,
                now,
                week=await self.storage.feedback.list_created_since(tenant_id, week_start),
                managers=await self.storage.managers.list_active(tenant_id),
            )
        else:
            signals = await CriticalAlertDetector(self.storage).detect(tenant_id, now)
            report = build_critical_report(tenant_id, tenant.name, now, signals)

        REPORTS_TOTAL.labels(report_type=kind.value).inc()
        logger.info("Synthesized %s report for tenant %s", kind.value, tenant_id)
        return report
