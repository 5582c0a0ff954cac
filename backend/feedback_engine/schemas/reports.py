"""Report payloads handed to the rendering collaborator."""
from __future__ import annotations

import enum
from datetime import datetime
from typing import Literal, Union

from pydantic import BaseModel, Field

from feedback_engine.schemas.alerts import AlertSignal
from feedback_engine.scoring.recovery import RecoveryPlan


class ReportType(str, enum.Enum):
    MORNING = "morning"
    WEEKLY = "weekly"
    CRITICAL = "critical"


class DepartmentStatus(str, enum.Enum):
    GOOD = "good"
    WARNING = "warning"
    POOR = "poor"
    NO_DATA = "no_data"


class SnapshotSummary(BaseModel):
    platform: str
    average_rating: float
    total_reviews: int
    captured_at: datetime


class PriorityAction(BaseModel):
    feedback_id: int | None
    rating: int
    category: str
    guest_name: str | None = None
    priority_score: int
    sla_state: str
    sla_display: str
    description: str


class DepartmentScore(BaseModel):
    name: str
    manager: str | None = None
    phone: str | None = None
    average_rating: float | None = None
    feedback_count: int = 0
    issue_count: int = 0
    status: DepartmentStatus = DepartmentStatus.NO_DATA


class AttentionItem(BaseModel):
    category: str
    count: int
    priority: Literal["high", "medium"]
    title: str
    description: str


class Win(BaseModel):
    kind: Literal["guest_praise", "operational"]
    title: str
    description: str


class MorningReport(BaseModel):
    report_type: Literal["morning"] = "morning"
    tenant_id: str
    tenant_name: str
    generated_at: datetime
    new_feedback_count: int
    urgent_count: int
    current_rating: SnapshotSummary | None = None
    priority_actions: list[PriorityAction] = Field(default_factory=list)
    recovery_plan: RecoveryPlan | None = None
    focus: list[str] = Field(default_factory=list)


class WeeklyReport(BaseModel):
    report_type: Literal["weekly"] = "weekly"
    tenant_id: str
    tenant_name: str
    generated_at: datetime
    period_start: datetime
    feedback_count: int
    average_rating: float | None = None
    departments: list[DepartmentScore] = Field(default_factory=list)
    attention: list[AttentionItem] = Field(default_factory=list)
    wins: list[Win] = Field(default_factory=list)


class CriticalReport(BaseModel):
    """``all_clear`` with no signals when the detector found nothing."""

    report_type: Literal["critical"] = "critical"
    tenant_id: str
    tenant_name: str
    generated_at: datetime
    all_clear: bool
    max_severity: int = 0
    signals: list[AlertSignal] = Field(default_factory=list)


ReportPayload = Union[MorningReport, WeeklyReport, CriticalReport]
