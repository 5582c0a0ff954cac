"""Alert payloads produced by the critical alert detector."""
from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, Field


class SignalType(str, enum.Enum):
    GUEST_COMPLAINT = "guest_complaint"
    RATING_DROP = "rating_drop"
    DATA_FRESHNESS = "data_freshness"


class SignalCategory(str, enum.Enum):
    """Guest-facing problems versus health of the rating feed itself."""

    GUEST_EXPERIENCE = "guest_experience"
    INSTRUMENTATION = "instrumentation"


class Severity(str, enum.Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


SEVERITY_SCORES = {
    Severity.CRITICAL: 9,
    Severity.HIGH: 7,
    Severity.MEDIUM: 5,
}


class Contact(BaseModel):
    name: str
    title: str | None = None
    phone: str | None = None
    email: str | None = None


class AlertSignal(BaseModel):
    signal_type: SignalType
    category: SignalCategory
    severity: Severity
    severity_score: int = Field(ge=1, le=10)
    title: str
    summary: str
    guest_impact: str
    recommended_actions: list[str] = Field(default_factory=list)
    contacts: list[Contact] = Field(default_factory=list)
    timeline: str
    platform: str | None = None
    feedback_id: int | None = None
    review_id: int | None = None
    snapshot_id: int | None = None
    detected_at: datetime

    def dedupe_key(self) -> str:
        ref = self.feedback_id or self.review_id or self.snapshot_id or ""
        return f"{self.signal_type.value}:{self.platform or ''}:{ref}"
