"""Rule-based risk score for a drafted reply.

A review that threatens legal action, reports an injury or tries to steer the
drafting model should not be answered on autopilot. Each matching factor adds
its points; the total is capped at 100 and banded into HIGH/MEDIUM/LOW.
"""
from __future__ import annotations

import enum
import re
from typing import Sequence

from pydantic import BaseModel, Field

MAX_RISK_SCORE = 100
HIGH_RISK_MIN_SCORE = 30
MEDIUM_RISK_MIN_SCORE = 15
APPROVAL_MIN_FACTORS = 2
LOW_RISK_EXPLANATION = "Routine service complaint - low risk for automated response."


class RiskLevel(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class RiskFactor(BaseModel):
    name: str
    points: int
    explanation: str
    keywords: tuple[str, ...]
    # Also scanned in the drafted reply, where leaked instructions would surface.
    check_response: bool = False


RISK_FACTORS: tuple[RiskFactor, ...] = (
    RiskFactor(
        name="Legal threat detected",
        points=30,
        explanation="Guest has made explicit legal threats.",
        keywords=(
            "lawsuit", "sue", "sued", "suing", "lawyer", "attorney", "legal action",
            "discrimination", "harassment", "civil rights", "ada violation",
            "health department", "regulatory", "compliance violation",
        ),
    ),
    RiskFactor(
        name="Health/safety critical issue",
        points=25,
        explanation="Serious health or safety issue requiring medical attention.",
        keywords=(
            "food poisoning", "hospital", "emergency room", "medical treatment", "ambulance",
            "injury", "injured", "hurt", "fire hazard", "gas leak", "electrical",
            "structural damage", "ceiling fell", "balcony collapse",
        ),
    ),
    RiskFactor(
        name="Serious staff misconduct",
        points=20,
        explanation="Serious staff misconduct allegations detected.",
        keywords=(
            "theft", "stealing", "stole", "drunk", "intoxicated", "drugs", "fight",
            "assault", "hit me", "pushed me", "threatened", "shared my information",
            "privacy breach", "bribery", "corruption",
        ),
    ),
    RiskFactor(
        name="Media/reputation threat",
        points=15,
        explanation="Media involvement or viral threat mentioned.",
        keywords=(
            "viral", "social media", "facebook", "twitter", "instagram", "tiktok", "news",
            "reporter", "journalist", "boycott", "influencer", "followers", "expose",
            "blast", "shame",
        ),
    ),
    RiskFactor(
        name="System bypass attempt",
        points=50,
        explanation="Potential AI manipulation or system bypass detected.",
        keywords=(
            "ignore previous", "system prompt", "admin", "root", "sudo", "execute",
            "command", "script", "function", "override", "bypass", "hack", "inject",
        ),
        check_response=True,
    ),
    RiskFactor(
        name="Security incident",
        points=25,
        explanation="Security incident involving theft, assault, or unauthorized access.",
        keywords=(
            "assault", "attacked", "robbed", "stolen", "theft", "unauthorized access",
            "broke into", "violence", "weapon", "gun", "knife", "threatened", "stalked",
        ),
    ),
)


class RiskAssessment(BaseModel):
    score: int = Field(ge=0, le=MAX_RISK_SCORE)
    level: RiskLevel
    requires_approval: bool
    factors: list[str] = Field(default_factory=list)
    explanation: str


def risk_level(score: int) -> RiskLevel:
    if score >= HIGH_RISK_MIN_SCORE:
        return RiskLevel.HIGH
    if score >= MEDIUM_RISK_MIN_SCORE:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


class KeywordRiskAssessor:
    """Whole-word, case-insensitive keyword groups; one hit per factor."""

    def __init__(self, factors: Sequence[RiskFactor] = RISK_FACTORS):
        self._rules = [
            (factor, re.compile(r"\b(?:" + "|".join(re.escape(k) for k in factor.keywords) + r")\b", re.IGNORECASE))
            for factor in factors
        ]

    def assess(self, review_text: str, response_text: str = "") -> RiskAssessment:
        review = review_text or ""
        response = response_text or ""
        matched = [
            factor
            for factor, pattern in self._rules
            if pattern.search(review) or (factor.check_response and pattern.search(response))
        ]
        score = min(MAX_RISK_SCORE, sum(f.points for f in matched))
        return RiskAssessment(
            score=score,
            level=risk_level(score),
            requires_approval=score >= HIGH_RISK_MIN_SCORE or len(matched) >= APPROVAL_MIN_FACTORS,
            factors=[f.name for f in matched],
            explanation=" ".join(f.explanation for f in matched) or LOW_RISK_EXPLANATION,
        )


_default_assessor = KeywordRiskAssessor()


def assess_response_risk(review_text: str, response_text: str = "") -> RiskAssessment:
    return _default_assessor.assess(review_text, response_text)
