"""Rating recovery planning.

Works out how far a platform's rating distribution is from a target average
and how to close the gap: first by winning back existing sub-5★ reviewers
(capped per star level), then by new 5★ reviews for whatever is left.
"""
from __future__ import annotations

import math
from typing import Mapping

from pydantic import BaseModel, Field

from feedback_engine.config import settings
from feedback_engine.errors import ValidationError

STAR_LEVELS = (5, 4, 3, 2, 1)
CONVERTIBLE_LEVELS = (4, 3, 2, 1)

# Guard against float noise such as 4.3 * 139 = 597.6999999.
_PRECISION = 6


class Conversion(BaseModel):
    from_stars: int
    available: int
    cap: int
    proposed: int
    points_per_review: int
    points: int


class RecoveryPlan(BaseModel):
    target_average: float
    total_reviews: int
    current_average: float
    current_points: float
    target_points: float
    points_needed: float
    conversions: list[Conversion] = Field(default_factory=list)
    conversion_points: float = 0.0
    remaining_points_needed: float = 0.0
    additional_five_star_reviews_needed: int = 0

    @property
    def is_noop(self) -> bool:
        return self.points_needed == 0 and self.additional_five_star_reviews_needed == 0

    @property
    def total_conversions(self) -> int:
        return sum(c.proposed for c in self.conversions)


def normalize_distribution(distribution: Mapping[object, object]) -> dict[int, int]:
    """Accept ``{5: 59}`` or ``{"5": 59}`` and return int→int for 1..5."""
    out = {stars: 0 for stars in STAR_LEVELS}
    for key, count in (distribution or {}).items():
        try:
            stars = int(key)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            raise ValidationError(f"distribution key {key!r} is not a star value")
        if stars not in out:
            raise ValidationError(f"distribution key {key!r} outside 1..5")
        value = int(count or 0)  # type: ignore[arg-type]
        if value < 0:
            raise ValidationError(f"negative count for {stars} stars")
        out[stars] = value
    return out


def compute_recovery_plan(
    distribution: Mapping[object, object],
    total_reviews: int,
    target_average: float | None = None,
    *,
    conversion_caps: Mapping[int, int] | None = None,
) -> RecoveryPlan:
    target = float(settings.RECOVERY_TARGET_AVERAGE if target_average is None else target_average)
    if not 1.0 <= target <= 5.0:
        raise ValidationError(f"target average {target} outside 1..5")
    if total_reviews < 0:
        raise ValidationError("total_reviews cannot be negative")

    caps = {int(k): int(v) for k, v in (conversion_caps or settings.RECOVERY_CONVERSION_CAPS).items()}
    counts = normalize_distribution(distribution)

    current_points = float(sum(stars * counts[stars] for stars in STAR_LEVELS))
    target_points = round(target * total_reviews, _PRECISION)

    if total_reviews == 0:
        return RecoveryPlan(
            target_average=target,
            total_reviews=0,
            current_average=0.0,
            current_points=current_points,
            target_points=target_points,
            points_needed=target_points,
            remaining_points_needed=target_points,
            additional_five_star_reviews_needed=math.ceil(target_points / 5),
        )

    current_average = round(current_points / total_reviews, 2)
    points_needed = max(0.0, round(target_points - current_points, _PRECISION))
    if points_needed == 0:
        return RecoveryPlan(
            target_average=target,
            total_reviews=total_reviews,
            current_average=current_average,
            current_points=current_points,
            target_points=target_points,
            points_needed=0.0,
        )

    conversions: list[Conversion] = []
    for stars in CONVERTIBLE_LEVELS:
        cap = max(0, caps.get(stars, 0))
        proposed = min(cap, counts[stars])
        conversions.append(
            Conversion(
                from_stars=stars,
                available=counts[stars],
                cap=cap,
                proposed=proposed,
                points_per_review=5 - stars,
                points=proposed * (5 - stars),
            )
        )

    conversion_points = float(sum(c.points for c in conversions))
    remaining = max(0.0, round(points_needed - conversion_points, _PRECISION))

    return RecoveryPlan(
        target_average=target,
        total_reviews=total_reviews,
        current_average=current_average,
        current_points=current_points,
        target_points=target_points,
        points_needed=points_needed,
        conversions=conversions,
        conversion_points=conversion_points,
        remaining_points_needed=remaining,
        additional_five_star_reviews_needed=math.ceil(remaining / 5),
    )
