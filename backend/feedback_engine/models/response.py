"""ReviewResponse model — versioned drafts answering one ExternalReview."""
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from feedback_engine.db import Base


class ResponseStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    POSTED = "POSTED"
    FAILED = "FAILED"


ACTIVE_RESPONSE_STATUSES = frozenset({ResponseStatus.DRAFT, ResponseStatus.APPROVED})


class ResponsePriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class ReviewResponse(Base):
    """One generated candidate response. Rejection spawns a new row."""

    __tablename__ = "review_responses"
    __table_args__ = (
        UniqueConstraint("external_review_id", "version", name="uq_review_response_version"),
        # At most one DRAFT/APPROVED response per review.
        Index(
            "uq_review_response_active",
            "external_review_id",
            unique=True,
            postgresql_where=text("status IN ('DRAFT', 'APPROVED')"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    external_review_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("external_reviews.id", ondelete="CASCADE"), nullable=False, index=True
    )
    response_text: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[ResponseStatus] = mapped_column(
        String(32), default=ResponseStatus.DRAFT, nullable=False, index=True
    )
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    priority: Mapped[ResponsePriority] = mapped_column(
        String(16), default=ResponsePriority.NORMAL, nullable=False
    )
    model_used: Mapped[str | None] = mapped_column(String(128), nullable=True)
    generation_context: Mapped[dict | None] = mapped_column(
        JSONB, nullable=True, comment="Context sent to the drafting service"
    )
    risk_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    risk_level: Mapped[str] = mapped_column(String(16), default="LOW", nullable=False)
    risk_factors: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    requires_approval: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    manager_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ReviewResponse id={self.id} review={self.external_review_id} "
            f"v{self.version} status={self.status}>"
        )
