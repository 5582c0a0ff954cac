"""ExternalReview model — reviews surfaced by third-party platforms."""
from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from feedback_engine.db import Base


class ExternalReview(Base):
    """Immutable once ingested, except ``response_required``."""

    __tablename__ = "external_reviews"
    __table_args__ = (
        UniqueConstraint("tenant_id", "platform", "platform_review_id", name="uq_external_review_platform_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    platform: Mapped[str] = mapped_column(String(64), nullable=False, comment="google | tripadvisor | booking ...")
    platform_review_id: Mapped[str] = mapped_column(String(256), nullable=False)
    author: Mapped[str | None] = mapped_column(String(256), nullable=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    review_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    review_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    sentiment: Mapped[str | None] = mapped_column(String(32), nullable=True)
    response_required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<ExternalReview id={self.id} platform={self.platform} rating={self.rating}>"
