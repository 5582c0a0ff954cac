"""RatingSnapshot model — periodic platform aggregate, append-only."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from feedback_engine.db import Base


class RatingSnapshot(Base):
    __tablename__ = "rating_snapshots"
    __table_args__ = (
        Index("ix_rating_snapshot_tenant_platform_captured", "tenant_id", "platform", "captured_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    platform: Mapped[str] = mapped_column(String(64), nullable=False)
    average_rating: Mapped[float] = mapped_column(Float, nullable=False)
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False)
    distribution: Mapped[dict] = mapped_column(
        JSONB, nullable=False, comment='Counts per star value, keyed "1".."5"'
    )
    captured_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<RatingSnapshot id={self.id} platform={self.platform} avg={self.average_rating}>"
