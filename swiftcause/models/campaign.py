from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from swiftcause.extensions import db
from swiftcause.models.mixins import TimestampMixin

CAMPAIGN_STATUSES = ("active", "paused", "completed")


class Campaign(db.Model, TimestampMixin):
    __tablename__ = "campaigns"
    __table_args__ = (
        CheckConstraint("goal >= 0", name="ck_campaigns_goal_nonneg"),
        CheckConstraint("collected_amount >= 0", name="ck_campaigns_collected_nonneg"),
        Index("ix_campaigns_org_status", "organization_id", "status"),
    )

    id: Mapped[str] = mapped_column(db.String(64), primary_key=True)
    organization_id: Mapped[str] = mapped_column(
        db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(db.String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    currency: Mapped[str] = mapped_column(db.String(3), nullable=False, default="gbp")

    # ---- Totals (minor units); mutated only through atomic UPDATE ... SET x = x + n ----
    goal: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    collected_amount: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    donation_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    last_updated: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    # ---- Lifecycle ----
    status: Mapped[str] = mapped_column(db.String(20), nullable=False, default="active")
    start_date: Mapped[Optional[date]] = mapped_column(db.Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(db.Date, nullable=True)
    auto_completed_goal: Mapped[Optional[int]] = mapped_column(db.Integer, nullable=True)
    auto_completed_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    auto_paused_end_date: Mapped[Optional[date]] = mapped_column(db.Date, nullable=True)
    auto_paused_end_date_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    # Stripe product reused for recurring prices
    billing_product_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True)

    organization = db.relationship("Organization", lazy="joined")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "organizationId": self.organization_id,
            "currency": self.currency,
            "goal": int(self.goal or 0),
            "raised": int(self.collected_amount or 0),
            "donationCount": int(self.donation_count or 0),
            "status": self.status,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }

    def __repr__(self) -> str:
        return f"<Campaign id={self.id!r} status={self.status!r} raised={self.collected_amount}/{self.goal}>"
