from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Mapped, mapped_column

from swiftcause.extensions import db
from swiftcause.models.mixins import TimestampMixin


class Subscription(db.Model, TimestampMixin):
    """Local mirror of a Stripe subscription backing a recurring donation."""

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(db.String(120), primary_key=True, doc="Stripe subscription id (sub_...)")
    customer_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True, index=True)
    donor_id: Mapped[Optional[str]] = mapped_column(db.String(128), nullable=True, index=True)
    campaign_id: Mapped[Optional[str]] = mapped_column(db.String(64), nullable=True, index=True)
    status: Mapped[str] = mapped_column(db.String(40), nullable=False, default="incomplete")
    interval: Mapped[Optional[str]] = mapped_column(db.String(20), nullable=True)
    amount: Mapped[Optional[int]] = mapped_column(db.Integer, nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(db.String(3), nullable=True)
    price_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True)
    current_period_end: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    cancel_at_period_end: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)

    payment_method_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True)
    card_brand: Mapped[Optional[str]] = mapped_column(db.String(40), nullable=True)
    card_last4: Mapped[Optional[str]] = mapped_column(db.String(4), nullable=True)

    last_invoice_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True)
    last_payment_error: Mapped[Optional[str]] = mapped_column(db.String(500), nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "campaignId": self.campaign_id,
            "interval": self.interval,
            "amount": self.amount,
            "currency": self.currency,
            "currentPeriodEnd": self.current_period_end.isoformat() if self.current_period_end else None,
            "cancelAtPeriodEnd": bool(self.cancel_at_period_end),
            "paymentMethod": {"brand": self.card_brand, "last4": self.card_last4} if self.card_last4 else None,
        }
