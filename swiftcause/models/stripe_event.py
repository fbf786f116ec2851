from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import Index
from sqlalchemy.orm import Mapped, mapped_column

from swiftcause.extensions import db
from swiftcause.models.mixins import TimestampMixin


class StripeEvent(db.Model, TimestampMixin):
    """Every verified webhook event, stored once. The unique event id makes
    redelivery a no-op, and failed payment events stay here for analytics."""

    __tablename__ = "stripe_events"
    __table_args__ = (Index("ix_stripe_events_type_created", "type", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    event_id: Mapped[str] = mapped_column(db.String(120), unique=True, index=True, nullable=False)
    type: Mapped[str] = mapped_column(db.String(120), index=True, nullable=False)
    livemode: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    account: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True, doc="Connect account (acct_...)")
    object_id: Mapped[Optional[str]] = mapped_column(
        db.String(120), nullable=True, index=True, doc="pi_..., in_..., sub_... or acct_..."
    )
    payload: Mapped[Dict[str, Any]] = mapped_column(db.JSON, nullable=False, default=dict)
