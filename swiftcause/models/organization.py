from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Mapped, mapped_column

from swiftcause.extensions import db
from swiftcause.models.mixins import TimestampMixin


class Organization(db.Model, TimestampMixin):
    """A charity using SwiftCause; owns campaigns, kiosks and a Stripe Connect account."""

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(db.String(64), primary_key=True)
    name: Mapped[str] = mapped_column(db.String(160), nullable=False)
    currency: Mapped[str] = mapped_column(db.String(3), nullable=False, default="gbp")

    stripe_account_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True, unique=True, index=True)
    stripe_charges_enabled: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    stripe_payouts_enabled: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    stripe_details_submitted: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    stripe_updated_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    @property
    def can_accept_charges(self) -> bool:
        return bool(self.stripe_account_id and self.stripe_charges_enabled)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "currency": self.currency,
            "stripe": {
                "accountId": self.stripe_account_id,
                "chargesEnabled": bool(self.stripe_charges_enabled),
                "payoutsEnabled": bool(self.stripe_payouts_enabled),
                "detailsSubmitted": bool(self.stripe_details_submitted),
            },
        }

    def __repr__(self) -> str:
        return f"<Organization id={self.id!r} name={self.name!r}>"
