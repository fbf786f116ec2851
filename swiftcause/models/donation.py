from __future__ import annotations

# -----------------------------------------------------------------------------
# Donation Model
# Minor-unit amounts, one row per successful payment (id == transaction id),
# invariant guards on write, and the thank-you email trigger on insert/update.
# -----------------------------------------------------------------------------
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, Index, event
from sqlalchemy.orm import Mapped, mapped_column

from swiftcause.extensions import db
from swiftcause.models.mixins import TimestampMixin, utcnow

RECURRING_INTERVALS = ("monthly", "quarterly", "yearly")
PAYMENT_STATUSES = ("pending", "success", "failed")
PLATFORMS = ("android", "ios", "android_ttp", "web", "kiosk")


class DonationInvariantError(ValueError):
    """Raised when a Donation would be written in an inconsistent state."""


class Donation(db.Model, TimestampMixin):
    __tablename__ = "donations"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_donations_amount_positive"),
        Index("ix_donations_campaign_ts", "campaign_id", "timestamp"),
        Index("ix_donations_org_ts", "organization_id", "timestamp"),
    )

    # ---- Identifiers ----
    id: Mapped[str] = mapped_column(db.String(120), primary_key=True, doc="Equals transaction_id")
    transaction_id: Mapped[str] = mapped_column(db.String(120), unique=True, nullable=False)
    campaign_id: Mapped[str] = mapped_column(db.ForeignKey("campaigns.id"), nullable=False, index=True)
    organization_id: Mapped[Optional[str]] = mapped_column(db.String(64), nullable=True)
    kiosk_id: Mapped[Optional[str]] = mapped_column(db.String(64), nullable=True, index=True)
    donor_id: Mapped[Optional[str]] = mapped_column(db.String(128), nullable=True, index=True)

    # ---- Financials (minor units) ----
    amount: Mapped[int] = mapped_column(db.Integer, nullable=False)
    currency: Mapped[str] = mapped_column(db.String(3), nullable=False, default="gbp")

    # ---- Donor ----
    donor_name: Mapped[Optional[str]] = mapped_column(db.String(160), nullable=True)
    donor_email: Mapped[Optional[str]] = mapped_column(db.String(255), nullable=True)
    donor_phone: Mapped[Optional[str]] = mapped_column(db.String(40), nullable=True)
    donor_message: Mapped[Optional[str]] = mapped_column(db.String(500), nullable=True)
    is_anonymous: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)

    # ---- Flags ----
    is_gift_aid: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    is_recurring: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    recurring_interval: Mapped[Optional[str]] = mapped_column(db.String(20), nullable=True)

    # ---- Payment tracking (Stripe) ----
    platform: Mapped[str] = mapped_column(db.String(20), nullable=False, default="web")
    payment_status: Mapped[str] = mapped_column(db.String(20), nullable=False, default="success")
    subscription_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True, index=True)
    invoice_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow)

    campaign = db.relationship("Campaign", lazy="select")

    # ==========================================================
    # Guards
    # ==========================================================
    def check_invariants(self) -> None:
        if not self.campaign_id:
            raise DonationInvariantError("a donation must belong to a campaign")
        if isinstance(self.amount, bool) or not isinstance(self.amount, int) or self.amount <= 0:
            raise DonationInvariantError("amount must be a positive integer in minor units")
        if self.is_recurring and self.recurring_interval not in RECURRING_INTERVALS:
            raise DonationInvariantError("recurring donations need an interval")
        if not self.is_recurring and self.recurring_interval is not None:
            raise DonationInvariantError("one-time donations cannot carry an interval")
        if self.payment_status not in PAYMENT_STATUSES:
            raise DonationInvariantError(f"unknown payment status {self.payment_status!r}")

    # ==========================================================
    # Serialization
    # ==========================================================
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "transactionId": self.transaction_id,
            "campaignId": self.campaign_id,
            "organizationId": self.organization_id,
            "kioskId": self.kiosk_id,
            "amount": int(self.amount),
            "currency": self.currency,
            "donorName": None if self.is_anonymous else self.donor_name,
            "donorEmail": self.donor_email,
            "donorMessage": self.donor_message,
            "isAnonymous": bool(self.is_anonymous),
            "isGiftAid": bool(self.is_gift_aid),
            "isRecurring": bool(self.is_recurring),
            "recurringInterval": self.recurring_interval,
            "platform": self.platform,
            "paymentStatus": self.payment_status,
            "subscriptionId": self.subscription_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Donation {self.id} {self.amount} {self.currency} status={self.payment_status}>"


# ──────────────────────────────────────────────────────────────────────────────
# Event Hooks: invariant guards + thank-you email trigger
# ──────────────────────────────────────────────────────────────────────────────
@event.listens_for(Donation, "before_insert")
@event.listens_for(Donation, "before_update")
def _donation_before_save(mapper, connection, target: Donation) -> None:
    if target.donor_email is not None:
        target.donor_email = target.donor_email.strip().lower() or None
    target.check_invariants()


@event.listens_for(Donation, "after_insert")
def _donation_after_insert(mapper, connection, target: Donation) -> None:
    from swiftcause.services.notifications import on_donation_written  # avoid circular import

    on_donation_written(connection, target, previous_email=None)


@event.listens_for(Donation, "after_update")
def _donation_after_update(mapper, connection, target: Donation) -> None:
    from sqlalchemy import inspect

    from swiftcause.services.notifications import on_donation_written  # avoid circular import

    hist = inspect(target).attrs.donor_email.history
    if not hist.has_changes():
        return
    previous = hist.deleted[0] if hist.deleted else None
    on_donation_written(connection, target, previous_email=previous)
