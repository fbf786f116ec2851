from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Mapped, mapped_column

from swiftcause.extensions import db
from swiftcause.models.mixins import TimestampMixin, utcnow


class GiftAidDeclaration(db.Model, TimestampMixin):
    """
    A donor's Gift Aid declaration, written only after the donation it refers
    to has been recorded as successful. One declaration per donation: the
    primary key is the donation id.
    """

    __tablename__ = "gift_aid_declarations"

    id: Mapped[str] = mapped_column(db.String(120), primary_key=True)
    donation_id: Mapped[str] = mapped_column(
        db.ForeignKey("donations.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    transaction_id: Mapped[str] = mapped_column(db.String(120), nullable=False, index=True)
    campaign_id: Mapped[Optional[str]] = mapped_column(db.String(64), nullable=True, index=True)
    campaign_title: Mapped[Optional[str]] = mapped_column(db.String(200), nullable=True)
    organization_id: Mapped[Optional[str]] = mapped_column(db.String(64), nullable=True, index=True)

    # ---- Donor details ----
    donor_first_name: Mapped[Optional[str]] = mapped_column(db.String(80), nullable=True)
    donor_surname: Mapped[Optional[str]] = mapped_column(db.String(80), nullable=True)
    donor_title: Mapped[Optional[str]] = mapped_column(db.String(20), nullable=True)
    donor_email: Mapped[Optional[str]] = mapped_column(db.String(255), nullable=True)
    donor_house_number: Mapped[Optional[str]] = mapped_column(db.String(40), nullable=True)
    donor_address_line1: Mapped[Optional[str]] = mapped_column(db.String(160), nullable=True)
    donor_address_line2: Mapped[Optional[str]] = mapped_column(db.String(160), nullable=True)
    donor_town: Mapped[Optional[str]] = mapped_column(db.String(80), nullable=True)
    donor_postcode: Mapped[Optional[str]] = mapped_column(db.String(16), nullable=True)

    # ---- Declaration ----
    gift_aid_consent: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    uk_taxpayer_confirmation: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    declaration_text: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    declaration_date: Mapped[datetime] = mapped_column(db.DateTime, nullable=False, default=utcnow)

    # ---- Amounts (pence) ----
    donation_amount: Mapped[int] = mapped_column(db.Integer, nullable=False)
    gift_aid_amount: Mapped[int] = mapped_column(db.Integer, nullable=False)
    donation_date: Mapped[datetime] = mapped_column(db.DateTime, nullable=False)
    tax_year: Mapped[str] = mapped_column(db.String(7), nullable=False, index=True)

    # ---- HMRC processing ----
    classification: Mapped[str] = mapped_column(db.String(10), nullable=False, default="PENDING")
    pending_reasons: Mapped[List[str]] = mapped_column(db.JSON, nullable=False, default=list)
    gift_aid_status: Mapped[str] = mapped_column(db.String(20), nullable=False, default="pending")
    claimed_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "donationId": self.donation_id,
            "transactionId": self.transaction_id,
            "campaignId": self.campaign_id,
            "campaignTitle": self.campaign_title,
            "donorFirstName": self.donor_first_name,
            "donorSurname": self.donor_surname,
            "donorPostcode": self.donor_postcode,
            "donationAmount": self.donation_amount,
            "giftAidAmount": self.gift_aid_amount,
            "taxYear": self.tax_year,
            "classification": self.classification,
            "pendingReasons": list(self.pending_reasons or []),
            "giftAidStatus": self.gift_aid_status,
        }
