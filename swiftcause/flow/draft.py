"""Immutable donation drafts, assembled before any payment is attempted."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from swiftcause.models.donation import PLATFORMS, RECURRING_INTERVALS


class DraftError(ValueError):
    pass


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class DonationDraft:
    campaign_id: str
    amount: int
    currency: str
    is_recurring: bool = False
    recurring_interval: Optional[str] = None
    is_gift_aid: bool = False
    is_anonymous: bool = False
    donor_name: Optional[str] = None
    donor_email: Optional[str] = None
    donor_phone: Optional[str] = None
    donor_message: Optional[str] = None
    kiosk_id: Optional[str] = None
    platform: str = "kiosk"
    gift_aid_details: Optional[Dict[str, Any]] = field(default=None, compare=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_donation_data(self) -> Dict[str, Any]:
        """camelCase ``donationData`` for POST /payments/intent."""
        data: Dict[str, Any] = {
            "isRecurring": self.is_recurring,
            "isGiftAid": self.is_gift_aid,
            "isAnonymous": self.is_anonymous,
            "platform": self.platform,
        }
        if self.recurring_interval:
            data["recurringInterval"] = self.recurring_interval
        for key, val in (
            ("donorName", self.donor_name),
            ("donorEmail", self.donor_email),
            ("donorPhone", self.donor_phone),
            ("donorMessage", self.donor_message),
            ("kioskId", self.kiosk_id),
        ):
            if val:
                data[key] = val
        return data


def build_draft(
    *,
    campaign_id: str,
    amount: Any,
    currency: str,
    is_recurring: bool = False,
    recurring_interval: Optional[str] = None,
    is_gift_aid: bool = False,
    is_anonymous: bool = False,
    donor_name: Optional[str] = None,
    donor_email: Optional[str] = None,
    donor_phone: Optional[str] = None,
    donor_message: Optional[str] = None,
    kiosk_id: Optional[str] = None,
    platform: str = "kiosk",
    gift_aid_details: Optional[Dict[str, Any]] = None,
) -> DonationDraft:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise DraftError("Amount must be a positive integer in minor units")
    if not _clean(campaign_id):
        raise DraftError("A campaign is required")
    if not _clean(currency):
        raise DraftError("A currency is required")

    interval = _clean(recurring_interval)
    if is_recurring and interval not in RECURRING_INTERVALS:
        raise DraftError(f"Recurring donations need an interval: {', '.join(RECURRING_INTERVALS)}")
    if not is_recurring and interval:
        raise DraftError("An interval is only allowed on recurring donations")
    if platform not in PLATFORMS:
        raise DraftError(f"Unsupported platform: {platform}")

    return DonationDraft(
        campaign_id=str(campaign_id).strip(),
        amount=amount,
        currency=str(currency).strip().lower(),
        is_recurring=bool(is_recurring),
        recurring_interval=interval if is_recurring else None,
        is_gift_aid=bool(is_gift_aid),
        is_anonymous=bool(is_anonymous),
        donor_name=None if is_anonymous else _clean(donor_name),
        donor_email=_clean(donor_email),
        donor_phone=_clean(donor_phone),
        donor_message=_clean(donor_message),
        kiosk_id=_clean(kiosk_id),
        platform=platform,
        gift_aid_details=dict(gift_aid_details) if (is_gift_aid and gift_aid_details) else None,
    )
