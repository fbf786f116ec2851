from __future__ import annotations

from swiftcause.models.campaign import CAMPAIGN_STATUSES, Campaign
from swiftcause.models.donation import (
    PLATFORMS,
    RECURRING_INTERVALS,
    Donation,
    DonationInvariantError,
)
from swiftcause.models.gift_aid import GiftAidDeclaration
from swiftcause.models.kiosk import Kiosk
from swiftcause.models.mail import MailMessage
from swiftcause.models.organization import Organization
from swiftcause.models.stripe_event import StripeEvent
from swiftcause.models.subscription import Subscription
from swiftcause.models.user import User

__all__ = [
    "CAMPAIGN_STATUSES",
    "PLATFORMS",
    "RECURRING_INTERVALS",
    "Campaign",
    "Donation",
    "DonationInvariantError",
    "GiftAidDeclaration",
    "Kiosk",
    "MailMessage",
    "Organization",
    "StripeEvent",
    "Subscription",
    "User",
]
