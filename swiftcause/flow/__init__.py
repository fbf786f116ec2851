"""
Client-side donation lifecycle for kiosks and web checkouts.

    session = Session.from_kiosk_login(client.kiosk_login(kiosk_id, code))
    client = client.with_session(session)
    campaign = lookup_campaign(client, session, "camp-1")
    flow = DonationFlow(session, campaign, PaymentIntentOrchestrator(client, confirmer), client)
    flow.start(build_draft(amount=5000, currency="gbp", campaign_id=campaign.id))
    outcome = flow.submit(payment_method="pm_card_visa")
"""

from swiftcause.flow.campaigns import CampaignSummary, lookup_campaign
from swiftcause.flow.client import ApiError, SwiftCauseClient
from swiftcause.flow.draft import DonationDraft, DraftError, build_draft
from swiftcause.flow.machine import DonationFlow, DonationState, InvalidTransition
from swiftcause.flow.orchestrator import (
    PaymentConfirmer,
    PaymentIntentOrchestrator,
    PaymentResult,
    StripeIntentConfirmer,
)
from swiftcause.flow.outcome import Outcome, resolve
from swiftcause.flow.session import Session

__all__ = [
    "ApiError",
    "CampaignSummary",
    "DonationDraft",
    "DonationFlow",
    "DonationState",
    "DraftError",
    "InvalidTransition",
    "Outcome",
    "PaymentConfirmer",
    "PaymentIntentOrchestrator",
    "PaymentResult",
    "Session",
    "StripeIntentConfirmer",
    "SwiftCauseClient",
    "build_draft",
    "lookup_campaign",
    "resolve",
]
