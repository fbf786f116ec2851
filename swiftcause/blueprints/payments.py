"""
SwiftCause Payments Blueprint (Stripe)

Mount: /payments

Endpoints (bearer identity token required):
  POST /payments/intent           one-time donation PaymentIntent (callable RPC shape)
  POST /payments/setup-intent     save a card before starting a subscription
  POST /payments/subscription     recurring donation via Stripe Billing
  POST /payments/payment-method   swap the card on an existing subscription
  POST /payments/billing-portal   Stripe-hosted subscription management

Contracts:
- /intent answers {success, clientSecret?, paymentIntentId?, error?}; invalid
  input is rejected with success=false before Stripe is ever called.
- Nothing here writes a Donation. Donations are recorded from the confirmed
  payment (POST /donations/confirm) or the webhook.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import stripe
from flask import Blueprint, current_app, g, request

from swiftcause.blueprints import json_error, json_response, request_payload, rpc_failure
from swiftcause.extensions import db
from swiftcause.models import Campaign, Subscription
from swiftcause.security import Identity, require_auth
from swiftcause.services import campaign_status
from swiftcause.services.stripe_gateway import (
    INTERVAL_MAP,
    attach_payment_method,
    get_or_create_customer,
    get_or_create_recurring_price,
    idempotency_key,
    metadata_of,
    set_default_payment_method,
    stripe_get,
    user_facing_message,
)
from swiftcause.services.validation import (
    clean_str,
    is_email,
    is_valid_amount,
    is_valid_currency,
    is_valid_interval,
    is_valid_platform,
    truthy,
)

bp = Blueprint("payments", __name__)

GENERIC_FAILURE = "Payment failed. Please try again."
PROVIDER_UNAVAILABLE = "Payment provider unavailable. Please try again."


# ----------------------------
# Normalized request model
# ----------------------------
@dataclass(frozen=True)
class IntentRequest:
    amount: int
    currency: str
    campaign_id: str
    donor_name: Optional[str]
    donor_email: Optional[str]
    donor_phone: Optional[str]
    donor_message: Optional[str]
    is_anonymous: bool
    is_gift_aid: bool
    is_recurring: bool
    recurring_interval: Optional[str]
    kiosk_id: Optional[str]
    platform: str

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> Tuple[Optional["IntentRequest"], Optional[str]]:
        """Returns (request, None) or (None, error message)."""
        amount = data.get("amount")
        if not is_valid_amount(amount):
            return None, "Amount must be a positive integer in minor units"

        currency = data.get("currency")
        if not is_valid_currency(currency, current_app.config["SUPPORTED_CURRENCIES"]):
            return None, "Unsupported currency"

        campaign_id = clean_str(data.get("campaignId"), 64)
        if not campaign_id:
            return None, "campaignId is required"

        dd = data.get("donationData") or {}
        if not isinstance(dd, dict):
            return None, "donationData must be an object"

        is_recurring = truthy(dd.get("isRecurring"))
        interval = clean_str(dd.get("recurringInterval"), 20)
        if is_recurring and not is_valid_interval(interval):
            return None, "Recurring donations need an interval (monthly, quarterly or yearly)"
        if not is_recurring and interval:
            return None, "recurringInterval is only allowed for recurring donations"

        email = clean_str(dd.get("donorEmail"), 255)
        if email and not is_email(email):
            return None, "Invalid donor email"

        platform = clean_str(dd.get("platform"), 20) or "web"
        if not is_valid_platform(platform):
            return None, "Unsupported platform"

        anonymous = truthy(dd.get("isAnonymous"))
        return (
            cls(
                amount=int(amount),
                currency=str(currency).lower(),
                campaign_id=campaign_id,
                donor_name=None if anonymous else clean_str(dd.get("donorName"), 160),
                donor_email=email.lower() if email else None,
                donor_phone=clean_str(dd.get("donorPhone"), 40),
                donor_message=clean_str(dd.get("donorMessage"), 500),
                is_anonymous=anonymous,
                is_gift_aid=truthy(dd.get("isGiftAid")),
                is_recurring=is_recurring,
                recurring_interval=interval if is_recurring else None,
                kiosk_id=clean_str(dd.get("kioskId"), 64),
                platform=platform.lower(),
            ),
            None,
        )

    def metadata(self, ident: Identity, campaign: Campaign) -> Dict[str, str]:
        md: Dict[str, Optional[str]] = {
            "campaignId": campaign.id,
            "organizationId": campaign.organization_id,
            "donorId": ident.uid,
            "donorName": self.donor_name,
            "donorEmail": self.donor_email,
            "donorPhone": self.donor_phone,
            "donorMessage": self.donor_message,
            "isAnonymous": "true" if self.is_anonymous else "false",
            "isGiftAid": "true" if self.is_gift_aid else "false",
            "isRecurring": "true" if self.is_recurring else "false",
            "recurringInterval": self.recurring_interval,
            "kioskId": ident.kiosk_id or self.kiosk_id,
            "platform": self.platform,
        }
        # Stripe metadata values must be strings; drop empties
        return {k: v for k, v in md.items() if v}


def _identity() -> Identity:
    return g.identity


def _load_donatable_campaign(ident: Identity, campaign_id: str) -> Tuple[Optional[Campaign], Optional[Tuple[str, int]]]:
    campaign = db.session.get(Campaign, campaign_id)
    if campaign is None:
        return None, ("Campaign not found", 400)
    if not ident.can_donate_to(campaign.id, campaign.organization_id):
        return None, ("This session cannot accept donations for this campaign", 403)
    if not campaign_status.accepts_donations(campaign):
        return None, ("Campaign is not accepting donations", 400)
    return campaign, None


# ----------------------------
# One-time donations
# ----------------------------
@bp.post("/intent")
@require_auth()
def create_payment_intent():
    ident = _identity()
    req, err = IntentRequest.from_payload(request_payload())
    if err or req is None:
        return rpc_failure(err or "Invalid request", 400)

    campaign, problem = _load_donatable_campaign(ident, req.campaign_id)
    if campaign is None:
        return rpc_failure(*(problem or ("Campaign not found", 400)))

    params: Dict[str, Any] = {
        "amount": req.amount,
        "currency": req.currency,
        "description": f"Donation to {campaign.title}",
        "metadata": req.metadata(ident, campaign),
    }
    if req.platform == "android_ttp":
        params["payment_method_types"] = ["card_present"]
    else:
        params["automatic_payment_methods"] = {"enabled": True, "allow_redirects": "never"}
    if req.donor_email:
        params["receipt_email"] = req.donor_email

    org = campaign.organization
    if org is not None and org.can_accept_charges:
        params["transfer_data"] = {"destination": org.stripe_account_id}

    client_key = (request.headers.get("Idempotency-Key") or "").strip()
    if client_key:
        params["idempotency_key"] = idempotency_key("intent", ident.uid, client_key)

    try:
        params["customer"] = get_or_create_customer(ident)
        pi = stripe.PaymentIntent.create(**params)
    except stripe.CardError as e:
        current_app.logger.info("payments: card error creating intent: %s", e)
        return rpc_failure(user_facing_message(e, GENERIC_FAILURE), 402)
    except stripe.StripeError as e:
        current_app.logger.error("payments: Stripe error creating intent: %s", e, exc_info=True)
        return rpc_failure(user_facing_message(e, PROVIDER_UNAVAILABLE), 502)

    client_secret = stripe_get(pi, "client_secret")
    if not client_secret:
        current_app.logger.error("payments: Stripe returned no client_secret for %s", stripe_get(pi, "id"))
        return rpc_failure(PROVIDER_UNAVAILABLE, 502)

    current_app.logger.info(
        "payments: intent %s created (%s %s) campaign=%s", stripe_get(pi, "id"), req.amount, req.currency, campaign.id
    )
    return json_response({"success": True, "clientSecret": client_secret, "paymentIntentId": stripe_get(pi, "id")})


# ----------------------------
# Recurring donations
# ----------------------------
@bp.post("/setup-intent")
@require_auth()
def create_setup_intent():
    ident = _identity()
    data = request_payload()
    interval = clean_str(data.get("interval"), 20)
    if interval and not is_valid_interval(interval):
        return json_error("Invalid interval", 400)

    try:
        customer_id = get_or_create_customer(ident)
        si = stripe.SetupIntent.create(
            customer=customer_id,
            payment_method_types=["card"],
            metadata={
                "uid": ident.uid,
                "campaignId": clean_str(data.get("campaignId"), 64) or "",
                "interval": interval or "",
            },
        )
    except stripe.StripeError as e:
        current_app.logger.error("payments: Stripe error creating setup intent: %s", e, exc_info=True)
        return json_error(user_facing_message(e, PROVIDER_UNAVAILABLE), 502)

    return json_response({"clientSecret": stripe_get(si, "client_secret"), "customerId": customer_id})


@bp.post("/subscription")
@require_auth()
def create_subscription():
    ident = _identity()
    data = request_payload()

    campaign_id = clean_str(data.get("campaignId"), 64)
    interval = clean_str(data.get("interval"), 20)
    amount = data.get("amount")
    payment_method_id = clean_str(data.get("paymentMethodId"), 120)
    currency = data.get("currency") or current_app.config["DEFAULT_CURRENCY"]
    platform = clean_str(data.get("platform"), 20) or "web"

    if not campaign_id or not interval or amount is None or not payment_method_id:
        return json_error("Missing required fields", 400)
    if interval not in INTERVAL_MAP:
        return json_error("Invalid interval", 400)
    if not is_valid_amount(amount):
        return json_error("Amount must be greater than zero", 400)
    if not is_valid_currency(currency, current_app.config["SUPPORTED_CURRENCIES"]):
        return json_error("Unsupported currency", 400)
    if not is_valid_platform(platform):
        return json_error("Unsupported platform", 400)
    currency = str(currency).lower()

    campaign, problem = _load_donatable_campaign(ident, campaign_id)
    if campaign is None:
        return json_error(*(problem or ("Campaign not found", 400)))

    try:
        customer_id = get_or_create_customer(ident)
        attach_payment_method(payment_method_id, customer_id)
        set_default_payment_method(customer_id, payment_method_id)
        price_id = get_or_create_recurring_price(campaign, int(amount), currency, interval)

        sub = stripe.Subscription.create(
            customer=customer_id,
            items=[{"price": price_id}],
            payment_settings={"save_default_payment_method": "on_subscription"},
            default_payment_method=payment_method_id,
            metadata={
                "campaignId": campaign.id,
                "organizationId": campaign.organization_id,
                "donorId": ident.uid,
                "donorName": ident.name or "",
                "donorEmail": ident.email or "",
                "isGiftAid": "true" if truthy(data.get("isGiftAid")) else "false",
                "platform": platform,
                "interval": interval,
            },
            expand=["latest_invoice.payment_intent"],
        )
    except stripe.CardError as e:
        return json_error(user_facing_message(e, GENERIC_FAILURE), 402)
    except stripe.StripeError as e:
        current_app.logger.error("payments: Stripe error creating subscription: %s", e, exc_info=True)
        return json_error(user_facing_message(e, PROVIDER_UNAVAILABLE), 502)

    row = db.session.get(Subscription, stripe_get(sub, "id"))
    if row is None:
        row = Subscription(id=stripe_get(sub, "id"))
        db.session.add(row)
    row.customer_id = customer_id
    row.donor_id = ident.uid
    row.campaign_id = campaign.id
    row.status = str(stripe_get(sub, "status") or "incomplete")
    row.interval = interval
    row.amount = int(amount)
    row.currency = currency
    row.price_id = price_id
    row.payment_method_id = payment_method_id
    db.session.commit()

    body: Dict[str, Any] = {"subscriptionId": row.id, "status": row.status}
    pi = stripe_get(stripe_get(sub, "latest_invoice"), "payment_intent")
    if pi is not None and stripe_get(pi, "status") == "requires_action" and stripe_get(pi, "client_secret"):
        body["paymentIntentClientSecret"] = stripe_get(pi, "client_secret")
    return json_response(body)


@bp.post("/payment-method")
@require_auth()
def update_payment_method():
    ident = _identity()
    data = request_payload()
    subscription_id = clean_str(data.get("subscriptionId"), 120)
    payment_method_id = clean_str(data.get("paymentMethodId"), 120)
    if not subscription_id or not payment_method_id:
        return json_error("Missing subscriptionId or paymentMethodId", 400)

    try:
        sub = stripe.Subscription.retrieve(subscription_id, expand=["customer"])
        owner = metadata_of(sub).get("donorId")
        if owner and owner != ident.uid:
            return json_error("Forbidden: subscription does not belong to this user", 403)

        customer = stripe_get(sub, "customer")
        customer_id = customer if isinstance(customer, str) else stripe_get(customer, "id")

        attach_payment_method(payment_method_id, customer_id)
        pm = stripe.PaymentMethod.retrieve(payment_method_id)
        card = stripe_get(pm, "card") or {}
        stripe.Subscription.modify(subscription_id, default_payment_method=payment_method_id)
        set_default_payment_method(customer_id, payment_method_id)
    except stripe.StripeError as e:
        current_app.logger.error("payments: Stripe error updating payment method: %s", e, exc_info=True)
        return json_error(user_facing_message(e, PROVIDER_UNAVAILABLE), 502)

    row = db.session.get(Subscription, subscription_id)
    if row is None:
        row = Subscription(id=subscription_id, customer_id=customer_id, donor_id=ident.uid)
        db.session.add(row)
    row.payment_method_id = payment_method_id
    row.card_last4 = stripe_get(card, "last4")
    row.card_brand = stripe_get(card, "brand")
    db.session.commit()
    return json_response({"success": True})


@bp.post("/billing-portal")
@require_auth()
def create_billing_portal_session():
    ident = _identity()
    return_url = clean_str(request_payload().get("returnUrl"), 500) or current_app.config.get("PUBLIC_BASE_URL") or None

    try:
        customer_id = get_or_create_customer(ident)
        session = stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url)
    except stripe.StripeError as e:
        current_app.logger.error("payments: Stripe error creating billing portal session: %s", e, exc_info=True)
        return json_error(user_facing_message(e, PROVIDER_UNAVAILABLE), 502)

    return json_response({"url": stripe_get(session, "url")})
