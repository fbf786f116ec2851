"""
Donation persistence.

A Donation row is written only for money that actually moved: a succeeded
PaymentIntent (one-time) or a paid invoice (recurring). Both paths are
idempotent on the transaction id, so the webhook and the client-side confirm
call can race without double counting.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError

from swiftcause.extensions import db
from swiftcause.models import Campaign, Donation, DonationInvariantError, Subscription
from swiftcause.models.mixins import utcnow
from swiftcause.services import campaign_status
from swiftcause.services.stripe_gateway import interval_from_plan, metadata_of, stripe_get
from swiftcause.services.validation import clean_str, is_email, is_valid_interval, is_valid_platform, truthy

log = logging.getLogger(__name__)


class PaymentNotSucceeded(Exception):
    def __init__(self, status: str) -> None:
        super().__init__(f"Payment status is {status!r}, not 'succeeded'")
        self.status = status


def _ts(epoch: Any) -> datetime:
    try:
        return datetime.fromtimestamp(int(epoch), tz=timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError):
        return utcnow()


def _donor_fields(md: Dict[str, str]) -> Dict[str, Any]:
    anonymous = truthy(md.get("isAnonymous"))
    email = clean_str(md.get("donorEmail"), 255)
    return {
        "donor_id": clean_str(md.get("donorId"), 128),
        "donor_name": None if anonymous else clean_str(md.get("donorName"), 160),
        "donor_email": email if email and is_email(email) else None,
        "donor_phone": clean_str(md.get("donorPhone"), 40),
        "donor_message": clean_str(md.get("donorMessage"), 500),
        "is_anonymous": anonymous,
        "is_gift_aid": truthy(md.get("isGiftAid")),
        "kiosk_id": clean_str(md.get("kioskId"), 64),
        "organization_id": clean_str(md.get("organizationId"), 64),
        "platform": md.get("platform") if is_valid_platform(md.get("platform")) else "web",
    }


def donation_fields_from_intent(intent: Any) -> Dict[str, Any]:
    md = metadata_of(intent)
    pi_id = str(stripe_get(intent, "id"))
    is_recurring = truthy(md.get("isRecurring"))
    interval = md.get("recurringInterval") if is_recurring else None
    if is_recurring and not is_valid_interval(interval):
        # an intent flagged recurring without a usable interval is recorded as one-time
        log.warning("donations: %s flagged recurring without a valid interval (%r)", pi_id, interval)
        is_recurring, interval = False, None

    fields = _donor_fields(md)
    fields.update(
        id=pi_id,
        transaction_id=pi_id,
        campaign_id=clean_str(md.get("campaignId"), 64),
        amount=int(stripe_get(intent, "amount_received") or stripe_get(intent, "amount") or 0),
        currency=str(stripe_get(intent, "currency") or "gbp").lower(),
        is_recurring=is_recurring,
        recurring_interval=interval,
        payment_status="success",
        timestamp=_ts(stripe_get(intent, "created")),
    )
    return fields


# ----------------------------
# Campaign totals
# ----------------------------
def increment_campaign_totals(campaign_id: str, amount: int) -> None:
    """Add one donation of ``amount`` to the campaign in a single UPDATE, then
    let the status engine auto-complete it if the goal was reached."""
    res = db.session.execute(
        sa_update(Campaign)
        .where(Campaign.id == campaign_id)
        .values(
            collected_amount=Campaign.collected_amount + int(amount),
            donation_count=Campaign.donation_count + 1,
            last_updated=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if not getattr(res, "rowcount", 0):
        log.warning("donations: campaign %s not found; totals not updated", campaign_id)
        return

    campaign = db.session.get(Campaign, campaign_id, populate_existing=True)
    if campaign is not None:
        resolution = campaign_status.reconcile_campaign(campaign)
        if resolution.updates:
            log.info("donations: campaign %s -> %s", campaign_id, resolution.status)


def _insert_once(fields: Dict[str, Any]) -> Tuple[Donation, bool]:
    existing = db.session.get(Donation, fields["id"])
    if existing is not None:
        return existing, False

    donation = Donation(**fields)
    try:
        with db.session.begin_nested():
            db.session.add(donation)
    except IntegrityError:
        # lost the race against a concurrent writer for the same transaction
        existing = db.session.get(Donation, fields["id"])
        if existing is None:
            raise
        return existing, False

    increment_campaign_totals(donation.campaign_id, donation.amount)
    return donation, True


# ----------------------------
# Public API
# ----------------------------
def record_successful_payment(intent: Any) -> Tuple[Donation, bool]:
    """
    Persist the donation for a succeeded PaymentIntent.
    Returns (donation, created). Raises PaymentNotSucceeded, or
    DonationInvariantError when the intent names no campaign. Does not commit.
    """
    status = str(stripe_get(intent, "status") or "")
    if status != "succeeded":
        raise PaymentNotSucceeded(status)

    fields = donation_fields_from_intent(intent)
    if not fields["campaign_id"]:
        raise DonationInvariantError(f"{fields['id']} carries no campaignId")

    donation, created = _insert_once(fields)
    if created:
        log.info("donations: recorded %s (%s %s)", donation.id, donation.amount, donation.currency)
    return donation, created


def record_invoice_payment(invoice: Any) -> Optional[Tuple[Donation, bool]]:
    """Persist the recurring donation for a paid subscription invoice.

    Returns None when the invoice is not something we record (zero amount,
    no subscription, no campaign, unknown interval).
    """
    invoice_id = str(stripe_get(invoice, "id"))
    amount = int(stripe_get(invoice, "amount_paid") or 0)
    sub_id = stripe_get(invoice, "subscription")
    if isinstance(sub_id, dict) or (sub_id is not None and not isinstance(sub_id, str)):
        sub_id = stripe_get(sub_id, "id")
    if amount <= 0 or not sub_id:
        log.info("donations: invoice %s skipped (amount=%s subscription=%s)", invoice_id, amount, sub_id)
        return None

    details = stripe_get(invoice, "subscription_details") or {}
    md = metadata_of(details) or metadata_of(invoice)
    sub = db.session.get(Subscription, sub_id)

    interval = md.get("interval")
    if not is_valid_interval(interval) and sub is not None:
        interval = sub.interval
    if not is_valid_interval(interval):
        log.error("donations: invoice %s has no recognizable interval; not recorded", invoice_id)
        return None

    campaign_id = clean_str(md.get("campaignId"), 64) or (sub.campaign_id if sub else None)
    if not campaign_id:
        log.error("donations: invoice %s has no campaign; not recorded", invoice_id)
        return None

    fields = _donor_fields(md)
    fields.update(
        id=invoice_id,
        transaction_id=invoice_id,
        campaign_id=campaign_id,
        amount=amount,
        currency=str(stripe_get(invoice, "currency") or "gbp").lower(),
        is_recurring=True,
        recurring_interval=interval,
        payment_status="success",
        subscription_id=sub_id,
        invoice_id=invoice_id,
        timestamp=_ts(stripe_get(invoice, "created")),
    )
    if sub is not None:
        sub.last_invoice_id = invoice_id
        sub.last_payment_error = None

    return _insert_once(fields)


def attach_donor_email(donation_id: str, email: str) -> Donation:
    """Attach a receipt email to a recorded donation.

    Only fills an empty email; this is the one mutation allowed after a
    donation is persisted. Raises LookupError / ValueError. Does not commit.
    """
    if not is_email(email):
        raise ValueError("A valid email address is required")
    donation = db.session.get(Donation, donation_id)
    if donation is None:
        raise LookupError("Donation not found")
    if donation.donor_email and donation.donor_email != email.strip().lower():
        raise ValueError("Donation already has a receipt email")
    donation.donor_email = email.strip().lower()
    return donation


def subscription_fields(sub: Any) -> Dict[str, Any]:
    md = metadata_of(sub)
    items = stripe_get(stripe_get(sub, "items") or {}, "data") or []
    price = stripe_get(items[0], "price") if items else None
    recurring = stripe_get(price, "recurring") or {}
    interval = md.get("interval")
    if not is_valid_interval(interval):
        interval = interval_from_plan(stripe_get(recurring, "interval"), stripe_get(recurring, "interval_count"))
    period_end = stripe_get(sub, "current_period_end")
    customer = stripe_get(sub, "customer")
    return {
        "customer_id": customer if isinstance(customer, str) else stripe_get(customer, "id"),
        "donor_id": md.get("donorId"),
        "campaign_id": md.get("campaignId"),
        "status": str(stripe_get(sub, "status") or "incomplete"),
        "interval": interval,
        "amount": stripe_get(price, "unit_amount"),
        "currency": stripe_get(price, "currency"),
        "price_id": stripe_get(price, "id"),
        "current_period_end": _ts(period_end) if period_end else None,
        "cancel_at_period_end": bool(stripe_get(sub, "cancel_at_period_end") or False),
    }


def upsert_subscription(sub: Any) -> Subscription:
    sub_id = str(stripe_get(sub, "id"))
    row = db.session.get(Subscription, sub_id)
    if row is None:
        row = Subscription(id=sub_id)
        db.session.add(row)
    for key, val in subscription_fields(sub).items():
        if val is not None or key in ("current_period_end",):
            setattr(row, key, val)
    return row
