"""
Stripe webhooks.

  POST /webhooks/stripe           payment, subscription and invoice events
  POST /webhooks/stripe/account   Connect account events

Every verified event is stored in ``stripe_events`` and processed in the same
transaction: a failure rolls both back and answers 500 so Stripe redelivers,
and a redelivered event that was already processed is acknowledged untouched.
Responses carry no body.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional

import stripe
from flask import Blueprint, current_app, request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from swiftcause.extensions import db, tx_commit
from swiftcause.models import DonationInvariantError, Organization, StripeEvent, Subscription
from swiftcause.services.donations import (
    PaymentNotSucceeded,
    record_invoice_payment,
    record_successful_payment,
    upsert_subscription,
)
from swiftcause.services.stripe_gateway import apply_account_status, metadata_of, stripe_get

bp = Blueprint("webhooks", __name__)


def _verified_event(secret_key: str) -> Optional[Dict[str, Any]]:
    payload = request.get_data(cache=False, as_text=False)
    sig = (request.headers.get("Stripe-Signature") or "").strip()
    secret = (current_app.config.get(secret_key) or "").strip()
    if not secret or not sig:
        current_app.logger.warning("webhooks: rejected event (secret configured=%s, signature present=%s)", bool(secret), bool(sig))
        return None
    try:
        stripe.Webhook.construct_event(payload, sig, secret)
        ev = json.loads(payload.decode("utf-8"))
    except (ValueError, stripe.SignatureVerificationError) as e:
        current_app.logger.warning("webhooks: signature verification failed: %s", e)
        return None
    return ev if isinstance(ev, dict) else None


# ----------------------------
# Handlers
# ----------------------------
def _payment_succeeded(obj: Dict[str, Any]) -> None:
    if obj.get("invoice"):
        # subscription charges are recorded from the invoice events
        current_app.logger.info("webhooks: %s belongs to invoice %s; skipped", obj.get("id"), obj.get("invoice"))
        return
    try:
        record_successful_payment(obj)
    except PaymentNotSucceeded as e:
        current_app.logger.warning("webhooks: %s not recorded: %s", obj.get("id"), e)
    except DonationInvariantError as e:
        current_app.logger.error("webhooks: %s cannot be recorded as a donation: %s", obj.get("id"), e)


def _payment_failed(obj: Dict[str, Any]) -> None:
    err = obj.get("last_payment_error") or {}
    md = metadata_of(obj)
    current_app.logger.info(
        "webhooks: payment %s failed for campaign %s: %s",
        obj.get("id"),
        md.get("campaignId") or "-",
        stripe_get(err, "message") or stripe_get(err, "code") or "unknown error",
    )


def _subscription_changed(obj: Dict[str, Any]) -> None:
    row = upsert_subscription(obj)
    current_app.logger.info("webhooks: subscription %s is %s", row.id, row.status)


def _invoice_paid(obj: Dict[str, Any]) -> None:
    result = record_invoice_payment(obj)
    if result is not None:
        donation, created = result
        current_app.logger.info("webhooks: invoice %s -> donation %s (created=%s)", obj.get("id"), donation.id, created)


def _invoice_failed(obj: Dict[str, Any]) -> None:
    sub_id = obj.get("subscription")
    if isinstance(sub_id, dict):
        sub_id = sub_id.get("id")
    row = db.session.get(Subscription, sub_id) if sub_id else None
    err = stripe_get(stripe_get(obj, "last_finalization_error") or {}, "message")
    if row is not None:
        row.last_invoice_id = obj.get("id")
        row.last_payment_error = (err or "Invoice payment failed")[:500]
    current_app.logger.warning("webhooks: invoice %s payment failed (subscription %s)", obj.get("id"), sub_id or "-")


def _account_updated(obj: Dict[str, Any]) -> None:
    acct_id = obj.get("id")
    org_id = metadata_of(obj).get("orgId")
    org = db.session.get(Organization, org_id) if org_id else None
    if org is None and acct_id:
        org = db.session.execute(select(Organization).where(Organization.stripe_account_id == acct_id)).scalar_one_or_none()
    if org is None:
        current_app.logger.warning("webhooks: account %s does not belong to a known organization", acct_id)
        return
    apply_account_status(org, obj)


PAYMENT_HANDLERS: Dict[str, Callable[[Dict[str, Any]], None]] = {
    "payment_intent.succeeded": _payment_succeeded,
    "payment_intent.payment_failed": _payment_failed,
    "customer.subscription.created": _subscription_changed,
    "customer.subscription.updated": _subscription_changed,
    "customer.subscription.deleted": _subscription_changed,
    "invoice.payment_succeeded": _invoice_paid,
    "invoice.paid": _invoice_paid,
    "invoice.payment_failed": _invoice_failed,
}

ACCOUNT_HANDLERS: Dict[str, Callable[[Dict[str, Any]], None]] = {
    "account.updated": _account_updated,
}


def _process(ev: Dict[str, Any], handlers: Dict[str, Callable[[Dict[str, Any]], None]]):
    event_id = str(ev.get("id") or "")
    etype = str(ev.get("type") or "").lower()
    obj = (ev.get("data") or {}).get("object") or {}
    if not event_id or not isinstance(obj, dict):
        return ("", 400)

    db.session.add(
        StripeEvent(
            event_id=event_id[:120],
            type=etype[:120],
            livemode=bool(ev.get("livemode") or False),
            account=(ev.get("account") or None),
            object_id=str(obj.get("id") or "")[:120] or None,
            payload=ev,
        )
    )
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.info("webhooks: duplicate event %s acknowledged", event_id)
        return ("", 200)

    handler = handlers.get(etype)
    try:
        if handler is not None:
            handler(obj)
        else:
            current_app.logger.debug("webhooks: %s stored, no handler", etype)
        tx_commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("webhooks: processing %s (%s) failed; Stripe will retry", event_id, etype)
        return ("", 500)
    return ("", 200)


@bp.post("/stripe")
def stripe_webhook():
    ev = _verified_event("STRIPE_WEBHOOK_SECRET")
    if ev is None:
        return ("", 400)
    return _process(ev, PAYMENT_HANDLERS)


@bp.post("/stripe/account")
def stripe_account_webhook():
    ev = _verified_event("STRIPE_WEBHOOK_SECRET_ACCOUNT")
    if ev is None:
        return ("", 400)
    return _process(ev, ACCOUNT_HANDLERS)
