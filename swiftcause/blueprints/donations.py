"""
Donation records.

  POST  /donations/confirm          record a succeeded PaymentIntent (+ optional Gift Aid)
  PATCH /donations/<id>/email       attach a receipt email after the fact
  GET   /donations                  recent donations for the caller's organization
"""

from __future__ import annotations

import stripe
from flask import Blueprint, current_app, g, request
from sqlalchemy import select

from swiftcause.blueprints import json_error, json_response, request_payload
from swiftcause.extensions import db, tx_commit
from swiftcause.models import Donation, DonationInvariantError
from swiftcause.security import Identity, require_auth, require_permission
from swiftcause.services import gift_aid
from swiftcause.services.donations import PaymentNotSucceeded, attach_donor_email, record_successful_payment
from swiftcause.services.stripe_gateway import metadata_of, user_facing_message
from swiftcause.services.validation import clean_str

bp = Blueprint("donations", __name__)


@bp.post("/confirm")
@require_auth()
def confirm_donation():
    ident: Identity = g.identity
    data = request_payload()
    intent_id = clean_str(data.get("paymentIntentId"), 120)
    if not intent_id:
        return json_error("paymentIntentId is required", 400)

    try:
        intent = stripe.PaymentIntent.retrieve(intent_id)
    except stripe.InvalidRequestError:
        return json_error("Payment not found", 404)
    except stripe.StripeError as e:
        current_app.logger.error("donations: Stripe error retrieving %s: %s", intent_id, e, exc_info=True)
        return json_error(user_facing_message(e, "Payment provider unavailable"), 502)

    donor_id = metadata_of(intent).get("donorId")
    if donor_id and donor_id != ident.uid:
        return json_error("This payment belongs to another session", 403)

    try:
        donation, created = record_successful_payment(intent)
        tx_commit()
    except PaymentNotSucceeded as e:
        current_app.logger.info("donations: confirm for %s refused: %s", intent_id, e)
        return json_response({"success": False, "error": "Payment has not succeeded", "status": e.status}, 409)
    except DonationInvariantError as e:
        db.session.rollback()
        current_app.logger.error("donations: %s cannot be recorded: %s", intent_id, e)
        return json_error("Payment cannot be recorded as a donation", 422)

    details = data.get("giftAid")
    if donation.is_gift_aid and isinstance(details, dict):
        campaign_title = donation.campaign.title if donation.campaign else None
        gift_aid.schedule_declaration(donation.id, gift_aid.GiftAidDetails.from_payload(details), campaign_title)
    elif isinstance(details, dict):
        current_app.logger.warning("donations: Gift Aid details ignored for non Gift Aid donation %s", donation.id)

    return json_response(
        {
            "success": True,
            "created": created,
            "donationId": donation.id,
            "transactionId": donation.transaction_id,
            "donation": donation.to_dict(),
        },
        201 if created else 200,
    )


@bp.patch("/<donation_id>/email")
@require_auth()
def attach_email(donation_id: str):
    ident: Identity = g.identity
    email = clean_str(request_payload().get("donorEmail"), 255)

    donation = db.session.get(Donation, donation_id)
    if donation is None:
        return json_error("Donation not found", 404)
    if ident.is_kiosk and donation.kiosk_id and donation.kiosk_id != ident.kiosk_id:
        return json_error("Donation was taken on another kiosk", 403)
    if not ident.is_kiosk and donation.donor_id and donation.donor_id != ident.uid and not ident.can("view_donations"):
        return json_error("Forbidden", 403)

    try:
        donation = attach_donor_email(donation_id, email or "")
        tx_commit()
    except LookupError:
        return json_error("Donation not found", 404)
    except ValueError as e:
        db.session.rollback()
        return json_error(str(e), 400)

    return json_response({"success": True, "donation": donation.to_dict()})


@bp.get("")
@require_permission("view_donations")
def list_donations():
    ident: Identity = g.identity
    limit = min(max(request.args.get("limit", 50, type=int) or 50, 1), 500)

    stmt = select(Donation).order_by(Donation.timestamp.desc()).limit(limit)
    if ident.role != "super_admin":
        stmt = stmt.where(Donation.organization_id == ident.organization_id)
    campaign_id = (request.args.get("campaignId") or "").strip()
    if campaign_id:
        stmt = stmt.where(Donation.campaign_id == campaign_id)

    rows = db.session.execute(stmt).scalars().all()
    return json_response({"donations": [d.to_dict() for d in rows], "count": len(rows)})
