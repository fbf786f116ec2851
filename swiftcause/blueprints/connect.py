"""
Stripe Connect onboarding for organizations.

  POST /connect/onboarding-link    {orgId} -> {url}
  POST /connect/account-status     {orgId} -> {success, chargesEnabled, payoutsEnabled, detailsSubmitted}
"""

from __future__ import annotations

from typing import Optional, Tuple

import stripe
from flask import Blueprint, current_app, g, request

from swiftcause.blueprints import json_error, json_response, request_payload
from swiftcause.extensions import db, tx_commit
from swiftcause.models import Organization, User
from swiftcause.security import Identity, require_auth
from swiftcause.services.stripe_gateway import apply_account_status, stripe_get, user_facing_message
from swiftcause.services.validation import clean_str

bp = Blueprint("connect", __name__)


def _return_base() -> str:
    """Origin of the dashboard that asked, when it is one we trust."""
    cfg = current_app.config
    origin = (request.headers.get("Origin") or "").strip().rstrip("/")
    if origin and origin.lower() in (cfg.get("CONNECT_ALLOWED_ORIGINS") or ()):
        return origin
    return (cfg.get("PUBLIC_BASE_URL") or "http://localhost:3000").rstrip("/")


def _authorized_org(ident: Identity) -> Tuple[Optional[Organization], Optional[object]]:
    org_id = clean_str(request_payload().get("orgId"), 64)
    if not org_id:
        return None, json_error("Organization ID is required", 400)

    user = db.session.get(User, ident.uid)
    if user is None:
        return None, json_error("User not found", 404)
    if user.organization_id != org_id:
        return None, json_error("User does not have access to this organization", 403)

    org = db.session.get(Organization, org_id)
    if org is None:
        return None, json_error("Organization not found", 404)
    return org, None


@bp.post("/onboarding-link")
@require_auth()
def onboarding_link():
    ident: Identity = g.identity
    org, err = _authorized_org(ident)
    if err is not None:
        return err

    user = db.session.get(User, ident.uid)
    try:
        if not org.stripe_account_id:
            account = stripe.Account.create(
                type="standard",
                email=(user.email if user else None) or ident.email,
                metadata={"orgId": org.id, "organizationName": org.name or "Unknown"},
            )
            org.stripe_account_id = stripe_get(account, "id")
            org.stripe_charges_enabled = False
            org.stripe_payouts_enabled = False
            tx_commit()
            current_app.logger.info("connect: created account %s for org %s", org.stripe_account_id, org.id)

        base = _return_base()
        link = stripe.AccountLink.create(
            account=org.stripe_account_id,
            refresh_url=f"{base}/#/admin-bank-details?stripe_status=refresh",
            return_url=f"{base}/#/admin-bank-details?stripe_status=success",
            type="account_onboarding",
        )
    except stripe.StripeError as e:
        current_app.logger.error("connect: onboarding link failed for org %s: %s", org.id, e, exc_info=True)
        return json_error(user_facing_message(e, "Failed to create onboarding link"), 502)

    return json_response({"url": stripe_get(link, "url")})


@bp.post("/account-status")
@require_auth()
def account_status():
    ident: Identity = g.identity
    org, err = _authorized_org(ident)
    if err is not None:
        return err
    if not org.stripe_account_id:
        return json_error("No Stripe account found for this organization", 400)

    try:
        account = stripe.Account.retrieve(org.stripe_account_id)
    except stripe.StripeError as e:
        current_app.logger.error("connect: account status failed for org %s: %s", org.id, e, exc_info=True)
        return json_error(user_facing_message(e, "Failed to update account status"), 502)

    apply_account_status(org, account)
    tx_commit()
    return json_response(
        {
            "success": True,
            "chargesEnabled": org.stripe_charges_enabled,
            "payoutsEnabled": org.stripe_payouts_enabled,
            "detailsSubmitted": org.stripe_details_submitted,
        }
    )
