"""Kiosk sign-in: exchanges a kiosk id + access code for an identity token."""

from __future__ import annotations

from flask import Blueprint, current_app

from swiftcause.blueprints import json_error, json_response, request_payload
from swiftcause.extensions import db, tx_commit
from swiftcause.models import Kiosk
from swiftcause.models.mixins import utcnow
from swiftcause.security import Identity, issue_identity_token
from swiftcause.services.validation import clean_str

bp = Blueprint("kiosk", __name__)


@bp.post("/login")
def kiosk_login():
    data = request_payload()
    kiosk_id = clean_str(data.get("kioskId"), 64)
    access_code = clean_str(data.get("accessCode"), 128)
    if not kiosk_id or not access_code:
        return json_error("kioskId and accessCode are required", 400)

    kiosk = db.session.get(Kiosk, kiosk_id)
    if kiosk is None or not kiosk.check_access_code(access_code):
        current_app.logger.warning("kiosk: failed login for %s", kiosk_id)
        return json_error("Invalid kiosk credentials", 401)
    if not kiosk.is_online:
        return json_error(f"Kiosk is {kiosk.status}", 403)

    org = kiosk.organization
    identity = Identity(
        uid=f"kiosk:{kiosk.id}",
        role="kiosk",
        name=kiosk.name,
        organization_id=kiosk.organization_id,
        kiosk_id=kiosk.id,
        assigned_campaigns=tuple(kiosk.assigned_campaigns or ()),
        currency=(org.currency if org else None) or current_app.config.get("DEFAULT_CURRENCY", "gbp"),
    )
    kiosk.last_active = utcnow()
    tx_commit()

    current_app.logger.info("kiosk: %s signed in", kiosk.id)
    return json_response({"success": True, "token": issue_identity_token(identity), "kioskData": kiosk.to_dict()})
