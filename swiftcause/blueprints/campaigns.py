"""Campaign lookup for kiosks and web donors: GET /campaigns/<id>."""

from __future__ import annotations

from flask import Blueprint, g

from swiftcause.blueprints import json_error, json_response
from swiftcause.extensions import db
from swiftcause.models import Campaign
from swiftcause.security import Identity, require_auth
from swiftcause.services import campaign_status

bp = Blueprint("campaigns", __name__)


@bp.get("/<campaign_id>")
@require_auth()
def get_campaign(campaign_id: str):
    ident: Identity = g.identity
    campaign = db.session.get(Campaign, campaign_id)
    if campaign is None:
        return json_error("Campaign not found", 404)

    if not ident.can_donate_to(campaign.id, campaign.organization_id):
        if ident.is_kiosk:
            return json_error("Campaign is not assigned to this kiosk", 403)
        return json_error("This session cannot donate to this campaign", 403)

    status = campaign_status.effective_status(campaign)
    body = campaign.to_dict()
    body["status"] = status
    body["acceptingDonations"] = status == "active"
    return json_response(body)
