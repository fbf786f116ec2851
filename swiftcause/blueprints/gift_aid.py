"""HMRC Gift Aid export: GET /gift-aid/export.csv."""

from __future__ import annotations

from flask import Blueprint, Response, g, request
from sqlalchemy import select

from swiftcause.blueprints import json_error
from swiftcause.extensions import db
from swiftcause.models import GiftAidDeclaration
from swiftcause.models.mixins import utcnow
from swiftcause.security import Identity, require_permission
from swiftcause.services.gift_aid import export_csv

bp = Blueprint("gift_aid", __name__)


@bp.get("/export.csv")
@require_permission("export_donations")
def export():
    ident: Identity = g.identity
    stmt = select(GiftAidDeclaration).order_by(GiftAidDeclaration.donation_date)

    if ident.role != "super_admin":
        if not ident.organization_id:
            return json_error("No organization on this account", 403)
        stmt = stmt.where(GiftAidDeclaration.organization_id == ident.organization_id)
    campaign_id = (request.args.get("campaignId") or "").strip()
    if campaign_id:
        stmt = stmt.where(GiftAidDeclaration.campaign_id == campaign_id)
    tax_year = (request.args.get("taxYear") or "").strip()
    if tax_year:
        stmt = stmt.where(GiftAidDeclaration.tax_year == tax_year)

    body = export_csv(db.session.execute(stmt).scalars())
    filename = f"gift-aid-{utcnow():%Y%m%d}.csv"
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"', "Cache-Control": "no-store"},
    )
