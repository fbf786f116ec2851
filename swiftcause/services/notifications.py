"""
Thank-you emails.

Donation mapper events call :func:`on_donation_written` inside the flush; it
queues a row in the ``mail`` table on the same connection. Delivery is a
separate step (:func:`deliver_pending`, run by ``flask swiftcause deliver-mail``)
so a mail server outage never blocks a donation write.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from flask import current_app
from markupsafe import escape
from sqlalchemy import insert, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from swiftcause.extensions import db, send_mail
from swiftcause.models import Campaign, MailMessage
from swiftcause.models.mixins import utcnow

log = logging.getLogger(__name__)

CAMPAIGN_FALLBACK = "our cause"
DONOR_FALLBACK = "Friend"

_SYMBOLS = {"usd": "$", "gbp": "£", "eur": "€", "cad": "CA$", "aud": "A$"}


def format_amount(amount: Optional[int], currency: Optional[str]) -> str:
    """Minor units -> display string, e.g. 5000/'gbp' -> '£50', 1050/'usd' -> '$10.50'."""
    if not isinstance(amount, int) or isinstance(amount, bool):
        return ""
    cur = (currency or "usd").lower()
    major = Decimal(amount) / Decimal(100)
    text = f"{major:,.0f}" if major == major.to_integral_value() else f"{major:,.2f}"
    symbol = _SYMBOLS.get(cur)
    return f"{symbol}{text}" if symbol else f"{text} {cur.upper()}"


def build_thank_you_message(
    *,
    donation_id: str,
    donor_email: str,
    donor_name: Optional[str],
    amount: Optional[int],
    currency: Optional[str],
    campaign_id: Optional[str],
    campaign_name: Optional[str],
    transaction_id: Optional[str],
    brand: str = "SwiftCause",
) -> Dict[str, Any]:
    name = donor_name or DONOR_FALLBACK
    campaign = campaign_name or CAMPAIGN_FALLBACK
    reference = transaction_id or donation_id
    amount_label = format_amount(amount, currency)
    amount_line = f"Your donation of {amount_label} was received." if amount_label else "Your donation was received."

    text = (
        f"Hi {name},\n\n{amount_line}\n\n"
        f"We appreciate your support for {campaign}.\n\n"
        f"Reference: {reference}\n\n"
        f"With gratitude,\n{brand} Team"
    )
    html = (
        "<!DOCTYPE html>\n<html>\n  <body style=\"font-family: Arial, sans-serif; color: #333;\">\n"
        f"    <p>Hi {escape(name)},</p>\n"
        f"    <p>{escape(amount_line)}</p>\n"
        f"    <p>We appreciate your support for <strong>{escape(campaign)}</strong>.</p>\n"
        f"    <p><strong>Reference:</strong> {escape(reference)}</p>\n"
        f"    <p>With gratitude,<br/>{escape(brand)} Team</p>\n"
        "  </body>\n</html>"
    )
    return {
        "to": [donor_email],
        "subject": f"Thank you for supporting {campaign}!",
        "text": text,
        "html": html,
        "meta": {"donationId": donation_id, "campaignId": campaign_id, "transactionId": reference},
    }


def _campaign_title(connection: Connection, campaign_id: Optional[str]) -> Optional[str]:
    if not campaign_id:
        return None
    try:
        with connection.begin_nested():
            return connection.execute(select(Campaign.title).where(Campaign.id == campaign_id)).scalar()
    except SQLAlchemyError:
        log.exception("notifications: campaign lookup failed for %s", campaign_id)
        return None


def _brand() -> str:
    try:
        return current_app.config.get("BRAND_NAME", "SwiftCause")
    except RuntimeError:
        return "SwiftCause"


def on_donation_written(connection: Connection, donation: Any, previous_email: Optional[str]) -> None:
    """Queue the thank-you email if the donation now has a receipt address it
    did not have before. Failures are logged and swallowed."""
    email = (donation.donor_email or "").strip()
    if not email or (previous_email or "").strip():
        return

    try:
        doc = build_thank_you_message(
            donation_id=donation.id,
            donor_email=email,
            donor_name=None if donation.is_anonymous else donation.donor_name,
            amount=donation.amount,
            currency=donation.currency,
            campaign_id=donation.campaign_id,
            campaign_name=_campaign_title(connection, donation.campaign_id),
            transaction_id=donation.transaction_id,
            brand=_brand(),
        )
        now = utcnow()
        with connection.begin_nested():
            connection.execute(
                insert(MailMessage.__table__).values(
                    status="queued", attempts=0, created_at=now, updated_at=now, **doc
                )
            )
        log.info("notifications: thank-you email queued for donation %s", donation.id)
    except SQLAlchemyError:
        log.exception("notifications: failed to queue thank-you email for donation %s", donation.id)


# ----------------------------
# Delivery
# ----------------------------
def deliver_pending(limit: int = 50) -> Dict[str, int]:
    """Send queued mail rows through Flask-Mail. Must run in an app context."""
    cfg = current_app.config
    max_attempts = int(cfg.get("MAIL_MAX_ATTEMPTS", 5))
    sender = cfg.get("MAIL_DEFAULT_SENDER")

    rows = (
        db.session.execute(
            select(MailMessage).where(MailMessage.status == "queued").order_by(MailMessage.created_at).limit(limit)
        )
        .scalars()
        .all()
    )

    stats = {"sent": 0, "failed": 0, "retrying": 0}
    for row in rows:
        row.attempts = int(row.attempts or 0) + 1
        try:
            send_mail(row.subject, list(row.to), text=row.text, html=row.html, sender=sender, max_retries=0)
        except Exception as e:
            row.last_error = str(e)[:500]
            if row.attempts >= max_attempts:
                row.status = "failed"
                stats["failed"] += 1
                log.error("mail %s permanently failed after %s attempts: %s", row.id, row.attempts, e)
            else:
                stats["retrying"] += 1
                log.warning("mail %s failed (attempt %s/%s): %s", row.id, row.attempts, max_attempts, e)
        else:
            row.status = "sent"
            row.sent_at = utcnow()
            row.last_error = None
            stats["sent"] += 1
        db.session.commit()
    return stats
