"""
Gift Aid: declaration recording, HMRC classification and CSV export.

Amounts are in pence. A declaration is only ever written for a donation that
is already recorded as successful; recording runs on the outbox so a failure
here can never affect the donation itself.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from swiftcause.extensions import db
from swiftcause.models import Donation, GiftAidDeclaration
from swiftcause.models.mixins import utcnow
from swiftcause.outbox import outbox
from swiftcause.services.validation import clean_str, truthy

log = logging.getLogger(__name__)

GADS_MAX = 3000
STANDARD_MIN = 3001
GIFT_AID_RATE = Decimal("0.25")

STANDARD = "STANDARD"
GADS = "GADS"
PENDING = "PENDING"

MISSING_DONOR_INFO = "Missing required donor information"
MISSING_ADDRESS = "Incomplete address details"
MISSING_TAXPAYER_CONFIRMATION = "UK taxpayer confirmation not provided"
MISSING_CONSENT = "Gift Aid consent not provided"
INVALID_AMOUNT = "Invalid donation amount"

CSV_HEADERS = (
    "Donor First Name",
    "Donor Surname",
    "House Number",
    "Address Line 1",
    "Address Line 2",
    "Town",
    "Postcode",
    "Donation Amount (Pence)",
    "Gift Aid Amount (Pence)",
    "Donation Date",
    "Tax Year",
    "Campaign Title",
    "Donation ID",
)

DEFAULT_DECLARATION_TEXT = (
    "I want to Gift Aid my donation and any donations I make in the future or have made in the past "
    "4 years. I am a UK taxpayer and understand that if I pay less Income Tax and/or Capital Gains Tax "
    "than the amount of Gift Aid claimed on all my donations in that tax year it is my responsibility "
    "to pay any difference."
)


class GiftAidError(Exception):
    pass


@dataclass(frozen=True)
class GiftAidDetails:
    first_name: Optional[str] = None
    surname: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    house_number: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    town: Optional[str] = None
    postcode: Optional[str] = None
    uk_taxpayer_confirmation: bool = False
    gift_aid_consent: bool = False
    declaration_text: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "GiftAidDetails":
        postcode = clean_str(data.get("postcode"), 16)
        return cls(
            first_name=clean_str(data.get("firstName"), 80),
            surname=clean_str(data.get("surname"), 80),
            title=clean_str(data.get("title"), 20),
            email=clean_str(data.get("email"), 255),
            house_number=clean_str(data.get("houseNumber"), 40),
            address_line1=clean_str(data.get("addressLine1"), 160),
            address_line2=clean_str(data.get("addressLine2"), 160),
            town=clean_str(data.get("town"), 80),
            postcode=postcode.upper() if postcode else None,
            uk_taxpayer_confirmation=truthy(data.get("ukTaxpayerConfirmation")),
            gift_aid_consent=truthy(data.get("giftAidConsent", True)),
            declaration_text=clean_str(data.get("declarationText"), 2000),
        )


@dataclass(frozen=True)
class Classification:
    classification: str
    gift_aid_amount: int
    pending_reasons: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_eligible(self) -> bool:
        return self.classification != PENDING


# ----------------------------
# Rules
# ----------------------------
def gift_aid_amount(donation_amount: int) -> int:
    if not donation_amount or donation_amount <= 0:
        return 0
    return int((Decimal(donation_amount) * GIFT_AID_RATE).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def missing_information(details: GiftAidDetails) -> List[str]:
    """Pending reasons for an incomplete declaration, de-duplicated, in order."""
    reasons: List[str] = []
    missing = False

    if not details.first_name or not details.surname:
        missing = True
    for value in (details.house_number, details.address_line1, details.town, details.postcode):
        if not value:
            missing = True
            if MISSING_ADDRESS not in reasons:
                reasons.append(MISSING_ADDRESS)
    if not details.uk_taxpayer_confirmation:
        missing = True
        reasons.append(MISSING_TAXPAYER_CONFIRMATION)
    if not details.gift_aid_consent:
        missing = True
        reasons.append(MISSING_CONSENT)

    if missing and not reasons:
        reasons.append(MISSING_DONOR_INFO)
    return reasons


def classify(donation_amount: int, details: GiftAidDetails) -> Classification:
    if not donation_amount or donation_amount <= 0:
        return Classification(PENDING, 0, (INVALID_AMOUNT,))

    amount = gift_aid_amount(donation_amount)
    if donation_amount <= GADS_MAX:
        return Classification(GADS, amount)

    reasons = missing_information(details)
    if not reasons:
        return Classification(STANDARD, amount)
    return Classification(PENDING, amount, tuple(reasons))


def tax_year(d: date) -> str:
    """UK tax year (6 April to 5 April) as ``YYYY-YY``."""
    start = d.year if (d.month, d.day) >= (4, 6) else d.year - 1
    return f"{start}-{str(start + 1)[-2:]}"


# ----------------------------
# Recording
# ----------------------------
def record_declaration(donation_id: str, details: GiftAidDetails, campaign_title: Optional[str] = None) -> GiftAidDeclaration:
    """Write the declaration for a successful Gift Aid donation and commit.

    Re-recording the same donation returns the existing declaration.
    """
    donation = db.session.get(Donation, donation_id)
    if donation is None:
        raise GiftAidError(f"Donation {donation_id} does not exist")
    if donation.payment_status != "success":
        raise GiftAidError(f"Donation {donation_id} has not succeeded")
    if not donation.is_gift_aid:
        raise GiftAidError(f"Donation {donation_id} was not made with Gift Aid")

    existing = db.session.get(GiftAidDeclaration, donation.id)
    if existing is not None:
        return existing

    result = classify(donation.amount, details)
    title = campaign_title or (donation.campaign.title if donation.campaign else None)
    declaration = GiftAidDeclaration(
        id=donation.id,
        donation_id=donation.id,
        transaction_id=donation.transaction_id,
        campaign_id=donation.campaign_id,
        campaign_title=title,
        organization_id=donation.organization_id,
        donor_first_name=details.first_name,
        donor_surname=details.surname,
        donor_title=details.title,
        donor_email=details.email or donation.donor_email,
        donor_house_number=details.house_number,
        donor_address_line1=details.address_line1,
        donor_address_line2=details.address_line2,
        donor_town=details.town,
        donor_postcode=details.postcode,
        gift_aid_consent=details.gift_aid_consent,
        uk_taxpayer_confirmation=details.uk_taxpayer_confirmation,
        declaration_text=details.declaration_text or DEFAULT_DECLARATION_TEXT,
        declaration_date=utcnow(),
        donation_amount=donation.amount,
        gift_aid_amount=result.gift_aid_amount,
        donation_date=donation.timestamp,
        tax_year=tax_year(donation.timestamp.date()),
        classification=result.classification,
        pending_reasons=list(result.pending_reasons),
        gift_aid_status="pending",
    )
    db.session.add(declaration)
    db.session.commit()
    log.info("gift aid: declaration %s recorded (%s)", declaration.id, declaration.classification)
    return declaration


def schedule_declaration(donation_id: str, details: GiftAidDetails, campaign_title: Optional[str] = None):
    """Record the declaration on the outbox; never raises into the caller."""
    return outbox.submit(f"gift-aid:{donation_id}", record_declaration, donation_id, details, campaign_title)


# ----------------------------
# HMRC export
# ----------------------------
def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def export_csv(declarations: Iterable[GiftAidDeclaration]) -> str:
    """Render declarations as the HMRC Gift Aid CSV. Rows with a missing or
    unparseable donation date are skipped with a warning."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)

    total = written = 0
    for decl in declarations:
        total += 1
        when = _as_datetime(decl.donation_date)
        if when is None:
            log.warning("gift aid csv: skipping donation %s - invalid donation date: %r", decl.donation_id, decl.donation_date)
            continue
        writer.writerow(
            [
                decl.donor_first_name or "",
                decl.donor_surname or "",
                decl.donor_house_number or "",
                decl.donor_address_line1 or "",
                decl.donor_address_line2 or "",
                decl.donor_town or "",
                decl.donor_postcode or "",
                int(decl.donation_amount),
                int(decl.gift_aid_amount),
                when.date().isoformat(),
                tax_year(when.date()),
                decl.campaign_title or "",
                decl.donation_id,
            ]
        )
        written += 1

    if written < total:
        log.warning("gift aid csv: %s of %s declarations skipped due to invalid dates", total - written, total)
    return buf.getvalue().rstrip("\n")
