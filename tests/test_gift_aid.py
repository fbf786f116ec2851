from datetime import date, datetime
from types import SimpleNamespace

import pytest

from swiftcause.extensions import db
from swiftcause.models import Donation
from swiftcause.services import gift_aid
from swiftcause.services.gift_aid import GiftAidDetails, GiftAidError

COMPLETE = GiftAidDetails.from_payload(
    {
        "firstName": "Ada",
        "surname": "Lovelace",
        "houseNumber": "12",
        "addressLine1": "Analytical Row",
        "town": "London",
        "postcode": "n1 9gu",
        "ukTaxpayerConfirmation": True,
    }
)


@pytest.mark.parametrize(
    "amount, expected",
    [(0, 0), (1, 0), (2, 1), (10, 3), (3000, 750), (3001, 750), (5000, 1250)],
)
def test_gift_aid_amount_rounds_half_up(amount, expected):
    assert gift_aid.gift_aid_amount(amount) == expected


@pytest.mark.parametrize(
    "day, expected",
    [(date(2024, 4, 5), "2023-24"), (date(2024, 4, 6), "2024-25"), (date(2025, 1, 31), "2024-25"), (date(1999, 12, 1), "1999-00")],
)
def test_tax_year_boundaries(day, expected):
    assert gift_aid.tax_year(day) == expected


def test_small_donations_are_gads():
    result = gift_aid.classify(3000, GiftAidDetails())
    assert result.classification == "GADS"
    assert result.gift_aid_amount == 750
    assert result.is_eligible


def test_complete_declaration_is_standard():
    result = gift_aid.classify(3001, COMPLETE)
    assert result.classification == "STANDARD"
    assert result.pending_reasons == ()


def test_incomplete_declaration_is_pending_with_reasons():
    details = GiftAidDetails(first_name="Ada", surname="Lovelace", gift_aid_consent=True)
    result = gift_aid.classify(5000, details)
    assert result.classification == "PENDING"
    assert result.pending_reasons == (gift_aid.MISSING_ADDRESS, gift_aid.MISSING_TAXPAYER_CONFIRMATION)
    assert not result.is_eligible


def test_missing_name_only_is_generic_reason():
    details = GiftAidDetails(
        house_number="1", address_line1="Road", town="Town", postcode="AB1 2CD", uk_taxpayer_confirmation=True, gift_aid_consent=True
    )
    assert gift_aid.classify(5000, details).pending_reasons == (gift_aid.MISSING_DONOR_INFO,)


def test_invalid_amount_is_pending():
    result = gift_aid.classify(0, COMPLETE)
    assert result.classification == "PENDING"
    assert result.pending_reasons == (gift_aid.INVALID_AMOUNT,)


def test_consent_defaults_to_given():
    assert GiftAidDetails.from_payload({}).gift_aid_consent is True
    assert GiftAidDetails.from_payload({"giftAidConsent": False}).gift_aid_consent is False


def _donation(pi_id="pi_1", amount=5000, is_gift_aid=True, when=datetime(2024, 5, 29, 12, 0)):
    donation = Donation(
        id=pi_id,
        transaction_id=pi_id,
        campaign_id="camp-1",
        organization_id="org-1",
        amount=amount,
        currency="gbp",
        is_gift_aid=is_gift_aid,
        timestamp=when,
    )
    db.session.add(donation)
    db.session.commit()
    return donation


def test_record_declaration(seed):
    _donation()
    decl = gift_aid.record_declaration("pi_1", COMPLETE)

    assert decl.classification == "STANDARD"
    assert decl.gift_aid_amount == 1250
    assert decl.tax_year == "2024-25"
    assert decl.campaign_title == "Clean Water"
    assert decl.declaration_text == gift_aid.DEFAULT_DECLARATION_TEXT
    assert gift_aid.record_declaration("pi_1", COMPLETE).id == decl.id


def test_declaration_needs_a_gift_aid_donation(seed):
    with pytest.raises(GiftAidError):
        gift_aid.record_declaration("pi_missing", COMPLETE)
    _donation(is_gift_aid=False)
    with pytest.raises(GiftAidError):
        gift_aid.record_declaration("pi_1", COMPLETE)


def test_csv_skips_rows_with_bad_dates(caplog):
    good = SimpleNamespace(
        donor_first_name="Ada",
        donor_surname="Lovelace",
        donor_house_number="12",
        donor_address_line1="Analytical Row",
        donor_address_line2=None,
        donor_town="London",
        donor_postcode="N1 9GU",
        donation_amount=5000,
        gift_aid_amount=1250,
        donation_date="2024-05-29T12:00:00Z",
        campaign_title="Clean Water",
        donation_id="pi_1",
    )
    bad = SimpleNamespace(**{**vars(good), "donation_id": "pi_2", "donation_date": "not a date"})
    missing = SimpleNamespace(**{**vars(good), "donation_id": "pi_3", "donation_date": None})

    lines = gift_aid.export_csv([good, bad, missing]).split("\n")

    assert lines[0].split(",") == list(gift_aid.CSV_HEADERS)
    assert lines[1] == "Ada,Lovelace,12,Analytical Row,,London,N1 9GU,5000,1250,2024-05-29,2024-25,Clean Water,pi_1"
    assert len(lines) == 2
    assert "2 of 3 declarations skipped" in caplog.text


def test_export_endpoint_scoped_to_org(client, seed, auth):
    _donation()
    gift_aid.record_declaration("pi_1", COMPLETE)

    res = client.get("/gift-aid/export.csv", headers=auth(uid="admin-1", role="admin", organization_id="org-1"))
    assert res.status_code == 200
    assert res.mimetype == "text/csv"
    assert "attachment" in res.headers["Content-Disposition"]
    assert res.get_data(as_text=True).count("\n") == 1

    other = client.get("/gift-aid/export.csv", headers=auth(uid="x", role="admin", organization_id="org-2"))
    assert other.get_data(as_text=True).count("\n") == 0

    filtered = client.get(
        "/gift-aid/export.csv?taxYear=2023-24", headers=auth(uid="admin-1", role="admin", organization_id="org-1")
    )
    assert filtered.get_data(as_text=True).count("\n") == 0


def test_export_requires_permission(client, seed, auth):
    assert client.get("/gift-aid/export.csv", headers=auth(role="operator", organization_id="org-1")).status_code == 403
    assert client.get("/gift-aid/export.csv", headers=auth(role="kiosk", organization_id="org-1")).status_code == 403
    assert client.get("/gift-aid/export.csv").status_code == 401
