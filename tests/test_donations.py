import pytest
import stripe
from sqlalchemy import func, select

from conftest import intent_payload
from swiftcause.extensions import db
from swiftcause.models import Campaign, Donation, DonationInvariantError, GiftAidDeclaration, MailMessage

GIFT_AID = {
    "firstName": "Ada",
    "surname": "Lovelace",
    "houseNumber": "12",
    "addressLine1": "Analytical Row",
    "town": "London",
    "postcode": "n1 9gu",
    "ukTaxpayerConfirmation": True,
}


@pytest.fixture()
def retrieve(monkeypatch):
    """Stub PaymentIntent.retrieve; set ``.intent`` to choose what comes back."""

    class Stub:
        intent = intent_payload()

        def __call__(self, pi_id, **kwargs):
            return self.intent

    stub = Stub()
    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", stub)
    return stub


def _count(model):
    return db.session.execute(select(func.count()).select_from(model)).scalar()


def _campaign():
    return db.session.get(Campaign, "camp-1", populate_existing=True)


def test_one_time_donation_recorded(client, seed, auth, retrieve):
    res = client.post("/donations/confirm", json={"paymentIntentId": "pi_123"}, headers=auth())

    assert res.status_code == 201
    body = res.get_json()
    assert body["created"] is True
    assert body["transactionId"] == "pi_123"

    donation = db.session.get(Donation, "pi_123")
    assert donation.amount == 5000
    assert donation.currency == "usd"
    assert donation.is_recurring is False
    assert donation.recurring_interval is None
    assert donation.payment_status == "success"
    assert _campaign().collected_amount == 5000
    assert _campaign().donation_count == 1


def test_monthly_donation_recorded(client, seed, auth, retrieve):
    retrieve.intent = intent_payload(pi_id="pi_m", amount=10000, isRecurring="true", recurringInterval="monthly")
    res = client.post("/donations/confirm", json={"paymentIntentId": "pi_m"}, headers=auth())

    assert res.status_code == 201
    donation = db.session.get(Donation, "pi_m")
    assert donation.is_recurring is True
    assert donation.recurring_interval == "monthly"


def test_intent_without_campaign_is_refused(client, seed, auth, retrieve):
    retrieve.intent = intent_payload(campaign_id=None)
    res = client.post("/donations/confirm", json={"paymentIntentId": "pi_123"}, headers=auth())

    assert res.status_code == 422
    assert _count(Donation) == 0
    assert _campaign().collected_amount == 0


def test_unsucceeded_payment_writes_nothing(client, seed, auth, retrieve):
    retrieve.intent = intent_payload(status="requires_payment_method")
    res = client.post("/donations/confirm", json={"paymentIntentId": "pi_123"}, headers=auth())

    assert res.status_code == 409
    assert res.get_json()["success"] is False
    assert _count(Donation) == 0
    assert _campaign().collected_amount == 0


def test_repeat_confirm_counts_once(client, seed, auth, retrieve):
    first = client.post("/donations/confirm", json={"paymentIntentId": "pi_123"}, headers=auth())
    second = client.post("/donations/confirm", json={"paymentIntentId": "pi_123"}, headers=auth())

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.get_json()["created"] is False
    assert _count(Donation) == 1
    assert _campaign().collected_amount == 5000
    assert _campaign().donation_count == 1


def test_other_donor_cannot_confirm(client, seed, auth, retrieve):
    res = client.post("/donations/confirm", json={"paymentIntentId": "pi_123"}, headers=auth(uid="someone-else"))
    assert res.status_code == 403
    assert _count(Donation) == 0


def test_unknown_intent_is_404(client, seed, auth, monkeypatch):
    def missing(pi_id, **kwargs):
        raise stripe.InvalidRequestError("No such payment_intent", "intent")

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", missing)
    res = client.post("/donations/confirm", json={"paymentIntentId": "pi_nope"}, headers=auth())
    assert res.status_code == 404


def test_reaching_goal_completes_campaign(client, seed, auth, retrieve):
    retrieve.intent = intent_payload(amount=100_000, currency="gbp")
    client.post("/donations/confirm", json={"paymentIntentId": "pi_123"}, headers=auth())

    campaign = _campaign()
    assert campaign.status == "completed"
    assert campaign.auto_completed_goal == 100_000


def test_gift_aid_declaration_recorded(client, seed, auth, retrieve):
    retrieve.intent = intent_payload(currency="gbp", isGiftAid="true")
    res = client.post("/donations/confirm", json={"paymentIntentId": "pi_123", "giftAid": GIFT_AID}, headers=auth())

    assert res.status_code == 201
    decl = db.session.get(GiftAidDeclaration, "pi_123")
    assert decl is not None
    assert decl.classification == "STANDARD"
    assert decl.gift_aid_amount == 1250
    assert decl.tax_year == "2024-25"
    assert decl.campaign_title == "Clean Water"
    assert decl.donor_postcode == "N1 9GU"


def test_gift_aid_failure_never_fails_donation(client, seed, auth, retrieve, monkeypatch, caplog):
    def broken(*args, **kwargs):
        raise RuntimeError("declaration store unavailable")

    monkeypatch.setattr("swiftcause.services.gift_aid.record_declaration", broken)
    retrieve.intent = intent_payload(currency="gbp", isGiftAid="true")

    res = client.post("/donations/confirm", json={"paymentIntentId": "pi_123", "giftAid": GIFT_AID}, headers=auth())

    assert res.status_code == 201
    assert db.session.get(Donation, "pi_123") is not None
    assert _count(GiftAidDeclaration) == 0
    assert any(r.levelname == "ERROR" and "permanently failed" in r.getMessage() for r in caplog.records)


def test_gift_aid_details_ignored_without_flag(client, seed, auth, retrieve):
    client.post("/donations/confirm", json={"paymentIntentId": "pi_123", "giftAid": GIFT_AID}, headers=auth())
    assert _count(GiftAidDeclaration) == 0


def test_thank_you_queued_on_insert(client, seed, auth, retrieve):
    retrieve.intent = intent_payload(donorEmail="ada@example.com", donorName="Ada")
    client.post("/donations/confirm", json={"paymentIntentId": "pi_123"}, headers=auth())

    (msg,) = db.session.execute(select(MailMessage)).scalars().all()
    assert msg.to == ["ada@example.com"]
    assert msg.subject == "Thank you for supporting Clean Water!"
    assert msg.status == "queued"
    assert "$50" in msg.text


def test_late_email_queues_thank_you(client, seed, auth, retrieve):
    client.post("/donations/confirm", json={"paymentIntentId": "pi_123"}, headers=auth())
    assert _count(MailMessage) == 0

    res = client.patch("/donations/pi_123/email", json={"donorEmail": "Ada@Example.com"}, headers=auth())

    assert res.status_code == 200
    assert res.get_json()["donation"]["donorEmail"] == "ada@example.com"
    assert _count(MailMessage) == 1


def test_email_cannot_be_replaced(client, seed, auth, retrieve):
    retrieve.intent = intent_payload(donorEmail="ada@example.com")
    client.post("/donations/confirm", json={"paymentIntentId": "pi_123"}, headers=auth())

    res = client.patch("/donations/pi_123/email", json={"donorEmail": "eve@example.com"}, headers=auth())
    assert res.status_code == 400
    assert _count(MailMessage) == 1


def test_list_requires_view_permission(client, seed, auth, retrieve):
    client.post("/donations/confirm", json={"paymentIntentId": "pi_123"}, headers=auth())

    kiosk = auth(uid="kiosk:kiosk-1", role="kiosk", organization_id="org-1")
    assert client.get("/donations", headers=kiosk).status_code == 403

    res = client.get("/donations", headers=auth(uid="admin-1", role="admin", organization_id="org-1"))
    assert res.status_code == 200
    assert res.get_json()["count"] == 1

    other = client.get("/donations", headers=auth(uid="x", role="admin", organization_id="org-2"))
    assert other.get_json()["count"] == 0


def test_donation_row_requires_campaign(app):
    donation = Donation(id="pi_x", transaction_id="pi_x", campaign_id=None, amount=100, currency="gbp")
    with pytest.raises(DonationInvariantError):
        donation.check_invariants()
