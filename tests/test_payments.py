import pytest
import stripe

from swiftcause.extensions import db
from swiftcause.models import Campaign, User


def _body(amount=5000, currency="usd", campaign_id="camp-1", **donation_data):
    return {"amount": amount, "currency": currency, "campaignId": campaign_id, "donationData": donation_data}


@pytest.fixture()
def intents(monkeypatch):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return {"id": "pi_new", "client_secret": "pi_new_secret_abc", "status": "requires_payment_method"}

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
    return calls


@pytest.mark.parametrize("amount", [0, -5, 10.5, "100", True, None])
def test_invalid_amount_never_reaches_stripe(client, seed, auth, intents, no_stripe_customer, amount):
    res = client.post("/payments/intent", json=_body(amount=amount), headers=auth())
    assert res.status_code == 400
    assert res.get_json()["success"] is False
    assert intents == []
    assert no_stripe_customer == []


def test_unsupported_currency_rejected(client, seed, auth, intents):
    res = client.post("/payments/intent", json=_body(currency="xyz"), headers=auth())
    assert res.status_code == 400
    assert res.get_json() == {"success": False, "error": "Unsupported currency"}
    assert intents == []


def test_missing_campaign_rejected(client, seed, auth, intents):
    res = client.post("/payments/intent", json=_body(campaign_id=""), headers=auth())
    assert res.status_code == 400
    assert res.get_json()["error"] == "campaignId is required"


def test_unknown_campaign_rejected(client, seed, auth, intents):
    res = client.post("/payments/intent", json=_body(campaign_id="camp-missing"), headers=auth())
    assert res.status_code == 400
    assert res.get_json() == {"success": False, "error": "Campaign not found"}
    assert intents == []


def test_subscription_for_unknown_campaign_rejected(client, seed, auth):
    body = {"campaignId": "camp-missing", "interval": "monthly", "amount": 2000, "currency": "gbp", "paymentMethodId": "pm_1"}
    res = client.post("/payments/subscription", json=body, headers=auth())
    assert res.status_code == 400
    assert res.get_json()["error"] == "Campaign not found"


def test_recurring_without_interval_rejected(client, seed, auth, intents):
    res = client.post("/payments/intent", json=_body(isRecurring=True), headers=auth())
    assert res.status_code == 400
    assert intents == []


def test_one_time_intent_created(client, seed, auth, intents, no_stripe_customer):
    res = client.post(
        "/payments/intent",
        json=_body(donorName="Ada", donorEmail="Ada@Example.com", platform="kiosk"),
        headers=auth(),
    )
    assert res.status_code == 200
    assert res.get_json() == {"success": True, "clientSecret": "pi_new_secret_abc", "paymentIntentId": "pi_new"}

    (params,) = intents
    assert params["amount"] == 5000
    assert params["currency"] == "usd"
    assert params["customer"] == "cus_1"
    assert params["receipt_email"] == "ada@example.com"
    md = params["metadata"]
    assert md["campaignId"] == "camp-1"
    assert md["organizationId"] == "org-1"
    assert md["donorId"] == "donor-1"
    assert md["isRecurring"] == "false"
    assert "recurringInterval" not in md
    assert "transfer_data" not in params


def test_recurring_intent_carries_interval(client, seed, auth, intents, no_stripe_customer):
    res = client.post(
        "/payments/intent",
        json=_body(amount=10000, isRecurring=True, recurringInterval="monthly"),
        headers=auth(),
    )
    assert res.status_code == 200
    md = intents[0]["metadata"]
    assert md["isRecurring"] == "true"
    assert md["recurringInterval"] == "monthly"


def test_customer_reused_for_same_identity(client, seed, auth, intents, no_stripe_customer):
    client.post("/payments/intent", json=_body(), headers=auth())
    client.post("/payments/intent", json=_body(), headers=auth())
    assert len(no_stripe_customer) == 1
    assert db.session.get(User, "donor-1").stripe_customer_id == "cus_1"


def test_connected_account_receives_transfer(client, seed, auth, intents, no_stripe_customer):
    org = seed["org"]
    org.stripe_account_id = "acct_123"
    org.stripe_charges_enabled = True
    db.session.commit()

    client.post("/payments/intent", json=_body(), headers=auth())
    assert intents[0]["transfer_data"] == {"destination": "acct_123"}


def test_tap_to_pay_uses_card_present(client, seed, auth, intents, no_stripe_customer):
    client.post("/payments/intent", json=_body(platform="android_ttp"), headers=auth())
    assert intents[0]["payment_method_types"] == ["card_present"]
    assert "automatic_payment_methods" not in intents[0]


def test_kiosk_cannot_pay_into_foreign_campaign(client, seed, auth, intents):
    headers = auth(uid="kiosk:kiosk-1", role="kiosk", organization_id="org-1", kiosk_id="kiosk-1", assigned_campaigns=("camp-1",))
    res = client.post("/payments/intent", json=_body(campaign_id="camp-9"), headers=headers)
    assert res.status_code == 403
    assert res.get_json()["success"] is False
    assert intents == []


def test_paused_campaign_refuses_donations(client, seed, auth, intents):
    db.session.get(Campaign, "camp-1").status = "paused"
    db.session.commit()
    res = client.post("/payments/intent", json=_body(), headers=auth())
    assert res.status_code == 400
    assert res.get_json()["error"] == "Campaign is not accepting donations"


def test_card_error_is_reported_not_raised(client, seed, auth, no_stripe_customer, monkeypatch):
    def declined(**kwargs):
        raise stripe.CardError("Your card was declined.", None, "card_declined")

    monkeypatch.setattr(stripe.PaymentIntent, "create", declined)
    res = client.post("/payments/intent", json=_body(), headers=auth())
    assert res.status_code == 402
    assert res.get_json() == {"success": False, "error": "Your card was declined."}


def test_unauthenticated_request_rejected(client, seed, intents):
    res = client.post("/payments/intent", json=_body())
    assert res.status_code == 401
    body = res.get_json()
    assert body["error"] == "User must be authenticated."
    assert "requestId" in body


def test_invalid_token_rejected(client, seed, intents):
    res = client.post("/payments/intent", json=_body(), headers={"Authorization": "Bearer nope"})
    assert res.status_code == 401
