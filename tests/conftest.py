import hashlib
import hmac
import json
import time

import pytest
import stripe

from swiftcause import create_app
from swiftcause.config import TestingConfig
from swiftcause.extensions import db
from swiftcause.models import Campaign, Kiosk, Organization, User
from swiftcause.security import Identity, issue_identity_token


@pytest.fixture()
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def seed(app):
    org = Organization(id="org-1", name="Helping Hands", currency="gbp")
    other = Organization(id="org-2", name="Other Charity", currency="gbp")
    campaign = Campaign(id="camp-1", organization_id="org-1", title="Clean Water", currency="gbp", goal=100_000)
    foreign = Campaign(id="camp-9", organization_id="org-2", title="Elsewhere", currency="gbp", goal=0)
    kiosk = Kiosk(
        id="kiosk-1",
        name="Lobby",
        organization_id="org-1",
        status="online",
        assigned_campaigns=["camp-1"],
    )
    kiosk.set_access_code("2468")
    admin = User(id="admin-1", email="admin@helping.test", role="admin", organization_id="org-1")
    db.session.add_all([org, other, campaign, foreign, kiosk, admin])
    db.session.commit()
    return {"org": org, "campaign": campaign, "kiosk": kiosk, "admin": admin}


@pytest.fixture()
def make_token(app):
    def _make(uid="donor-1", role="viewer", **kw):
        return issue_identity_token(Identity(uid=uid, role=role, **kw))

    return _make


@pytest.fixture()
def auth(make_token):
    def _auth(uid="donor-1", role="viewer", **kw):
        return {"Authorization": f"Bearer {make_token(uid=uid, role=role, **kw)}"}

    return _auth


@pytest.fixture()
def no_stripe_customer(monkeypatch):
    """Stripe customer creation stubbed out; returns the call log."""
    calls = []

    def fake_customer_create(**kwargs):
        calls.append(kwargs)
        return {"id": f"cus_{len(calls)}"}

    monkeypatch.setattr(stripe.Customer, "create", fake_customer_create)
    return calls


def sign_webhook(payload: str, secret: str, ts=None) -> str:
    ts = int(ts or time.time())
    sig = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def intent_payload(
    pi_id="pi_123",
    amount=5000,
    currency="usd",
    status="succeeded",
    campaign_id="camp-1",
    **metadata,
):
    md = {"campaignId": campaign_id, "organizationId": "org-1", "donorId": "donor-1", "platform": "kiosk"}
    md.update({k: v for k, v in metadata.items() if v is not None})
    return {
        "id": pi_id,
        "object": "payment_intent",
        "status": status,
        "amount": amount,
        "amount_received": amount if status == "succeeded" else 0,
        "currency": currency,
        "created": 1_717_000_000,
        "metadata": md,
    }


@pytest.fixture()
def post_webhook(client):
    def _post(event: dict, path="/webhooks/stripe", secret=TestingConfig.STRIPE_WEBHOOK_SECRET, signature=None):
        payload = json.dumps(event)
        headers = {"Stripe-Signature": signature or sign_webhook(payload, secret), "Content-Type": "application/json"}
        return client.post(path, data=payload, headers=headers)

    return _post
