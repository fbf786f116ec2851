import jwt
import pytest
import requests
import stripe

from swiftcause import policy
from swiftcause.flow import (
    ApiError,
    CampaignSummary,
    DonationFlow,
    DonationState,
    InvalidTransition,
    PaymentIntentOrchestrator,
    PaymentResult,
    Session,
    build_draft,
    lookup_campaign,
    resolve,
)
from swiftcause.flow.orchestrator import GENERIC_FAILURE, intent_id_from_secret


class FakeClient:
    def __init__(self, intent_response=None, campaign=None, confirm_error=None):
        self.intent_response = intent_response or {"success": True, "clientSecret": "pi_1_secret_abc", "paymentIntentId": "pi_1"}
        self.campaign = campaign or {"id": "camp-1", "title": "Clean Water", "organizationId": "org-1", "acceptingDonations": True}
        self.confirm_error = confirm_error
        self.intent_calls = []
        self.confirm_calls = []
        self.email_calls = []

    def get_campaign(self, campaign_id):
        if campaign_id != self.campaign["id"]:
            raise ApiError(404, "Campaign not found")
        return self.campaign

    def create_payment_intent(self, amount, currency, campaign_id, donation_data, idempotency_key=None):
        self.intent_calls.append((amount, currency, campaign_id, donation_data))
        return self.intent_response

    def confirm_donation(self, payment_intent_id, gift_aid=None):
        self.confirm_calls.append((payment_intent_id, gift_aid))
        if self.confirm_error:
            raise self.confirm_error
        return {"success": True, "donation": {"id": payment_intent_id}}

    def attach_email(self, donation_id, email):
        self.email_calls.append((donation_id, email))
        return {"success": True}


class FakeConfirmer:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def confirm(self, client_secret, payment_method):
        self.calls.append((client_secret, payment_method))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _session(role="kiosk", campaigns=("camp-1",)):
    return Session(token="tok", user_id="kiosk:k1", role=role, organization_id="org-1", assigned_campaigns=campaigns)


def _campaign():
    return CampaignSummary.from_payload(
        {"id": "camp-1", "title": "Clean Water", "goal": 1000, "raised": 250, "organizationId": "org-1", "acceptingDonations": True}
    )


def _flow(client, confirmer, session=None):
    session = session or _session()
    return DonationFlow(session, _campaign(), PaymentIntentOrchestrator(client, confirmer), client)


SUCCEEDED = {"id": "pi_1", "status": "succeeded"}
DECLINED = stripe.CardError("Your card was declined.", None, "card_declined")


# ----------------------------
# Session + lookup
# ----------------------------
def test_session_rejects_unknown_role():
    with pytest.raises(ValueError):
        Session(token="t", user_id="u", role="janitor")


def test_session_from_kiosk_login():
    token = jwt.encode({"sub": "kiosk:k1", "role": "kiosk", "currency": "gbp"}, "irrelevant", algorithm="HS256")
    session = Session.from_kiosk_login(
        {"success": True, "token": token, "kioskData": {"id": "k1", "organizationId": "org-1", "assignedCampaigns": ["camp-1"]}}
    )
    assert session.role == "kiosk"
    assert session.kiosk_id == "k1"
    assert session.currency == "gbp"
    assert session.can_donate_to("camp-1")
    assert not session.can_donate_to("camp-2")


def test_lookup_refuses_unassigned_campaign_without_network():
    client = FakeClient()
    client.get_campaign = lambda cid: pytest.fail("should not be fetched")
    with pytest.raises(PermissionError):
        lookup_campaign(client, _session(), "camp-2")


def test_lookup_returns_summary():
    summary = lookup_campaign(FakeClient(), _session(), "camp-1")
    assert summary.title == "Clean Water"
    assert summary.accepting_donations is True


def test_lookup_maps_forbidden_to_permission_error():
    client = FakeClient()

    def forbidden(cid):
        raise ApiError(403, "Campaign is not assigned to this kiosk")

    client.get_campaign = forbidden
    with pytest.raises(PermissionError):
        lookup_campaign(client, _session(campaigns=()), "camp-1")


# ----------------------------
# Orchestrator
# ----------------------------
def test_payment_result_invariants():
    with pytest.raises(ValueError):
        PaymentResult(True)
    with pytest.raises(ValueError):
        PaymentResult(False, transaction_id="pi_1", error="x")
    assert PaymentResult.failed(None).error == GENERIC_FAILURE


def test_intent_id_from_client_secret():
    assert intent_id_from_secret("pi_3Nabc_secret_xyz") == "pi_3Nabc"


def test_backend_rejection_is_a_failed_result():
    client = FakeClient(intent_response={"success": False, "error": "Campaign is not accepting donations"})
    confirmer = FakeConfirmer([])
    result = PaymentIntentOrchestrator(client, confirmer).pay(build_draft(campaign_id="camp-1", amount=100, currency="gbp"), "pm")
    assert result.success is False
    assert result.error == "Campaign is not accepting donations"
    assert confirmer.calls == []


def test_network_failure_is_a_failed_result():
    client = FakeClient()

    def boom(*a, **kw):
        raise requests.ConnectionError("down")

    client.create_payment_intent = boom
    result = PaymentIntentOrchestrator(client, FakeConfirmer([])).pay(build_draft(campaign_id="camp-1", amount=100, currency="gbp"), "pm")
    assert result == PaymentResult(False, error=GENERIC_FAILURE)


def test_non_succeeded_status_is_a_failure():
    pending = {"id": "pi_1", "status": "requires_payment_method", "last_payment_error": {"message": "Insufficient funds"}}
    result = PaymentIntentOrchestrator(FakeClient(), FakeConfirmer([pending])).pay(
        build_draft(campaign_id="camp-1", amount=100, currency="gbp"), "pm"
    )
    assert result.success is False
    assert result.error == "Insufficient funds"


# ----------------------------
# State machine
# ----------------------------
def test_successful_flow_persists_once_and_offers_receipt():
    client = FakeClient()
    flow = _flow(client, FakeConfirmer([SUCCEEDED]))
    flow.start(build_draft(campaign_id="camp-1", amount=5000, currency="usd"))

    outcome = flow.submit("pm_card_visa")

    assert flow.state is DonationState.SUCCEEDED
    assert outcome.kind == "success"
    assert outcome.actions == ("email_receipt", "return_to_start")
    assert outcome.transaction_id == "pi_1"
    assert outcome.campaign_title == "Clean Water"
    assert client.confirm_calls == [("pi_1", None)]


def test_declined_card_never_persists_and_offers_retry():
    client = FakeClient()
    flow = _flow(client, FakeConfirmer([DECLINED]))
    flow.start(build_draft(campaign_id="camp-1", amount=5000, currency="usd"))

    outcome = flow.submit("pm_card_chargeDeclined")

    assert flow.state is DonationState.FAILED
    assert outcome.kind == "failure"
    assert outcome.error == "Your card was declined."
    assert outcome.actions == ("retry", "return_to_start")
    assert client.confirm_calls == []


def test_retry_reuses_the_same_draft():
    client = FakeClient()
    flow = _flow(client, FakeConfirmer([DECLINED, SUCCEEDED]))
    draft = build_draft(campaign_id="camp-1", amount=2500, currency="gbp", donor_name="Ada", donor_email="ada@x.test")
    flow.start(draft)
    flow.submit("pm_bad")

    outcome = flow.retry("pm_good")

    assert outcome.succeeded
    assert flow.draft is draft
    first, second = client.intent_calls
    assert first == second
    assert second[3]["donorName"] == "Ada"


def test_gift_aid_details_sent_with_confirmation():
    client = FakeClient()
    flow = _flow(client, FakeConfirmer([SUCCEEDED]))
    details = {"firstName": "Ada", "surname": "Lovelace"}
    flow.start(build_draft(campaign_id="camp-1", amount=5000, currency="gbp", is_gift_aid=True, gift_aid_details=details))
    flow.submit("pm")
    assert client.confirm_calls == [("pi_1", details)]


def test_backend_persist_failure_keeps_success(caplog):
    client = FakeClient(confirm_error=ApiError(502, "Payment provider unavailable"))
    flow = _flow(client, FakeConfirmer([SUCCEEDED]))
    flow.start(build_draft(campaign_id="camp-1", amount=5000, currency="gbp"))

    outcome = flow.submit("pm")

    assert outcome.succeeded
    assert flow.state is DonationState.SUCCEEDED
    assert "not confirmed with backend" in caplog.text


def test_invalid_transitions():
    flow = _flow(FakeClient(), FakeConfirmer([SUCCEEDED]))
    with pytest.raises(InvalidTransition):
        flow.submit("pm")
    with pytest.raises(InvalidTransition):
        flow.retry("pm")
    with pytest.raises(InvalidTransition):
        flow.finish()

    flow.start(build_draft(campaign_id="camp-1", amount=100, currency="gbp"))
    flow.submit("pm")
    with pytest.raises(InvalidTransition):
        flow.retry("pm")
    with pytest.raises(InvalidTransition):
        flow.start(build_draft(campaign_id="camp-1", amount=100, currency="gbp"))


def test_finish_clears_transient_state():
    flow = _flow(FakeClient(), FakeConfirmer([SUCCEEDED]))
    flow.start(build_draft(campaign_id="camp-1", amount=100, currency="gbp"))
    flow.submit("pm")

    flow.finish()

    assert flow.state is DonationState.DRAFTING
    assert flow.draft is None
    assert flow.result is None
    assert flow.outcome is None


def test_email_receipt_after_success():
    client = FakeClient()
    flow = _flow(client, FakeConfirmer([SUCCEEDED]))
    flow.start(build_draft(campaign_id="camp-1", amount=100, currency="gbp"))
    flow.submit("pm")
    assert flow.attach_email("ada@x.test") is True
    assert client.email_calls == [("pi_1", "ada@x.test")]


def test_flow_refuses_foreign_campaign():
    with pytest.raises(PermissionError):
        _flow(FakeClient(), FakeConfirmer([]), session=_session(campaigns=("camp-7",)))


def test_resolve_maps_results():
    assert resolve(PaymentResult.ok("pi_9")).actions == ("email_receipt", "return_to_start")
    failed = resolve(PaymentResult.failed("nope"))
    assert failed.kind == "failure"
    assert failed.error == "nope"


def test_admin_session_is_not_restricted_to_assignments():
    session = Session.for_admin("tok", "admin-1", "admin", organization_id="org-1")
    assert not session.is_kiosk
    assert session.can("export", "donations")
    assert session.can_donate_to("any-campaign")


def test_session_donation_right_comes_from_policy(monkeypatch):
    monkeypatch.setitem(policy.ROLE_PERMISSIONS, "viewer", frozenset({"view_campaigns"}))
    session = Session(token="tok", user_id="donor-1", role="viewer")
    assert not session.can_donate_to("camp-1")


def test_campaign_progress_is_capped():
    assert _campaign().progress == 0.25
    over = CampaignSummary.from_payload({"id": "c", "goal": 100, "raised": 500})
    assert over.progress == 1.0
    assert CampaignSummary.from_payload({"id": "c"}).progress == 0.0
