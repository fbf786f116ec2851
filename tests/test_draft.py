import pytest

from swiftcause.flow.draft import DraftError, build_draft


def test_one_time_draft_has_no_interval():
    draft = build_draft(campaign_id="camp-1", amount=5000, currency="USD")
    assert draft.amount == 5000
    assert draft.currency == "usd"
    assert draft.is_recurring is False
    assert draft.recurring_interval is None
    assert draft.timestamp.tzinfo is not None
    assert "recurringInterval" not in draft.to_donation_data()


@pytest.mark.parametrize("interval", ["monthly", "quarterly", "yearly"])
def test_recurring_draft_keeps_interval(interval):
    draft = build_draft(campaign_id="camp-1", amount=10000, currency="gbp", is_recurring=True, recurring_interval=interval)
    assert draft.recurring_interval == interval
    assert draft.to_donation_data()["recurringInterval"] == interval


@pytest.mark.parametrize("amount", [0, -100, 10.5, "500", True, None])
def test_amount_must_be_positive_integer(amount):
    with pytest.raises(DraftError):
        build_draft(campaign_id="camp-1", amount=amount, currency="gbp")


def test_recurring_without_interval_rejected():
    with pytest.raises(DraftError):
        build_draft(campaign_id="camp-1", amount=1000, currency="gbp", is_recurring=True)
    with pytest.raises(DraftError):
        build_draft(campaign_id="camp-1", amount=1000, currency="gbp", is_recurring=True, recurring_interval="weekly")


def test_interval_without_recurring_rejected():
    with pytest.raises(DraftError):
        build_draft(campaign_id="camp-1", amount=1000, currency="gbp", recurring_interval="monthly")


def test_anonymous_drops_name_and_blank_fields_become_none():
    draft = build_draft(
        campaign_id="camp-1",
        amount=1000,
        currency="gbp",
        is_anonymous=True,
        donor_name="Ada",
        donor_email="  ",
        donor_message=" thanks ",
    )
    assert draft.donor_name is None
    assert draft.donor_email is None
    assert draft.donor_message == "thanks"
    data = draft.to_donation_data()
    assert "donorName" not in data
    assert data["donorMessage"] == "thanks"
    assert data["isAnonymous"] is True


def test_draft_is_immutable():
    draft = build_draft(campaign_id="camp-1", amount=1000, currency="gbp")
    with pytest.raises(AttributeError):
        draft.amount = 1


def test_gift_aid_details_only_kept_with_gift_aid():
    details = {"firstName": "Ada"}
    assert build_draft(campaign_id="c", amount=1, currency="gbp", gift_aid_details=details).gift_aid_details is None
    kept = build_draft(campaign_id="c", amount=1, currency="gbp", is_gift_aid=True, gift_aid_details=details)
    assert kept.gift_aid_details == details
