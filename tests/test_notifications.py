import pytest

from swiftcause.extensions import db, mail
from swiftcause.models import MailMessage
from swiftcause.services import notifications
from swiftcause.services.notifications import build_thank_you_message, deliver_pending, format_amount


@pytest.mark.parametrize(
    "amount, currency, expected",
    [(5000, "gbp", "£50"), (1050, "usd", "$10.50"), (123456, "eur", "€1,234.56"), (500, "jpy", "5 JPY"), (None, "gbp", "")],
)
def test_format_amount(amount, currency, expected):
    assert format_amount(amount, currency) == expected


def test_message_escapes_html_and_falls_back():
    doc = build_thank_you_message(
        donation_id="pi_1",
        donor_email="ada@example.com",
        donor_name="<b>Ada</b>",
        amount=2500,
        currency="gbp",
        campaign_id="camp-1",
        campaign_name=None,
        transaction_id=None,
    )
    assert doc["subject"] == "Thank you for supporting our cause!"
    assert "&lt;b&gt;Ada&lt;/b&gt;" in doc["html"]
    assert "<b>Ada</b>" in doc["text"]
    assert "Reference: pi_1" in doc["text"]
    assert doc["meta"] == {"donationId": "pi_1", "campaignId": "camp-1", "transactionId": "pi_1"}


def test_anonymous_donor_is_greeted_generically():
    doc = build_thank_you_message(
        donation_id="pi_1",
        donor_email="ada@example.com",
        donor_name=None,
        amount=None,
        currency=None,
        campaign_id=None,
        campaign_name="Clean Water",
        transaction_id="pi_1",
    )
    assert doc["text"].startswith("Hi Friend,")
    assert "Your donation was received." in doc["text"]


def _queue(**kw):
    row = MailMessage(to=["ada@example.com"], subject="Thanks", text="hi", html="<p>hi</p>", meta={}, **kw)
    db.session.add(row)
    db.session.commit()
    return row


def test_deliver_pending_sends_queued_mail(app):
    row = _queue()
    with mail.record_messages() as outbox:
        stats = deliver_pending()

    assert stats == {"sent": 1, "failed": 0, "retrying": 0}
    assert len(outbox) == 1
    assert outbox[0].recipients == ["ada@example.com"]
    assert outbox[0].sender == "SwiftCause <receipts@swiftcause.test>"
    assert db.session.get(MailMessage, row.id).status == "sent"
    assert deliver_pending() == {"sent": 0, "failed": 0, "retrying": 0}


def test_deliver_pending_retries_then_fails(app, monkeypatch):
    row = _queue()

    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(notifications, "send_mail", refuse)

    assert deliver_pending() == {"sent": 0, "failed": 0, "retrying": 1}
    assert deliver_pending() == {"sent": 0, "failed": 1, "retrying": 0}
    stored = db.session.get(MailMessage, row.id)
    assert stored.status == "failed"
    assert stored.attempts == 2
    assert stored.last_error == "smtp down"
