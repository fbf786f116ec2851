"""
Payment Intent Orchestrator.

Asks the backend for a client secret, then confirms the payment with the
provider. Every failure comes back as ``PaymentResult(success=False)``;
nothing raises past :meth:`PaymentIntentOrchestrator.pay` and nothing is
retried automatically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import requests
import stripe

from swiftcause.flow.client import SwiftCauseClient
from swiftcause.flow.draft import DonationDraft

log = logging.getLogger(__name__)

GENERIC_FAILURE = "Payment failed. Please try again."


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    transaction_id: Optional[str] = None
    error: Optional[str] = None
    campaign_title: Optional[str] = None

    def __post_init__(self) -> None:
        if self.success and (not self.transaction_id or self.error):
            raise ValueError("a successful result carries a transaction id and no error")
        if not self.success and (self.transaction_id or not self.error):
            raise ValueError("a failed result carries an error and no transaction id")

    @classmethod
    def ok(cls, transaction_id: str, campaign_title: Optional[str] = None) -> "PaymentResult":
        return cls(True, transaction_id=transaction_id, campaign_title=campaign_title)

    @classmethod
    def failed(cls, error: Optional[str], campaign_title: Optional[str] = None) -> "PaymentResult":
        return cls(False, error=error or GENERIC_FAILURE, campaign_title=campaign_title)


class PaymentConfirmer(Protocol):
    def confirm(self, client_secret: str, payment_method: Any) -> Any:
        """Confirm the intent; return the provider's PaymentIntent."""


def intent_id_from_secret(client_secret: str) -> str:
    return client_secret.split("_secret_", 1)[0]


class StripeIntentConfirmer:
    """Confirms with the publishable key, the way a browser or reader would."""

    def __init__(self, publishable_key: str, return_url: Optional[str] = None) -> None:
        self.publishable_key = publishable_key
        self.return_url = return_url

    def confirm(self, client_secret: str, payment_method: Any) -> Any:
        params: dict = {"client_secret": client_secret, "payment_method": payment_method}
        if self.return_url:
            params["return_url"] = self.return_url
        return stripe.PaymentIntent.confirm(
            intent_id_from_secret(client_secret), api_key=self.publishable_key, **params
        )


def _field(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


class PaymentIntentOrchestrator:
    def __init__(self, client: SwiftCauseClient, confirmer: PaymentConfirmer) -> None:
        self.client = client
        self.confirmer = confirmer

    def pay(self, draft: DonationDraft, payment_method: Any, campaign_title: Optional[str] = None) -> PaymentResult:
        try:
            resp = self.client.create_payment_intent(
                draft.amount,
                draft.currency,
                draft.campaign_id,
                draft.to_donation_data(),
                idempotency_key=f"{draft.campaign_id}:{draft.timestamp.timestamp():.6f}:{draft.amount}",
            )
        except requests.RequestException as e:
            log.warning("orchestrator: intent request failed: %s", e)
            return PaymentResult.failed(GENERIC_FAILURE, campaign_title)

        if not resp.get("success") or not resp.get("clientSecret"):
            return PaymentResult.failed(resp.get("error"), campaign_title)

        try:
            intent = self.confirmer.confirm(resp["clientSecret"], payment_method)
        except stripe.StripeError as e:
            log.info("orchestrator: provider declined: %s", e)
            return PaymentResult.failed(getattr(e, "user_message", None) or GENERIC_FAILURE, campaign_title)
        except requests.RequestException as e:
            log.warning("orchestrator: confirmation failed: %s", e)
            return PaymentResult.failed(GENERIC_FAILURE, campaign_title)

        status = _field(intent, "status")
        if status != "succeeded":
            err = _field(_field(intent, "last_payment_error") or {}, "message")
            log.info("orchestrator: intent ended in status %s", status)
            return PaymentResult.failed(err, campaign_title)

        return PaymentResult.ok(str(_field(intent, "id") or resp.get("paymentIntentId")), campaign_title)
