"""
Donation lifecycle state machine.

    DRAFTING --submit--> CONFIRMING --> SUCCEEDED
                              |
                              +-------> FAILED --retry--> CONFIRMING

SUCCEEDED and FAILED are terminal for a draft; ``finish()`` clears the draft
and result so the next donation starts from a clean DRAFTING state. A
Donation is only ever persisted from CONFIRMING -> SUCCEEDED.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Dict, Optional

import requests

from swiftcause.flow.campaigns import CampaignSummary
from swiftcause.flow.client import ApiError, SwiftCauseClient
from swiftcause.flow.draft import DonationDraft
from swiftcause.flow.orchestrator import PaymentIntentOrchestrator, PaymentResult
from swiftcause.flow.outcome import Outcome, resolve
from swiftcause.flow.session import Session

log = logging.getLogger(__name__)


class DonationState(str, enum.Enum):
    DRAFTING = "drafting"
    CONFIRMING = "confirming"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class InvalidTransition(RuntimeError):
    def __init__(self, state: DonationState, action: str) -> None:
        super().__init__(f"cannot {action} while {state.value}")
        self.state = state
        self.action = action


class DonationFlow:
    def __init__(
        self,
        session: Session,
        campaign: CampaignSummary,
        orchestrator: PaymentIntentOrchestrator,
        client: SwiftCauseClient,
    ) -> None:
        if not session.can_donate_to(campaign.id, campaign.organization_id):
            raise PermissionError(f"Session cannot donate to campaign {campaign.id}")
        self.session = session
        self.campaign = campaign
        self.orchestrator = orchestrator
        self.client = client
        self.state = DonationState.DRAFTING
        self.draft: Optional[DonationDraft] = None
        self.result: Optional[PaymentResult] = None
        self.donation: Optional[Dict[str, Any]] = None

    # ----------------------------
    # Transitions
    # ----------------------------
    def start(self, draft: DonationDraft) -> None:
        if self.state is not DonationState.DRAFTING:
            raise InvalidTransition(self.state, "start a draft")
        if draft.campaign_id != self.campaign.id:
            raise ValueError("draft targets a different campaign")
        self.draft = draft

    def submit(self, payment_method: Any) -> Outcome:
        if self.state is not DonationState.DRAFTING or self.draft is None:
            raise InvalidTransition(self.state, "submit")
        return self._confirm(self.draft, payment_method)

    def retry(self, payment_method: Any) -> Outcome:
        """Re-enter CONFIRMING with the same draft after a failure."""
        if self.state is not DonationState.FAILED or self.draft is None:
            raise InvalidTransition(self.state, "retry")
        return self._confirm(self.draft, payment_method)

    def finish(self) -> None:
        """Leave a terminal state; transient draft data is discarded."""
        if self.state not in (DonationState.SUCCEEDED, DonationState.FAILED):
            raise InvalidTransition(self.state, "finish")
        self.state = DonationState.DRAFTING
        self.draft = None
        self.result = None
        self.donation = None

    @property
    def outcome(self) -> Optional[Outcome]:
        return resolve(self.result) if self.result is not None else None

    # ----------------------------
    # Internals
    # ----------------------------
    def _confirm(self, draft: DonationDraft, payment_method: Any) -> Outcome:
        self.state = DonationState.CONFIRMING
        result = self.orchestrator.pay(draft, payment_method, campaign_title=self.campaign.title)
        self.result = result
        if not result.success:
            self.state = DonationState.FAILED
            return resolve(result)

        self.state = DonationState.SUCCEEDED
        self._persist(draft, result)
        return resolve(result)

    def _persist(self, draft: DonationDraft, result: PaymentResult) -> None:
        # the webhook records the same payment idempotently if this call is lost
        gift_aid = draft.gift_aid_details if draft.is_gift_aid else None
        try:
            body = self.client.confirm_donation(result.transaction_id, gift_aid)
        except (ApiError, requests.RequestException) as e:
            log.error("flow: donation %s not confirmed with backend: %s", result.transaction_id, e)
            return
        self.donation = body.get("donation")

    def attach_email(self, email: str) -> bool:
        """Send a receipt address after success (the ``email_receipt`` action)."""
        if self.state is not DonationState.SUCCEEDED or self.result is None:
            raise InvalidTransition(self.state, "attach an email")
        try:
            self.client.attach_email(str(self.result.transaction_id), email)
        except (ApiError, requests.RequestException) as e:
            log.warning("flow: receipt email not attached to %s: %s", self.result.transaction_id, e)
            return False
        return True
