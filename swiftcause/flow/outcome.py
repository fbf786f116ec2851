"""Maps a PaymentResult to one of the two terminal donation outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from swiftcause.flow.orchestrator import PaymentResult

EMAIL_RECEIPT = "email_receipt"
RETURN_TO_START = "return_to_start"
RETRY = "retry"


@dataclass(frozen=True)
class Outcome:
    kind: str  # "success" | "failure"
    actions: Tuple[str, ...]
    transaction_id: Optional[str] = None
    error: Optional[str] = None
    campaign_title: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.kind == "success"


def resolve(result: PaymentResult) -> Outcome:
    if result.success:
        return Outcome(
            "success",
            (EMAIL_RECEIPT, RETURN_TO_START),
            transaction_id=result.transaction_id,
            campaign_title=result.campaign_title,
        )
    return Outcome("failure", (RETRY, RETURN_TO_START), error=result.error, campaign_title=result.campaign_title)
