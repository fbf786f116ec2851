"""Read-only campaign lookup for the donation flow."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from swiftcause.flow.client import ApiError, SwiftCauseClient
from swiftcause.flow.session import Session


@dataclass(frozen=True)
class CampaignSummary:
    id: str
    title: str
    goal: int
    raised: int
    donation_count: int
    currency: str
    status: str
    organization_id: Optional[str]
    accepting_donations: bool

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "CampaignSummary":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            goal=int(data.get("goal") or 0),
            raised=int(data.get("raised") or 0),
            donation_count=int(data.get("donationCount") or 0),
            currency=str(data.get("currency") or "gbp"),
            status=str(data.get("status") or "active"),
            organization_id=data.get("organizationId"),
            accepting_donations=bool(data.get("acceptingDonations")),
        )

    @property
    def progress(self) -> float:
        if self.goal <= 0:
            return 0.0
        return min(1.0, self.raised / self.goal)


def lookup_campaign(client: SwiftCauseClient, session: Session, campaign_id: str) -> CampaignSummary:
    """Fetch a campaign the session may donate to.

    Raises PermissionError before any network call when the session is not
    allowed to use the campaign, and again if the server reports it belongs
    to another organization.
    """
    if not session.can_donate_to(campaign_id):
        raise PermissionError(f"Session cannot donate to campaign {campaign_id}")
    try:
        payload = client.get_campaign(campaign_id)
    except ApiError as e:
        if e.status == 403:
            raise PermissionError(e.message) from e
        raise
    summary = CampaignSummary.from_payload(payload)
    if not session.can_donate_to(summary.id, summary.organization_id):
        raise PermissionError(f"Campaign {campaign_id} belongs to another organization")
    return summary
