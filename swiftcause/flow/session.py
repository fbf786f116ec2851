"""Explicit session context handed to every flow component."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import jwt

from swiftcause import policy


@dataclass(frozen=True)
class Session:
    token: str
    user_id: str
    role: str
    organization_id: Optional[str] = None
    assigned_campaigns: Tuple[str, ...] = field(default_factory=tuple)
    kiosk_id: Optional[str] = None
    currency: Optional[str] = None

    def __post_init__(self) -> None:
        if not policy.is_role(self.role):
            raise ValueError(f"Unknown role: {self.role!r}")
        if not self.token:
            raise ValueError("A session needs an identity token")

    @property
    def is_kiosk(self) -> bool:
        return self.role == "kiosk"

    def can(self, action: str, resource: str) -> bool:
        return policy.is_allowed(self.role, action, resource)

    def can_donate_to(self, campaign_id: str, organization_id: Optional[str] = None) -> bool:
        if not self.can("donate", "campaigns"):
            return False
        if not self.is_kiosk:
            return True
        if organization_id and self.organization_id and organization_id != self.organization_id:
            return False
        return not self.assigned_campaigns or campaign_id in self.assigned_campaigns

    @classmethod
    def from_kiosk_login(cls, payload: Dict[str, Any]) -> "Session":
        """Build a kiosk session from a ``POST /kiosk/login`` response body."""
        if not payload.get("success") or not payload.get("token"):
            raise ValueError("Kiosk login did not succeed")
        token = str(payload["token"])
        kiosk = payload.get("kioskData") or {}
        # the server verifies the token; here it is only read for display fields
        claims = jwt.decode(token, options={"verify_signature": False})
        return cls(
            token=token,
            user_id=str(claims.get("sub") or f"kiosk:{kiosk.get('id')}"),
            role="kiosk",
            organization_id=kiosk.get("organizationId") or claims.get("org_id"),
            assigned_campaigns=tuple(kiosk.get("assignedCampaigns") or claims.get("campaigns") or ()),
            kiosk_id=kiosk.get("id") or claims.get("kiosk_id"),
            currency=claims.get("currency"),
        )

    @classmethod
    def for_admin(
        cls,
        token: str,
        user_id: str,
        role: str,
        organization_id: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> "Session":
        return cls(token=token, user_id=user_id, role=role, organization_id=organization_id, currency=currency)
