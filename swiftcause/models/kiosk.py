from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Mapped, mapped_column
from werkzeug.security import check_password_hash, generate_password_hash

from swiftcause.extensions import db
from swiftcause.models.mixins import TimestampMixin


class Kiosk(db.Model, TimestampMixin):
    __tablename__ = "kiosks"

    id: Mapped[str] = mapped_column(db.String(64), primary_key=True)
    name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(db.String(160), nullable=True)
    organization_id: Mapped[str] = mapped_column(
        db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    access_code_hash: Mapped[str] = mapped_column(db.String(255), nullable=False)
    status: Mapped[str] = mapped_column(db.String(20), nullable=False, default="offline")
    assigned_campaigns: Mapped[List[str]] = mapped_column(db.JSON, nullable=False, default=list)
    settings: Mapped[Dict[str, Any]] = mapped_column(db.JSON, nullable=False, default=dict)
    last_active: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    organization = db.relationship("Organization", lazy="joined")

    def set_access_code(self, raw: str) -> None:
        self.access_code_hash = generate_password_hash(raw)

    def check_access_code(self, raw: str) -> bool:
        return bool(self.access_code_hash) and check_password_hash(self.access_code_hash, raw or "")

    @property
    def is_online(self) -> bool:
        return self.status == "online"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "status": self.status,
            "organizationId": self.organization_id,
            "assignedCampaigns": list(self.assigned_campaigns or []),
            "settings": dict(self.settings or {}),
        }

    def __repr__(self) -> str:
        return f"<Kiosk id={self.id!r} status={self.status!r}>"
