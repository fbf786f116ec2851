from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Mapped, mapped_column

from swiftcause.extensions import db
from swiftcause.models.mixins import TimestampMixin


class User(db.Model, TimestampMixin):
    """
    A signed-in identity known to the backend.

    The primary key is the identity token subject, so rows are created lazily
    the first time an identity needs server-side state (e.g. a Stripe customer).
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(db.String(128), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(db.String(255), nullable=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(db.String(160), nullable=True)
    role: Mapped[str] = mapped_column(db.String(20), nullable=False, default="viewer")
    organization_id: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True, unique=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "displayName": self.display_name,
            "role": self.role,
            "organizationId": self.organization_id,
        }

    def __repr__(self) -> str:
        return f"<User id={self.id!r} role={self.role!r}>"
