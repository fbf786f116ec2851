from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Index
from sqlalchemy.orm import Mapped, mapped_column

from swiftcause.extensions import db
from swiftcause.models.mixins import TimestampMixin


class MailMessage(db.Model, TimestampMixin):
    """Outbound email document; queued by triggers, drained by the mail worker."""

    __tablename__ = "mail"
    __table_args__ = (Index("ix_mail_status_created", "status", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    to: Mapped[List[str]] = mapped_column(db.JSON, nullable=False)
    subject: Mapped[str] = mapped_column(db.String(255), nullable=False)
    text: Mapped[str] = mapped_column(db.Text, nullable=False)
    html: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)
    meta: Mapped[Dict[str, Any]] = mapped_column(db.JSON, nullable=False, default=dict)

    status: Mapped[str] = mapped_column(db.String(20), nullable=False, default="queued")
    attempts: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(db.String(500), nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<MailMessage id={self.id} to={self.to!r} status={self.status}>"
