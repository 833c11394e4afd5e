"""
crudkit Backend — Notification SQLAlchemy Model
================================================

What:  ORM model for the `notifications` table.
Who:   Served by NotificationController through the generic store interface.

Index on (user_id, is_read):
    Optimizes the two hot paths: listing a user's notifications and the
    mark-all-as-read update that follows every list request.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from crudkit.database import Base
from crudkit.models.base import RecordStatus, ResourceRecord, new_uid, utcnow


class Notification(ResourceRecord, Base):
    """A message addressed to one user."""

    __tablename__ = "notifications"

    uid: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uid)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)

    # e.g. "system", "promotion", "news_raw"
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="system")
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RecordStatus.ACTIVE.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<Notification(uid={self.uid}, user_id={self.user_id}, type='{self.type}')>"
